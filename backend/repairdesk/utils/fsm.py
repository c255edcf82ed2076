from __future__ import annotations
"""Simple finite state machine utility for enforcing allowed status transitions.

Usage:
    from repairdesk.utils.fsm import TransitionValidator
    TICKET_FSM = TransitionValidator({
        'received': {'diagnosing', 'cancelled'},
        'diagnosing': {'repairing', 'cancelled'},
        ...
    })
    TICKET_FSM.assert_can_transition(current_status, target_status)

Raises TransitionError (rendered as 409) if invalid.
"""
from typing import Dict, Set
from repairdesk.errors import TransitionError

class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    def allowed_targets(self, current: str) -> Set[str]:
        return set(self.graph.get(current, set()))

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            raise TransitionError(f"Invalid {self.field_name} transition {current} -> {target}")
        return True

    def is_terminal(self, state: str) -> bool:
        return not self.graph.get(state)

__all__ = ['TransitionValidator']
