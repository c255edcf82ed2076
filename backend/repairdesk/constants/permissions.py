"""Central enum-like definitions to avoid typos in permission strings.
Extend cautiously; never rename codes silently since issued tokens carry them.
"""
from __future__ import annotations
from typing import List, Dict

SERVICES = ['RPR']

SERVICE_ACTIONS = {
    # OVERRIDE bypasses the status transition table for administrative corrections
    'RPR': ['READ', 'MANAGE', 'OVERRIDE'],
}

PERM_READ = 'RPR.READ'
PERM_MANAGE = 'RPR.MANAGE'
PERM_OVERRIDE = 'RPR.OVERRIDE'


def build_all_permission_codes() -> List[str]:
    codes: List[str] = []
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            codes.append(f"{svc}.{act}")
    return codes

ALL_PERMISSION_CODES = build_all_permission_codes()

ROLE_PRESETS: Dict[str, List[str]] = {
    'Technician': [PERM_READ, PERM_MANAGE],
    'FrontDesk': [PERM_READ, PERM_MANAGE],
    'Manager': [PERM_READ, PERM_MANAGE, PERM_OVERRIDE],
    'Owner': ['*']
}


def expand_role(role_name: str) -> List[str]:
    """Return the concrete permission codes a preset role grants ('*' expands to all)."""
    codes = ROLE_PRESETS[role_name]
    if '*' in codes:
        return list(ALL_PERMISSION_CODES)
    return list(codes)
