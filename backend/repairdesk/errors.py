"""Domain error taxonomy.

Each error carries the HTTP status and title the unified error handler in
``create_app`` renders, so services stay free of Flask imports.
"""
from __future__ import annotations


class RepairDeskError(Exception):
    status_code = 500
    title = 'Internal Server Error'


class ValidationError(RepairDeskError):
    """Caller supplied input that fails basic shape rules."""
    status_code = 400
    title = 'Bad Request'


class TicketLookupError(RepairDeskError, LookupError):
    """The ticket storage backend failed (connectivity, timeout, permission)."""
    status_code = 503
    title = 'Service Unavailable'


class DataIntegrityError(RepairDeskError):
    """A stored ticket holds a value outside the known enumerations."""
    status_code = 500
    title = 'Data Integrity Error'

    def __init__(self, message: str, ticket_number: str | None = None, value: str | None = None):
        super().__init__(message)
        self.ticket_number = ticket_number
        self.value = value


class TransitionError(RepairDeskError):
    status_code = 409
    title = 'Conflict'


__all__ = ['RepairDeskError', 'ValidationError', 'TicketLookupError', 'DataIntegrityError', 'TransitionError']
