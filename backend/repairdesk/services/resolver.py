from __future__ import annotations
"""Repair ticket lookup and timeline projection.

``TicketResolver.search`` turns a user supplied key into matching tickets;
``project_timeline`` derives the seven step progress view, ticket age and the
overdue flag shown by the public tracking page and the admin list. Nothing in
this module writes to storage or emits events.
"""
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from repairdesk.config.pagination import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, normalize_pagination
from repairdesk.errors import DataIntegrityError, ValidationError
from repairdesk.models.repair_ticket import RepairTicket
from repairdesk.services.ticket_store import TicketRecord, TicketStore

logger = logging.getLogger(__name__)

KEY_TICKET_NUMBER = 'ticket_number'
KEY_CUSTOMER_NAME = 'customer_name'
KEY_TYPES = (KEY_TICKET_NUMBER, KEY_CUSTOMER_NAME)
MIN_QUERY_LENGTH = 2

OVERDUE_AFTER = timedelta(days=7)

STATUS_ORDER = RepairTicket.STATUS_ORDER
TERMINAL_STATUSES = RepairTicket.TERMINAL_STATUSES
KNOWN_STATUSES = frozenset(RepairTicket.ALL_STATUSES)

STATUS_INFO: Dict[str, Tuple[str, str]] = {
    RepairTicket.STATUS_RECEIVED: ('Ticket Received', 'Your device has been logged into our system.'),
    RepairTicket.STATUS_DIAGNOSING: ('Diagnosis in Progress', 'Our technicians are identifying the issue.'),
    RepairTicket.STATUS_AWAITING_PARTS: ('Awaiting Parts', 'Waiting for necessary components to arrive.'),
    RepairTicket.STATUS_REPAIRING: ('Repair in Progress', 'Your device is actively being repaired.'),
    RepairTicket.STATUS_QUALITY_CHECK: ('Quality Check', 'Ensuring the repair meets our standards.'),
    RepairTicket.STATUS_READY: ('Ready for Pickup', 'Your device is repaired and ready for collection.'),
    RepairTicket.STATUS_COMPLETED: ('Completed', 'Your device has been picked up.'),
    RepairTicket.STATUS_CANCELLED: ('Cancelled', 'The repair ticket has been cancelled.'),
}

TIER_SEVERE = 'severe'
TIER_MEDIUM = 'medium'
TIER_MILD = 'mild'

PRIORITY_TIERS = {
    RepairTicket.PRIORITY_URGENT: TIER_SEVERE,
    RepairTicket.PRIORITY_HIGH: TIER_SEVERE,
    RepairTicket.PRIORITY_NORMAL: TIER_MEDIUM,
    RepairTicket.PRIORITY_LOW: TIER_MILD,
}


@dataclass(frozen=True)
class TicketSearchResult:
    tickets: List[TicketRecord]
    total_matched: int
    key_type: str
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def single(self) -> Optional[TicketRecord]:
        """The ticket to auto-select when exactly one matched."""
        if self.total_matched == 1 and len(self.tickets) == 1:
            return self.tickets[0]
        return None


@dataclass(frozen=True)
class TimelineStep:
    status: str
    label: str
    description: str
    is_completed: bool
    is_current: bool
    is_future: bool


@dataclass(frozen=True)
class TimelineView:
    ticket_number: str
    status: str
    progress_index: int
    steps: List[TimelineStep]
    age_in_days: int
    is_overdue: bool
    is_cancelled: bool
    cancelled_marker: Optional[TimelineStep] = None

    def as_dict(self) -> dict:
        return {
            'status': self.status,
            'progress_index': self.progress_index,
            'age_in_days': self.age_in_days,
            'is_overdue': self.is_overdue,
            'is_cancelled': self.is_cancelled,
            'steps': [asdict(step) for step in self.steps],
            'cancelled_marker': asdict(self.cancelled_marker) if self.cancelled_marker else None,
        }


@dataclass
class TimelineBatch:
    """Result of projecting many tickets; corrupt records land in ``omitted``."""
    rendered: List[Tuple[TicketRecord, TimelineView]] = field(default_factory=list)
    omitted: List[str] = field(default_factory=list)


class TicketResolver:
    def __init__(self, store: TicketStore):
        self.store = store

    def search(self, key: str, key_type: str, page: int = DEFAULT_PAGE, page_size: int = DEFAULT_PAGE_SIZE) -> TicketSearchResult:
        """Resolve a ticket number (exact) or customer name (substring) to tickets, newest first.

        Raises ValidationError before touching storage when the key is shorter than
        two characters after trimming or the key type is unknown. Storage failures
        (TicketLookupError) propagate unchanged; no match is an empty result.
        """
        cleaned = key.strip() if isinstance(key, str) else ''
        if len(cleaned) < MIN_QUERY_LENGTH:
            raise ValidationError('query too short')
        if key_type not in KEY_TYPES:
            raise ValidationError(f"type must be one of {', '.join(KEY_TYPES)}")
        try:
            page, page_size = normalize_pagination(page, page_size)
        except ValueError as e:
            raise ValidationError(str(e))

        if key_type == KEY_TICKET_NUMBER:
            ticket = self.store.find_by_ticket_number(cleaned)
            tickets = [ticket] if ticket is not None else []
            return TicketSearchResult(tickets, len(tickets), key_type, page, page_size)

        tickets, total = self.store.find_by_customer_name_substring(cleaned, page, page_size)
        tickets = sorted(tickets, key=lambda t: t.created_at, reverse=True)
        return TicketSearchResult(tickets, total, key_type, page, page_size)


def progress_index(status: str) -> int:
    """Position of status in the seven step order; -1 for cancelled or unknown values."""
    try:
        return STATUS_ORDER.index(status)
    except ValueError:
        return -1


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def ticket_age(created_at: datetime, now: Optional[datetime] = None) -> timedelta:
    now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    return now - _as_utc(created_at)


def age_in_days(created_at: datetime, now: Optional[datetime] = None) -> int:
    # floor to whole days; future timestamps (clock skew) count as 0
    return max(0, ticket_age(created_at, now) // timedelta(days=1))


def is_overdue(status: str, created_at: datetime, now: Optional[datetime] = None, overdue_after: timedelta = OVERDUE_AFTER) -> bool:
    if status in TERMINAL_STATUSES:
        return False
    return ticket_age(created_at, now) > overdue_after


def _step(status: str, is_completed: bool, is_current: bool, is_future: bool) -> TimelineStep:
    label, description = STATUS_INFO[status]
    return TimelineStep(status, label, description, is_completed, is_current, is_future)


def project_timeline(ticket: TicketRecord, now: Optional[datetime] = None, overdue_after: timedelta = OVERDUE_AFTER) -> TimelineView:
    if ticket.status not in KNOWN_STATUSES:
        raise DataIntegrityError(
            f"ticket {ticket.ticket_number} has unknown status {ticket.status!r}",
            ticket_number=ticket.ticket_number,
            value=ticket.status,
        )
    cancelled = ticket.status == RepairTicket.STATUS_CANCELLED
    index = progress_index(ticket.status)
    if cancelled:
        steps = [_step(s, False, False, False) for s in STATUS_ORDER]
        marker = _step(RepairTicket.STATUS_CANCELLED, False, True, False)
    else:
        steps = [_step(s, i < index, i == index, i > index) for i, s in enumerate(STATUS_ORDER)]
        marker = None
    return TimelineView(
        ticket_number=ticket.ticket_number,
        status=ticket.status,
        progress_index=index,
        steps=steps,
        age_in_days=age_in_days(ticket.created_at, now),
        is_overdue=is_overdue(ticket.status, ticket.created_at, now, overdue_after),
        is_cancelled=cancelled,
        cancelled_marker=marker,
    )


def project_timelines(tickets: Iterable[TicketRecord], now: Optional[datetime] = None, overdue_after: timedelta = OVERDUE_AFTER) -> TimelineBatch:
    now = now or datetime.now(timezone.utc)
    batch = TimelineBatch()
    for ticket in tickets:
        try:
            batch.rendered.append((ticket, project_timeline(ticket, now, overdue_after)))
        except DataIntegrityError as e:
            logger.warning('Omitting ticket %s from timeline view: unknown status %r', e.ticket_number, e.value)
            batch.omitted.append(ticket.ticket_number)
    return batch


def classify_priority(priority: str) -> str:
    """Display tier for a priority: urgent/high -> severe, normal -> medium, low -> mild."""
    try:
        return PRIORITY_TIERS[priority]
    except KeyError:
        raise DataIntegrityError(f"unknown priority {priority!r}", value=priority)


def summarize_tickets(tickets: Iterable[TicketRecord], now: Optional[datetime] = None, overdue_after: timedelta = OVERDUE_AFTER) -> Dict[str, int]:
    """Dashboard counters. Records with an unknown status are only counted in total and invalid."""
    now = now or datetime.now(timezone.utc)
    summary = {'total': 0, 'active': 0, 'completed': 0, 'cancelled': 0, 'overdue': 0, 'invalid': 0}
    for t in tickets:
        summary['total'] += 1
        if t.status not in KNOWN_STATUSES:
            summary['invalid'] += 1
        elif t.status == RepairTicket.STATUS_COMPLETED:
            summary['completed'] += 1
        elif t.status == RepairTicket.STATUS_CANCELLED:
            summary['cancelled'] += 1
        else:
            summary['active'] += 1
            if is_overdue(t.status, t.created_at, now, overdue_after):
                summary['overdue'] += 1
    return summary


__all__ = [
    'TicketResolver', 'TicketSearchResult', 'TimelineStep', 'TimelineView', 'TimelineBatch',
    'project_timeline', 'project_timelines', 'classify_priority', 'summarize_tickets',
    'progress_index', 'age_in_days', 'is_overdue',
    'KEY_TICKET_NUMBER', 'KEY_CUSTOMER_NAME', 'KEY_TYPES', 'STATUS_INFO',
]
