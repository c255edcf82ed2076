from __future__ import annotations
"""Staff-side ticket mutations: creation, edits, cancellation and soft deletion.

Status edits follow ``TICKET_FSM``; an administrative override skips the
table but still only accepts the eight known statuses.
"""
import logging
import re
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from repairdesk.errors import RepairDeskError, TransitionError, ValidationError
from repairdesk.models.base import utcnow
from repairdesk.models.repair_ticket import RepairTicket
from repairdesk.utils.fsm import TransitionValidator
from repairdesk.utils.validation import validate_status, require_fields, parse_cost, parse_date

logger = logging.getLogger(__name__)

T = RepairTicket

TICKET_FSM = TransitionValidator({
    T.STATUS_RECEIVED: {T.STATUS_DIAGNOSING, T.STATUS_CANCELLED},
    T.STATUS_DIAGNOSING: {T.STATUS_AWAITING_PARTS, T.STATUS_REPAIRING, T.STATUS_CANCELLED},
    T.STATUS_AWAITING_PARTS: {T.STATUS_REPAIRING, T.STATUS_CANCELLED},
    T.STATUS_REPAIRING: {T.STATUS_AWAITING_PARTS, T.STATUS_QUALITY_CHECK, T.STATUS_CANCELLED},
    T.STATUS_QUALITY_CHECK: {T.STATUS_REPAIRING, T.STATUS_READY, T.STATUS_CANCELLED},
    T.STATUS_READY: {T.STATUS_COMPLETED, T.STATUS_CANCELLED},
    T.STATUS_COMPLETED: set(),
    T.STATUS_CANCELLED: set(),
})

REQUIRED_CREATE_FIELDS = ('customer_name', 'device_type', 'device_brand', 'device_model', 'issue_description')
OPTIONAL_TEXT_FIELDS = ('customer_email', 'customer_phone', 'device_imei', 'customer_notes', 'notes')
IMMUTABLE_FIELDS = ('id', 'ticket_number', 'created_at', 'created_by')
CREATE_ATTEMPTS = 3


def generate_ticket_number(session: Session, prefix: str = 'RPR', now: Optional[datetime] = None) -> str:
    """Next ``PREFIX-YYYY-NNNN`` for the current year.

    Soft-deleted tickets still count, so a number is never handed out twice.
    """
    year = (now or utcnow()).year
    base = f"{prefix}-{year}-"
    pattern = re.compile(rf"^{re.escape(base)}(\d+)$")
    highest = 0
    for number in session.execute(
        select(RepairTicket.ticket_number).where(RepairTicket.ticket_number.like(f"{base}%"))
    ).scalars():
        m = pattern.match(number)
        if m:
            highest = max(highest, int(m.group(1)))
    return f"{base}{highest + 1:04d}"


def _optional_text(data: Mapping[str, Any], name: str) -> Optional[str]:
    value = data.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} invalid")
    return value.strip() or None


def create_ticket(session: Session, data: Mapping[str, Any], actor_id: Optional[int] = None, prefix: str = 'RPR') -> RepairTicket:
    require_fields(data, REQUIRED_CREATE_FIELDS)
    priority = validate_status(data.get('priority') or T.PRIORITY_NORMAL, T.ALL_PRIORITIES, 'priority')
    fields: Dict[str, Any] = {f: data[f].strip() for f in REQUIRED_CREATE_FIELDS}
    fields.update({f: _optional_text(data, f) for f in OPTIONAL_TEXT_FIELDS})
    fields['estimated_cost'] = parse_cost(data.get('estimated_cost'), 'estimated_cost')
    fields['estimated_completion'] = parse_date(data.get('estimated_completion'), 'estimated_completion')

    attempt = 0
    while True:
        attempt += 1
        now = utcnow()
        ticket = RepairTicket(
            ticket_number=generate_ticket_number(session, prefix, now),
            status=T.STATUS_RECEIVED,
            priority=priority,
            created_by=actor_id,
            created_at=now,
            updated_at=now,
            **fields,
        )
        session.add(ticket)
        try:
            session.commit()
            return ticket
        except IntegrityError:
            session.rollback()
            if attempt >= CREATE_ATTEMPTS:
                raise
            logger.warning('Ticket number %s taken concurrently, retrying', ticket.ticket_number)


def change_status(ticket: RepairTicket, target: str, override: bool = False) -> bool:
    """Apply a status change; returns False when the ticket already has that status."""
    validate_status(target, T.ALL_STATUSES)
    if target == ticket.status:
        return False
    if not override:
        TICKET_FSM.assert_can_transition(ticket.status, target)
    else:
        logger.info('Status override on %s: %s -> %s', ticket.ticket_number, ticket.status, target)
    ticket.status = target
    return True


def update_ticket(session: Session, ticket: RepairTicket, data: Mapping[str, Any], override: bool = False) -> RepairTicket:
    try:
        for name in IMMUTABLE_FIELDS:
            if name in data:
                raise ValidationError(f"{name} is immutable")
        if 'status' in data:
            change_status(ticket, data['status'], override=override)
        if 'priority' in data:
            ticket.priority = validate_status(data['priority'], T.ALL_PRIORITIES, 'priority')
        for name in ('estimated_cost', 'final_cost'):
            if name in data:
                setattr(ticket, name, parse_cost(data[name], name))
        if 'estimated_completion' in data:
            ticket.estimated_completion = parse_date(data['estimated_completion'], 'estimated_completion')
        if 'issue_description' in data:
            require_fields(data, ('issue_description',))
            ticket.issue_description = data['issue_description'].strip()
        for name in OPTIONAL_TEXT_FIELDS:
            if name in data:
                setattr(ticket, name, _optional_text(data, name))
    except RepairDeskError:
        # leave no half-applied edit in the scoped session
        session.rollback()
        raise
    ticket.updated_at = utcnow()
    session.commit()
    return ticket


def cancel_ticket(session: Session, ticket: RepairTicket, override: bool = False) -> RepairTicket:
    if TICKET_FSM.is_terminal(ticket.status) and not override:
        raise TransitionError(f"Ticket {ticket.ticket_number} is already {ticket.status}")
    return update_ticket(session, ticket, {'status': T.STATUS_CANCELLED}, override=override)


def soft_delete_ticket(session: Session, ticket: RepairTicket) -> RepairTicket:
    now = utcnow()
    ticket.deleted_at = now
    ticket.updated_at = now
    session.commit()
    return ticket


__all__ = [
    'TICKET_FSM', 'generate_ticket_number', 'create_ticket', 'change_status',
    'update_ticket', 'cancel_ticket', 'soft_delete_ticket',
]
