from __future__ import annotations
"""Ticket storage boundary.

Everything above this module works with immutable ``TicketRecord`` values;
ORM rows are converted exactly once, by ``to_record``. Soft-deleted rows
(``deleted_at`` set) are excluded from every query here.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass, asdict
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from repairdesk.config.pagination import page_offset
from repairdesk.errors import TicketLookupError
from repairdesk.models.repair_ticket import RepairTicket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TicketRecord:
    id: int
    ticket_number: str
    customer_name: str
    device_type: str
    device_brand: str
    device_model: str
    issue_description: str
    status: str
    priority: str
    created_at: datetime
    updated_at: datetime
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    device_imei: Optional[str] = None
    estimated_cost: Optional[Decimal] = None
    final_cost: Optional[Decimal] = None
    estimated_completion: Optional[date] = None
    customer_notes: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _money(value) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal('0.01'))


def to_record(row: RepairTicket) -> TicketRecord:
    """Normalize an ORM row into the canonical TicketRecord.

    Status and priority are copied verbatim; unknown values are reported by the
    timeline projection, not hidden here.
    """
    return TicketRecord(
        id=row.id,
        ticket_number=row.ticket_number,
        customer_name=row.customer_name,
        device_type=row.device_type,
        device_brand=row.device_brand,
        device_model=row.device_model,
        issue_description=row.issue_description,
        status=row.status,
        priority=row.priority,
        created_at=_utc(row.created_at),
        updated_at=_utc(row.updated_at),
        customer_email=row.customer_email,
        customer_phone=row.customer_phone,
        device_imei=row.device_imei,
        estimated_cost=_money(row.estimated_cost),
        final_cost=_money(row.final_cost),
        estimated_completion=row.estimated_completion,
        customer_notes=row.customer_notes,
        notes=row.notes,
        created_by=row.created_by,
    )


class TicketStore(Protocol):
    """Read interface the resolver depends on. Both lookups are case-insensitive."""

    def find_by_ticket_number(self, number: str) -> Optional[TicketRecord]:
        ...

    def find_by_customer_name_substring(self, fragment: str, page: int, page_size: int) -> Tuple[List[TicketRecord], int]:
        ...


def _like_pattern(fragment: str) -> str:
    escaped = fragment.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f"%{escaped}%"


def _folded_like(column, fragment: str):
    # both sides lowered in SQL; SQLite gets a Unicode-aware lower() from create_app
    return func.lower(column).like(_like_pattern(fragment.lower()), escape='\\')


@contextmanager
def _storage_errors(operation: str):
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception('Ticket storage failure during %s', operation)
        raise TicketLookupError(f"ticket lookup failed ({operation})") from exc


class SqlTicketStore:
    """SQLAlchemy implementation of TicketStore plus the admin list queries."""

    def __init__(self, session: Session):
        self.session = session

    def _live(self):
        return select(RepairTicket).where(RepairTicket.deleted_at.is_(None))

    def _page(self, stmt, page: int, page_size: int) -> Tuple[List[TicketRecord], int]:
        total = self.session.execute(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        ).scalar_one()
        rows = self.session.execute(
            stmt.order_by(RepairTicket.created_at.desc(), RepairTicket.id.desc())
            .offset(page_offset(page, page_size))
            .limit(page_size)
        ).scalars().all()
        return [to_record(r) for r in rows], int(total)

    def find_by_ticket_number(self, number: str) -> Optional[TicketRecord]:
        with _storage_errors('find_by_ticket_number'):
            row = self.session.execute(
                self._live()
                .where(func.lower(RepairTicket.ticket_number) == number.lower())
                .order_by(RepairTicket.created_at.desc())
                .limit(1)
            ).scalars().first()
        return to_record(row) if row is not None else None

    def find_by_customer_name_substring(self, fragment: str, page: int, page_size: int) -> Tuple[List[TicketRecord], int]:
        with _storage_errors('find_by_customer_name_substring'):
            stmt = self._live().where(_folded_like(RepairTicket.customer_name, fragment))
            return self._page(stmt, page, page_size)

    def list_tickets(self, status: Optional[str] = None, search: Optional[str] = None, page: int = 1, page_size: int = 10) -> Tuple[List[TicketRecord], int]:
        """Admin list: optional exact status filter and customer name / device model substring search."""
        with _storage_errors('list_tickets'):
            stmt = self._live()
            if status:
                stmt = stmt.where(RepairTicket.status == status)
            if search:
                stmt = stmt.where(or_(
                    _folded_like(RepairTicket.customer_name, search),
                    _folded_like(RepairTicket.device_model, search),
                ))
            return self._page(stmt, page, page_size)

    def all_tickets(self) -> List[TicketRecord]:
        with _storage_errors('all_tickets'):
            rows = self.session.execute(
                self._live().order_by(RepairTicket.created_at.desc(), RepairTicket.id.desc())
            ).scalars().all()
        return [to_record(r) for r in rows]

    def get(self, ticket_id: int) -> Optional[RepairTicket]:
        """Live ORM row for mutation by the lifecycle service."""
        with _storage_errors('get'):
            return self.session.execute(
                self._live().where(RepairTicket.id == ticket_id)
            ).scalar_one_or_none()


__all__ = ['TicketRecord', 'TicketStore', 'SqlTicketStore', 'to_record']
