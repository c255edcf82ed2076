from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, Date, DateTime, Numeric
from repairdesk.models.base import Base, utcnow

class RepairTicket(Base):
    __tablename__ = 'repair_tickets'
    # Status constants
    STATUS_RECEIVED = 'received'
    STATUS_DIAGNOSING = 'diagnosing'
    STATUS_AWAITING_PARTS = 'awaiting_parts'
    STATUS_REPAIRING = 'repairing'
    STATUS_QUALITY_CHECK = 'quality_check'
    STATUS_READY = 'ready'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    # Linear repair order; cancelled sits outside it
    STATUS_ORDER = (
        STATUS_RECEIVED, STATUS_DIAGNOSING, STATUS_AWAITING_PARTS, STATUS_REPAIRING,
        STATUS_QUALITY_CHECK, STATUS_READY, STATUS_COMPLETED,
    )
    ALL_STATUSES = STATUS_ORDER + (STATUS_CANCELLED,)
    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)
    # Priority constants
    PRIORITY_LOW = 'low'
    PRIORITY_NORMAL = 'normal'
    PRIORITY_HIGH = 'high'
    PRIORITY_URGENT = 'urgent'
    ALL_PRIORITIES = (PRIORITY_LOW, PRIORITY_NORMAL, PRIORITY_HIGH, PRIORITY_URGENT)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    customer_name: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    device_type: Mapped[str] = mapped_column(String(80), nullable=False)
    device_brand: Mapped[str] = mapped_column(String(80), nullable=False)
    device_model: Mapped[str] = mapped_column(String(120), nullable=False)
    device_imei: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    issue_description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_RECEIVED, index=True)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default=PRIORITY_NORMAL)
    estimated_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    final_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    estimated_completion: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    customer_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

# Status flow: received -> diagnosing -> (awaiting_parts) -> repairing -> quality_check -> ready -> completed
# cancelled is reachable from every non-terminal state; see services/lifecycle.py for the full table.
