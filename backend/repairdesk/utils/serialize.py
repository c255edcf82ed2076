from __future__ import annotations
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from repairdesk.errors import DataIntegrityError
from repairdesk.services.resolver import OVERDUE_AFTER, classify_priority, project_timelines
from repairdesk.services.ticket_store import TicketRecord
from repairdesk.utils.listing import iso_z

logger = logging.getLogger(__name__)

# Staff-only fields never sent to the public tracking page
INTERNAL_FIELDS = ('notes', 'created_by', 'customer_email', 'customer_phone', 'device_imei')


def money(value: Optional[Decimal], prefix: str = '$') -> Optional[str]:
    if value is None:
        return None
    return f"{prefix}{value:,.2f}"


def ticket_json(t: TicketRecord, public: bool = False) -> dict:
    body = {
        'id': t.id,
        'ticket_number': t.ticket_number,
        'customer_name': t.customer_name,
        'customer_email': t.customer_email,
        'customer_phone': t.customer_phone,
        'device_type': t.device_type,
        'device_brand': t.device_brand,
        'device_model': t.device_model,
        'device_imei': t.device_imei,
        'issue_description': t.issue_description,
        'status': t.status,
        'priority': t.priority,
        'estimated_cost': str(t.estimated_cost) if t.estimated_cost is not None else None,
        'final_cost': str(t.final_cost) if t.final_cost is not None else None,
        'estimated_completion': t.estimated_completion.isoformat() if t.estimated_completion else None,
        'customer_notes': t.customer_notes,
        'notes': t.notes,
        'created_by': t.created_by,
        'created_at': iso_z(t.created_at),
        'updated_at': iso_z(t.updated_at),
    }
    if public:
        for name in INTERNAL_FIELDS:
            body.pop(name, None)
    return body


def render_ticket_rows(
    records: Iterable[TicketRecord],
    now: datetime,
    overdue_after: timedelta = OVERDUE_AFTER,
    currency_prefix: str = '$',
    public: bool = False,
    with_timeline: bool = False,
) -> Tuple[List[dict], List[str]]:
    """Render tickets with their derived view; returns (rows, omitted ticket numbers).

    A record with an unknown status or priority is logged and omitted without
    affecting the other rows.
    """
    batch = project_timelines(records, now, overdue_after)
    rows: List[dict] = []
    omitted = list(batch.omitted)
    for record, view in batch.rendered:
        try:
            tier = classify_priority(record.priority)
        except DataIntegrityError:
            logger.warning('Omitting ticket %s: unknown priority %r', record.ticket_number, record.priority)
            omitted.append(record.ticket_number)
            continue
        row = ticket_json(record, public=public)
        row.update({
            'priority_tier': tier,
            'progress_index': view.progress_index,
            'age_in_days': view.age_in_days,
            'is_overdue': view.is_overdue,
            'estimated_cost_display': money(record.estimated_cost, currency_prefix),
            'final_cost_display': money(record.final_cost, currency_prefix),
        })
        if with_timeline:
            row['timeline'] = view.as_dict()
        rows.append(row)
    return rows, omitted
