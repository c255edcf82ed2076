from __future__ import annotations
import logging
from datetime import datetime, timedelta, timezone
from flask import Blueprint, request, current_app
from repairdesk import get_db
from repairdesk.services.audit import add_audit
from repairdesk.services.resolver import TicketResolver, TicketSearchResult, KEY_TICKET_NUMBER, KEY_CUSTOMER_NAME
from repairdesk.services.ticket_store import SqlTicketStore
from repairdesk.utils.listing import build_list_payload, request_pagination
from repairdesk.utils.serialize import render_ticket_rows

logger = logging.getLogger(__name__)

track_bp = Blueprint('tracking', __name__)

NO_MATCH_MESSAGES = {
    KEY_TICKET_NUMBER: 'No ticket found with that ticket number.',
    KEY_CUSTOMER_NAME: 'No tickets found for that customer name.',
}


def _tracking_payload(result: TicketSearchResult):
    rows, omitted = render_ticket_rows(
        result.tickets,
        datetime.now(timezone.utc),
        timedelta(days=current_app.config['TICKET_OVERDUE_DAYS']),
        current_app.config['CURRENCY_PREFIX'],
        public=True,
        with_timeline=True,
    )
    selected = None
    single = result.single
    if single is not None and rows:
        selected = single.ticket_number
        # "ticket viewed" event belongs to this presentation layer, not the resolver
        try:
            add_audit('RPR.TICKET.VIEW', 'RepairTicket', single.id, {'ticket_number': single.ticket_number, 'key_type': result.key_type})
            get_db().commit()
        except Exception:
            logger.exception('Audit write failed for RPR.TICKET.VIEW on %s', single.ticket_number)
            get_db().rollback()
    message = None if result.total_matched else NO_MATCH_MESSAGES[result.key_type]
    return build_list_payload(
        rows, result.total_matched, result.page, result.page_size,
        omitted=len(omitted), selected=selected, message=message,
    )


@track_bp.get('')
def track():
    page, page_size = request_pagination()
    resolver = TicketResolver(SqlTicketStore(get_db()))
    result = resolver.search(request.args.get('q', ''), request.args.get('type', KEY_TICKET_NUMBER), page, page_size)
    return _tracking_payload(result)


@track_bp.get('/<string:ticket_number>')
def track_by_number(ticket_number: str):
    resolver = TicketResolver(SqlTicketStore(get_db()))
    return _tracking_payload(resolver.search(ticket_number, KEY_TICKET_NUMBER))
