from __future__ import annotations
from datetime import datetime, timedelta, timezone
from flask import Blueprint, request, abort, current_app, make_response, jsonify
from repairdesk.decorators.auth import require_permissions
from repairdesk.decorators.audit import audit_log
from repairdesk.constants.permissions import PERM_READ, PERM_MANAGE, PERM_OVERRIDE
from repairdesk.utils.listing import make_cached_list_response, handle_conditional, request_pagination, compute_etag, iso_z, _set_modified_headers, canonicalize_timestamp
from repairdesk.utils.serialize import render_ticket_rows, ticket_json
from repairdesk.utils.validation import validate_status
from repairdesk.services.policy import has_permissions, current_actor_id
from repairdesk.services.resolver import TicketResolver, KEY_CUSTOMER_NAME, summarize_tickets
from repairdesk.services.ticket_store import SqlTicketStore, to_record
from repairdesk.services import lifecycle
from repairdesk import get_db
from repairdesk.models.repair_ticket import RepairTicket

rpr_bp = Blueprint('repairs', __name__)

AUDIT_DIFF_KEYS = ['status', 'priority', 'estimated_cost', 'final_cost', 'estimated_completion']


def _overdue_after() -> timedelta:
    return timedelta(days=current_app.config['TICKET_OVERDUE_DAYS'])


def _render(records, with_timeline: bool = False):
    return render_ticket_rows(
        records,
        datetime.now(timezone.utc),
        _overdue_after(),
        current_app.config['CURRENCY_PREFIX'],
        with_timeline=with_timeline,
    )


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description='JSON object body required')
    return data


def _load_ticket(ticket_id: int) -> RepairTicket:
    t = SqlTicketStore(get_db()).get(ticket_id)
    if not t:
        abort(404)
    return t


def _ticket_response(t: RepairTicket):
    """Full staff view of one ticket; the timeline is null when the stored status is corrupt."""
    record = to_record(t)
    rows, _ = _render([record], with_timeline=True)
    if rows:
        return rows[0]
    body = ticket_json(record)
    body['timeline'] = None
    return body


@rpr_bp.route('/tickets', methods=['GET', 'HEAD'])
@require_permissions(PERM_READ)
def list_tickets():
    store = SqlTicketStore(get_db())
    page, page_size = request_pagination()
    q = request.args.get('q')
    if q is not None:
        result = TicketResolver(store).search(q, request.args.get('type', KEY_CUSTOMER_NAME), page, page_size)
        records, total = result.tickets, result.total_matched
    else:
        status = request.args.get('status')
        if status and status != 'all':
            validate_status(status, RepairTicket.ALL_STATUSES)
        else:
            status = None
        records, total = store.list_tickets(status=status, search=request.args.get('search'), page=page, page_size=page_size)
    rows, omitted = _render(records)
    latest_ts = max((r.updated_at for r in records), default=None)
    resp, etag = make_cached_list_response(rows, total, page, page_size, latest_ts, omitted=len(omitted))
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp


@rpr_bp.get('/tickets/summary')
@require_permissions(PERM_READ)
def tickets_summary():
    records = SqlTicketStore(get_db()).all_tickets()
    return summarize_tickets(records, datetime.now(timezone.utc), _overdue_after())


@rpr_bp.route('/tickets/<int:ticket_id>', methods=['GET', 'HEAD'])
@require_permissions(PERM_READ)
def get_ticket(ticket_id: int):
    t = _load_ticket(ticket_id)
    latest_ts = t.updated_at
    etag = compute_etag([t.id], 1, 1, 1, iso_z(latest_ts) if latest_ts else '')
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    resp = make_response(jsonify(_ticket_response(t)))
    resp.headers['ETag'] = etag
    if latest_ts:
        _set_modified_headers(resp, canonicalize_timestamp(latest_ts))
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp


@rpr_bp.post('/tickets')
@require_permissions(PERM_MANAGE)
@audit_log('RPR.TICKET.CREATE', entity='RepairTicket', entity_id_key='id', meta_keys=['ticket_number', 'customer_name', 'status', 'priority'])
def create_ticket():
    t = lifecycle.create_ticket(
        get_db(),
        _json_body(),
        actor_id=current_actor_id(),
        prefix=current_app.config['TICKET_NUMBER_PREFIX'],
    )
    return _ticket_response(t), 201


@rpr_bp.patch('/tickets/<int:ticket_id>')
@require_permissions(PERM_MANAGE)
@audit_log(
    'RPR.TICKET.UPDATE', entity='RepairTicket', entity_id_key='id', diff_keys=AUDIT_DIFF_KEYS,
    pre_fetch=lambda a, kw: _prefetch_ticket(kw.get('ticket_id')),
    meta_builder=lambda data, rv, a, kw: {'status': data.get('status'), 'override': _override_requested()},
)
def update_ticket(ticket_id: int):
    data = dict(_json_body())
    override = data.pop('override', False)
    if not isinstance(override, bool):
        abort(400, description='override must be a boolean')
    if override and not has_permissions(PERM_OVERRIDE):
        abort(403, description='Missing permission')
    t = _load_ticket(ticket_id)
    lifecycle.update_ticket(get_db(), t, data, override=override)
    return _ticket_response(t)


@rpr_bp.post('/tickets/<int:ticket_id>/cancel')
@require_permissions(PERM_MANAGE)
@audit_log('RPR.TICKET.CANCEL', entity='RepairTicket', entity_id_key='id', diff_keys=['status'], pre_fetch=lambda a, kw: _prefetch_ticket(kw.get('ticket_id')), meta_keys=['status'])
def cancel_ticket(ticket_id: int):
    t = _load_ticket(ticket_id)
    lifecycle.cancel_ticket(get_db(), t)
    return _ticket_response(t)


@rpr_bp.delete('/tickets/<int:ticket_id>')
@require_permissions(PERM_MANAGE)
@audit_log('RPR.TICKET.DELETE', entity='RepairTicket', entity_id_arg='ticket_id')
def delete_ticket(ticket_id: int):
    t = _load_ticket(ticket_id)
    lifecycle.soft_delete_ticket(get_db(), t)
    return '', 204


def _override_requested() -> bool:
    body = request.get_json(silent=True)
    return isinstance(body, dict) and body.get('override') is True


def _prefetch_ticket(ticket_id: int):
    t = SqlTicketStore(get_db()).get(ticket_id)
    if not t:
        return {}
    body = ticket_json(to_record(t))
    return {k: body[k] for k in AUDIT_DIFF_KEYS}
