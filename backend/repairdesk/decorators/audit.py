from __future__ import annotations
"""Audit logging decorator to keep add_audit() calls out of route bodies.

Usage examples:

@audit_log('RPR.TICKET.CREATE', entity='RepairTicket', entity_id_key='id', meta_keys=['ticket_number'])
def create_ticket():
    ... return {'id': t.id, 'ticket_number': t.ticket_number}, 201

@audit_log('RPR.TICKET.UPDATE', entity='RepairTicket', entity_id_key='id',
           diff_keys=['status', 'priority'], pre_fetch=lambda a, kw: _prefetch_ticket(kw['ticket_id']))
def update_ticket(ticket_id): ...

Parameters:
  action: required audit action code (e.g. RPR.TICKET.CANCEL)
  entity: optional entity label (RepairTicket)
  entity_id_key: key in the returned JSON object whose value becomes entity_id.
  entity_id_arg: name of the function argument / path parameter to use for entity_id
      (fallback if entity_id_key absent, and the only source for bodiless responses such as 204).
  meta_keys: list of keys to project from returned JSON into meta dict (shallow copy).
  meta_builder: callable returning a meta dict; receives (data, original_return_value, args, kwargs).
      If provided it overrides meta_keys.
  diff_keys / pre_fetch: pre_fetch(args, kwargs) snapshots the entity before the view runs;
      keys listed in diff_keys whose value changed are stored under meta['changes'].

Return handling:
  Flask view functions commonly return one of:
    dict
    (dict, status)
    (body, status, headers)
  The decorator extracts the first element as the JSON payload for key/meta extraction while
  preserving the original return value.
"""

import logging
from functools import wraps
from typing import Any, Callable, Iterable, Optional, Dict

from repairdesk.services.audit import add_audit
from repairdesk import get_db

logger = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return (data, original_rv) where data is the JSON-able dict for inspection."""
    if isinstance(rv, tuple) and rv:
        data = rv[0]
        return data, rv
    return rv, rv


def _diff(before: Dict[str, Any], after: Dict[str, Any], keys: Iterable[str]) -> Dict[str, Any]:
    changes = {}
    for k in keys:
        if k in before and k in after and before.get(k) != after.get(k):
            changes[k] = {'before': before.get(k), 'after': after.get(k)}
    return changes


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    commit: bool = True,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before_snapshot = pre_fetch(args, kwargs) if diff_keys and pre_fetch else None
            rv = fn(*args, **kwargs)
            try:
                data, _ = _extract_payload(rv)
                entity_id = None
                meta = None
                if isinstance(data, dict):
                    if entity_id_key and entity_id_key in data:
                        entity_id = data.get(entity_id_key)
                    if meta_builder:
                        meta = meta_builder(data, rv, args, kwargs)
                    elif meta_keys:
                        meta = {k: data.get(k) for k in meta_keys if k in data}
                    if diff_keys and isinstance(before_snapshot, dict):
                        changes = _diff(before_snapshot, data, diff_keys)
                        if changes:
                            meta = dict(meta or {})
                            meta['changes'] = changes
                if entity_id is None and entity_id_arg and entity_id_arg in kwargs:
                    entity_id = kwargs.get(entity_id_arg)
                add_audit(action, entity, entity_id, meta)
                if commit:
                    get_db().commit()
            except Exception:
                # mutation already committed; audit failures only log
                logger.exception('Audit write failed for %s', action)
                get_db().rollback()
            return rv
        return wrapper
    return outer
