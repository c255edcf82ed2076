from __future__ import annotations
from typing import Iterable, Optional, Tuple
from flask import request, make_response
from repairdesk.config.pagination import normalize_pagination
from repairdesk.errors import ValidationError
import hashlib
from datetime import datetime, timezone, timedelta
from email.utils import parsedate_to_datetime, format_datetime

TIMESTAMP_TOLERANCE = timedelta(seconds=1)

def canonicalize_timestamp(dt: datetime) -> datetime:
    """Return UTC tz-aware timestamp truncated to whole seconds (microseconds removed)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0)

def iso_z(dt: datetime) -> str:
    return canonicalize_timestamp(dt).isoformat().replace('+00:00', 'Z')

def request_pagination() -> Tuple[int, int]:
    try:
        return normalize_pagination(request.args.get('page'), request.args.get('page_size'))
    except ValueError as e:
        raise ValidationError(str(e))

def compute_etag(ids: Iterable, total: int, page: int, page_size: int, latest_ts: Optional[str] = '') -> str:
    seed = f"{list(ids)}|{total}|{page}|{page_size}|{latest_ts or ''}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]

def build_list_payload(rows: list, total: int, page: int, page_size: int, **extra):
    payload = {
        'data': rows,
        'pagination': {
            'total': total,
            'page': page,
            'page_size': page_size,
            'returned': len(rows)
        }
    }
    payload.update(extra)
    return payload

def _http_date(dt: datetime) -> str:
    """Return RFC1123 HTTP-date string in GMT."""
    return format_datetime(dt, usegmt=True)

def _set_modified_headers(resp, latest_c: datetime):
    resp.headers['Last-Modified'] = _http_date(latest_c)
    # Provide original canonical ISO in secondary header for clients that prefer it
    resp.headers['X-Last-Modified-ISO'] = latest_c.isoformat().replace('+00:00', 'Z')

def make_cached_list_response(rows: list, total: int, page: int, page_size: int, latest_ts: Optional[datetime] = None, **extra):
    ids = [r.get('id') for r in rows]
    latest_ts_c = canonicalize_timestamp(latest_ts) if isinstance(latest_ts, datetime) else None
    latest_iso = latest_ts_c.isoformat().replace('+00:00', 'Z') if latest_ts_c else ''
    # Keep ETag seed stable using ISO canonical form
    etag = compute_etag(ids, total, page, page_size, latest_iso)
    resp = make_response(build_list_payload(rows, total, page, page_size, **extra))
    resp.headers['ETag'] = etag
    if latest_ts_c:
        _set_modified_headers(resp, latest_ts_c)
    return resp, etag

def _parse_if_modified_since(header_val: str) -> Optional[datetime]:
    if not header_val:
        return None
    # Try ISO 8601 first
    try:
        dt = datetime.fromisoformat(header_val.replace('Z', '+00:00'))
    except ValueError:
        # Fall back to HTTP-date (RFC 1123)
        try:
            dt = parsedate_to_datetime(header_val)
        except (TypeError, ValueError):
            return None
    if dt and dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt

def handle_conditional(etag_value: str, latest_ts: Optional[datetime]):
    """Evaluate conditional request headers.

    Precedence: If-None-Match over If-Modified-Since (per RFC 9110 semantics).
    Returns a 304 response object if conditions satisfied, else None.
    """
    inm = request.headers.get('If-None-Match')
    if inm and inm.strip('"') == etag_value:
        resp = make_response('', 304)
        resp.headers['ETag'] = etag_value
        if latest_ts:
            _set_modified_headers(resp, canonicalize_timestamp(latest_ts))
        return resp
    # Only evaluate If-Modified-Since if If-None-Match was not a match / absent
    ims_raw = request.headers.get('If-Modified-Since')
    if ims_raw and latest_ts:
        ims_dt = _parse_if_modified_since(ims_raw)
        if ims_dt:
            latest_c = canonicalize_timestamp(latest_ts)
            ims_c = canonicalize_timestamp(ims_dt)
            if latest_c <= ims_c + TIMESTAMP_TOLERANCE:
                resp = make_response('', 304)
                resp.headers['ETag'] = etag_value
                _set_modified_headers(resp, latest_c)
                return resp
    return None
