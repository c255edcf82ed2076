from __future__ import annotations
from typing import Any, Dict, Optional
from flask_jwt_extended import get_jwt
from repairdesk import get_db
from repairdesk.models.audit import AuditLog
from repairdesk.services.policy import current_actor_id

ANONYMOUS_ACTOR = 0


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[str] = None, meta: Optional[Dict[str, Any]] = None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: short action code e.g. RPR.TICKET.CREATE, RPR.TICKET.VIEW
      entity: optional entity name (RepairTicket)
      entity_id: optional primary key string
      meta: additional JSON-safe dictionary (will be shallow copied)
    """
    session = get_db()
    claims = {}
    actor = None
    try:
        claims = get_jwt() or {}
        actor = current_actor_id()
    except RuntimeError:
        pass  # no verified JWT in this request (public tracking); recorded anonymously
    log = AuditLog(
        actor_user_id=actor or ANONYMOUS_ACTOR,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        perms_snapshot={'perms': claims.get('perms', [])},
        meta=dict(meta or {}),
    )
    session.add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log
