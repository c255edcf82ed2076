from __future__ import annotations
from typing import Optional, Set
from flask_jwt_extended import get_jwt, get_jwt_identity


def current_permissions() -> Set[str]:
    claims = get_jwt()
    return set(claims.get('perms', []))


def has_permissions(*codes: str) -> bool:
    perms = current_permissions()
    return all(c in perms for c in codes)


def current_actor_id() -> Optional[int]:
    """Integer JWT identity of the calling staff member, None if absent or non-numeric."""
    ident = get_jwt_identity()
    try:
        return int(ident) if ident is not None else None
    except (TypeError, ValueError):
        return None
