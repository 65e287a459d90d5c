"""
Identity collaborator: resolves the acting principal for a request.

WHY: Credential checks are done by the upstream identity provider. What the
order and reporting services need is the (user_id, role, company_id) triple,
which is looked up here from the user id the provider forwards.

The company is always taken from the user row, never from client input, so a
caller cannot pick another tenant by editing a request.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import Request

from ..extensions import db
from ..models import User

USER_ID_HEADER = "X-User-Id"


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: str
    company_id: int | None


def load_principal(user_id: int) -> Principal | None:
    user = db.session.query(User).filter(
        User.id == user_id,
        User.is_active.is_(True),
        User.deleted_at.is_(None),
    ).first()
    if not user:
        return None
    return Principal(user_id=user.id, role=user.role, company_id=user.company_id)


def resolve_principal(request: Request) -> Principal | None:
    """Return the principal for ``request`` or None when it is anonymous/unknown."""
    raw = (request.headers.get(USER_ID_HEADER) or "").strip()
    if not raw.isdigit():
        return None
    return load_principal(int(raw))
