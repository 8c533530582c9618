# Overview: Caller identity supplied by the upstream auth/session gateway.

from __future__ import annotations

from dataclasses import dataclass

from flask import request

ROLE_ADMIN = "ADMIN"
ROLE_MANAGER = "MANAGER"
ROLE_STAFF = "STAFF"
ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF)

ROLE_HEADER = "X-User-Role"
LOCATION_HEADER = "X-Location-Id"
USER_HEADER = "X-User-Id"


@dataclass(frozen=True)
class Caller:
    role: str
    assigned_location_id: int | None = None
    user_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def _int_or_none(value: str | None) -> int | None:
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError:
        return None


def current_caller() -> Caller | None:
    """
    Build the caller from gateway headers on the current request.

    Authentication happens upstream; this service trusts the headers and only
    uses them for location-scoped authorization. Returns None when no known
    role is present.
    """
    role = (request.headers.get(ROLE_HEADER) or "").strip().upper()
    if role not in ROLES:
        return None
    return Caller(
        role=role,
        assigned_location_id=_int_or_none(request.headers.get(LOCATION_HEADER)),
        user_id=request.headers.get(USER_HEADER),
    )
