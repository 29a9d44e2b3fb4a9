# src/jewelrate/adapters/http/deps.py
"""
HTTP Dependencies - Service Container and Caller Identity

Authentication happens upstream (gateway / session layer). Requests reach
this service with the caller's identity in two headers:

  X-User-Id:   integer user id
  X-User-Role: customer | seller | admin | superadmin (default customer)

Files that USE this module:
- jewelrate.adapters.http.routes (Depends(...) on every endpoint)
- jewelrate.app (Services container)

Files that this module USES:
- jewelrate.domain.roles (Principal, Role)
"""
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Header, Request

from jewelrate.domain.errors import AuthenticationError, AuthorizationError
from jewelrate.domain.roles import Principal, Role


@dataclass
class Services:
    """Everything the routes need, built once by the composition root."""
    store: Any
    rate_cache: Any
    valuation: Any
    orders: Any
    inventory: Any
    metal_rates: Any
    payments: Any
    verifier: Any
    health: Any


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_principal(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Principal:
    """
    Build the caller's Principal from identity headers.

    Raises:
        AuthenticationError: Missing or non-integer user id
        AuthorizationError: Unknown role
    """
    if not x_user_id or not x_user_id.strip().isdigit():
        raise AuthenticationError("Authentication required")
    try:
        role = Role.parse(x_user_role) if x_user_role else Role.CUSTOMER
    except ValueError as e:
        raise AuthorizationError(str(e)) from None
    return Principal(user_id=int(x_user_id), role=role)
