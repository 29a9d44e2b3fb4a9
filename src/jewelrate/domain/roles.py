# src/jewelrate/domain/roles.py
"""
Roles and Capabilities - Authorization Rules

Replaces string comparisons on role names with a closed set of roles and
a static capability table. Services call require() at their entry points.

Files that USE this module:
- jewelrate.application.* (services check capabilities)
- jewelrate.adapters.http.deps (builds Principal from request headers)

Files that this module USES:
- jewelrate.domain.errors (AuthorizationError)
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet

from jewelrate.domain.errors import AuthorizationError


class Role(str, Enum):
    CUSTOMER = "customer"
    SELLER = "seller"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"

    @classmethod
    def parse(cls, value: str) -> "Role":
        """
        Parse a role name, rejecting anything outside the closed set.

        Raises:
            ValueError: If the name is not a known role
        """
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown role: {value!r}") from None


class Capability(str, Enum):
    PLACE_ORDERS = "place_orders"
    MANAGE_OWN_INVENTORY = "manage_own_inventory"
    MANAGE_ANY_INVENTORY = "manage_any_inventory"
    MANAGE_ANY_ORDER = "manage_any_order"
    MANAGE_METAL_RATES = "manage_metal_rates"


_CUSTOMER = frozenset({Capability.PLACE_ORDERS})
_SELLER = _CUSTOMER | {Capability.MANAGE_OWN_INVENTORY}
_ADMIN = _SELLER | {Capability.MANAGE_ANY_INVENTORY, Capability.MANAGE_ANY_ORDER}

ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.CUSTOMER: _CUSTOMER,
    Role.SELLER: _SELLER,
    Role.ADMIN: _ADMIN,
    Role.SUPERADMIN: _ADMIN | {Capability.MANAGE_METAL_RATES},
}


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as handed over by the external auth layer."""
    user_id: int
    role: Role = Role.CUSTOMER

    def can(self, capability: Capability) -> bool:
        return has_capability(self.role, capability)


def has_capability(role: Role, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def require(principal: Principal, capability: Capability) -> None:
    """
    Ensure the principal holds a capability.

    Raises:
        AuthorizationError: If the capability is missing
    """
    if not principal.can(capability):
        raise AuthorizationError(
            f"Role '{principal.role.value}' lacks capability '{capability.value}'"
        )


def require_owner_or(principal: Principal, owner_id: object, capability: Capability) -> None:
    """Allow the record owner, or anyone holding the override capability."""
    if owner_id is not None and principal.user_id == owner_id:
        return
    require(principal, capability)
