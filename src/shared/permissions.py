"""Role → capability mapping (permission provider).

Roles are assigned by the identity system; capabilities are the boolean flags the
ordering flows consume. Only the order, payment and inventory capabilities are
modelled here.
"""

from dataclasses import dataclass
from enum import Enum


class Role(Enum):
    USER = "ROLE_USER"
    ADMIN = "ROLE_ADMIN"
    CONTENT_MANAGER = "ROLE_CONTENT_MANAGER"
    SUPPORT_AGENT = "ROLE_SUPPORT_AGENT"
    WAREHOUSE = "ROLE_WAREHOUSE"
    SUPER_ADMIN = "ROLE_SUPER_ADMIN"


_CAPABILITY_ROLES = {
    "can_view_all_orders": {Role.WAREHOUSE, Role.CONTENT_MANAGER, Role.SUPPORT_AGENT, Role.SUPER_ADMIN},
    "can_fulfill_orders": {Role.WAREHOUSE, Role.SUPER_ADMIN},
    "can_cancel_orders": {Role.CONTENT_MANAGER, Role.SUPER_ADMIN},
    "can_view_payments": {Role.SUPPORT_AGENT, Role.CONTENT_MANAGER, Role.SUPER_ADMIN},
    "can_process_refunds": {Role.SUPPORT_AGENT, Role.CONTENT_MANAGER, Role.SUPER_ADMIN},
    "can_view_inventory": {Role.WAREHOUSE, Role.CONTENT_MANAGER, Role.SUPER_ADMIN},
    "can_adjust_inventory": {Role.WAREHOUSE, Role.CONTENT_MANAGER, Role.SUPER_ADMIN},
}


@dataclass(frozen=True)
class Capabilities:
    """Boolean permission flags derived from a principal's roles."""

    can_view_all_orders: bool = False
    can_fulfill_orders: bool = False
    can_cancel_orders: bool = False
    can_view_payments: bool = False
    can_process_refunds: bool = False
    can_view_inventory: bool = False
    can_adjust_inventory: bool = False


def _parse_roles(roles) -> set[Role]:
    parsed = set()
    for role in roles or ():
        if isinstance(role, Role):
            parsed.add(role)
            continue
        try:
            parsed.add(Role(str(role).strip()))
        except ValueError:
            continue  # Unknown roles grant nothing
    return parsed


def capabilities_for(roles) -> Capabilities:
    """Derive the capability record for a collection of role names or Role members."""
    held = _parse_roles(roles)
    return Capabilities(**{flag: bool(held & granted) for flag, granted in _CAPABILITY_ROLES.items()})
