"""Request principal resolved from headers set by the upstream auth layer."""

from dataclasses import dataclass, field

from fastapi import Header
from shared.permissions import Capabilities, capabilities_for

from store.cart.cart import owner_key_for
from store.errors import Unauthenticated


@dataclass(frozen=True)
class Principal:
    user_id: str | None = None
    roles: tuple[str, ...] = ()
    guest_session: str | None = None
    guest_email: str | None = None
    capabilities: Capabilities = field(default_factory=Capabilities)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @property
    def owner_key(self) -> str:
        return owner_key_for(self.user_id, self.guest_session)


async def current_principal(
    x_user_id: str | None = Header(default=None),
    x_user_roles: str | None = Header(default=None),
    x_guest_session: str | None = Header(default=None),
    x_guest_email: str | None = Header(default=None),
) -> Principal:
    roles = tuple(role.strip() for role in (x_user_roles or "").split(",") if role.strip())
    return Principal(
        user_id=x_user_id or None,
        roles=roles if x_user_id else (),
        guest_session=x_guest_session or None,
        guest_email=x_guest_email or None,
        capabilities=capabilities_for(roles) if x_user_id else Capabilities(),
    )


async def authenticated_principal(
    x_user_id: str | None = Header(default=None),
    x_user_roles: str | None = Header(default=None),
    x_guest_session: str | None = Header(default=None),
    x_guest_email: str | None = Header(default=None),
) -> Principal:
    principal = await current_principal(x_user_id, x_user_roles, x_guest_session, x_guest_email)
    if not principal.is_authenticated:
        raise Unauthenticated("Please sign in to continue")
    return principal
