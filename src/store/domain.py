"""Store bounded context: the authoritative backend behind the storefront.

Owns stock snapshots, server-side carts, orders and payment attempts. Every
state change goes through a command handler; the HTTP layer in store.api only
translates requests into commands and aggregates into envelope payloads.
"""

import structlog
from protean.domain import Domain

store = Domain(name="store")

logger = structlog.get_logger(__name__)
