"""User-visible failure notices, scoped to the part of the page they belong to.

Blocking notices stay until dismissed. Non-blocking ones expire after the
board's ttl; expiry is evaluated whenever the board is read.
"""

import itertools
import time
from dataclasses import dataclass
from enum import Enum

import structlog

logger = structlog.get_logger(__name__)


class NoticeScope(Enum):
    ITEM = "ITEM"
    CART = "CART"
    ORDER = "ORDER"
    PAYMENT = "PAYMENT"


@dataclass
class Notice:
    id: int
    scope: NoticeScope
    message: str
    key: str | None = None
    error_code: str | None = None
    blocking: bool = False
    expires_at: float | None = None


class NoticeBoard:
    def __init__(self, ttl: float = 5.0, clock=time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._ids = itertools.count(1)
        self._notices: list[Notice] = []

    def post(
        self,
        scope: NoticeScope,
        message: str,
        key: str | None = None,
        error_code: str | None = None,
        blocking: bool = False,
    ) -> Notice:
        """Post a notice, replacing any earlier one for the same scope and key."""
        self._notices = [n for n in self._notices if not (n.scope == scope and n.key == key)]
        notice = Notice(
            id=next(self._ids),
            scope=scope,
            message=message,
            key=key,
            error_code=error_code,
            blocking=blocking,
            expires_at=None if blocking else self._clock() + self.ttl,
        )
        self._notices.append(notice)
        logger.info("Notice posted", scope=scope.value, key=key, error_code=error_code, blocking=blocking)
        return notice

    def active(self, scope: NoticeScope | None = None, key: str | None = None) -> list[Notice]:
        now = self._clock()
        self._notices = [n for n in self._notices if n.expires_at is None or n.expires_at > now]
        return [
            n
            for n in self._notices
            if (scope is None or n.scope == scope) and (key is None or n.key == key)
        ]

    def latest(self, scope: NoticeScope, key: str | None = None) -> Notice | None:
        notices = self.active(scope, key)
        return notices[-1] if notices else None

    def dismiss(self, notice: Notice) -> None:
        self._notices = [n for n in self._notices if n.id != notice.id]

    def clear(self, scope: NoticeScope | None = None) -> None:
        self._notices = [n for n in self._notices if scope is not None and n.scope != scope]
