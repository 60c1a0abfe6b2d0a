"""Storefront client settings, read from ``STOREFRONT_*`` environment variables."""

import os

from pydantic import BaseModel, Field


def _env_flag(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


class StorefrontSettings(BaseModel):
    api_url: str = "http://localhost:8000"
    return_base: str = "http://localhost:3000"
    timeout: float = Field(default=10.0, gt=0)
    notice_ttl: float = Field(default=5.0, gt=0)
    require_return_marker: bool = False

    @classmethod
    def from_env(cls, environ=None) -> "StorefrontSettings":
        environ = os.environ if environ is None else environ
        values = {}
        if environ.get("STOREFRONT_API_URL"):
            values["api_url"] = environ["STOREFRONT_API_URL"]
        if environ.get("STOREFRONT_RETURN_BASE"):
            values["return_base"] = environ["STOREFRONT_RETURN_BASE"]
        if environ.get("STOREFRONT_TIMEOUT"):
            values["timeout"] = float(environ["STOREFRONT_TIMEOUT"])
        if environ.get("STOREFRONT_NOTICE_TTL"):
            values["notice_ttl"] = float(environ["STOREFRONT_NOTICE_TTL"])
        if "STOREFRONT_REQUIRE_RETURN_MARKER" in environ:
            values["require_return_marker"] = _env_flag(environ["STOREFRONT_REQUIRE_RETURN_MARKER"])
        return cls(**values)

    def order_return_url(self, order_id: str) -> str:
        """Where the gateway sends the shopper back to after checkout."""
        return f"{self.return_base.rstrip('/')}/orders/{order_id}?verify=true"
