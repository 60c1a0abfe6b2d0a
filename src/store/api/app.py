"""FastAPI application factory for the store domain.

The domain must be initialized (``store.init()``) before requests are served;
the factory only wires routers, CORS and the per-request domain context.
"""

from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from store.api.envelope import ok, register_exception_handlers
from store.api.routes import admin_router, cart_router, inventory_router, order_router, payment_router
from store.domain import store
from store.utils.logging import add_context, clear_context


def create_app(title: str = "Store API") -> FastAPI:
    app = FastAPI(title=title, description="Storefront backend: inventory, cart, orders and payments")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the store domain context and bind request fields to the log context."""
        clear_context()
        add_context(
            request_id=request.headers.get("X-Request-Id") or uuid4().hex[:12],
            method=request.method,
            path=request.url.path,
        )
        with store.domain_context():
            response = await call_next(request)
        return response

    register_exception_handlers(app)

    app.include_router(inventory_router)
    app.include_router(cart_router)
    app.include_router(order_router)
    app.include_router(payment_router)
    app.include_router(admin_router)

    @app.get("/health")
    async def health():
        return ok({"domain": store.name})

    return app
