from __future__ import annotations

"""Application factory for the identity service.

Builds the long-lived collaborators (store, rate limiter, password verifier)
once per app and keeps them on ``app.state``; routes reach them through the
dependencies in ``app.api.dependencies``.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.adapters.credentials import StoredHashPasswordVerifier
from app.adapters.rate_limit import InMemoryCooldownRateLimiter
from app.adapters.store import AbstractKeyValueStore, create_store
from app.api.routes import admin_router, health_router, messages_router, users_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await app.state.store.aclose()


def create_app(store: AbstractKeyValueStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        store: Store to use instead of the one selected by ``STORE_BACKEND``
            (tests pass a seeded in-memory store).

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Chat Identity API",
        description=(
            "Username changes and chat message admission for the chat client. "
            "Renames keep user records and the username index consistent; "
            "message sends are throttled per sender. Requires X-API-Key."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        lifespan=_lifespan,
    )

    app.state.store = store if store is not None else create_store(settings.store)
    app.state.rate_limiter = InMemoryCooldownRateLimiter(
        cooldown_ms=settings.app.message_cooldown_ms,
    )
    app.state.password_verifier = StoredHashPasswordVerifier(app.state.store)

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(users_router, prefix="/v1")
    app.include_router(messages_router, prefix="/v1")
    app.include_router(admin_router, prefix="/v1")
    app.include_router(health_router)

    return app
