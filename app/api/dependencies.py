"""Request-scoped dependencies for the HTTP routes.

Long-lived collaborators (store, rate limiter, password verifier) are built
once by the app factory and kept on ``app.state``. Notifiers are per request:
FastAPI caches a dependency within one request, so the route and the service
it calls share the same ``CollectingNotifier``.
"""

from __future__ import annotations

from fastapi import Depends, Request

from app.adapters.credentials import AbstractPasswordVerifier
from app.adapters.messaging import StoreMessageTransport
from app.adapters.notifier import CollectingNotifier
from app.adapters.rate_limit import AbstractRateLimiter
from app.adapters.store import AbstractKeyValueStore
from app.services.identity_service import IdentityChangeCoordinator
from app.services.message_service import MessageService
from app.services.reconciliation_service import NameIndexReconciler


def get_store(request: Request) -> AbstractKeyValueStore:
    return request.app.state.store


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    return request.app.state.rate_limiter


def get_password_verifier(request: Request) -> AbstractPasswordVerifier:
    return request.app.state.password_verifier


def get_notifier() -> CollectingNotifier:
    return CollectingNotifier()


def get_identity_coordinator(
    store: AbstractKeyValueStore = Depends(get_store),
    verifier: AbstractPasswordVerifier = Depends(get_password_verifier),
    notifier: CollectingNotifier = Depends(get_notifier),
) -> IdentityChangeCoordinator:
    return IdentityChangeCoordinator(store, verifier, notifier)


def get_message_service(
    store: AbstractKeyValueStore = Depends(get_store),
    limiter: AbstractRateLimiter = Depends(get_rate_limiter),
    notifier: CollectingNotifier = Depends(get_notifier),
) -> MessageService:
    return MessageService(limiter, StoreMessageTransport(store), notifier)


def get_reconciler(store: AbstractKeyValueStore = Depends(get_store)) -> NameIndexReconciler:
    return NameIndexReconciler(store)
