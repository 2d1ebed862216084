"""Factory for key-value store instances."""

from app.adapters.store.base import AbstractKeyValueStore
from app.adapters.store.firebase import FirebaseKeyValueStore
from app.adapters.store.in_memory import InMemoryKeyValueStore
from app.core.config import StoreSettings, settings
from app.core.errors import ValidationAppError


def create_store(store_settings: StoreSettings | None = None) -> AbstractKeyValueStore:
    """Instantiate the store backend selected by ``STORE_BACKEND``.

    Raises:
        ValidationAppError: If the backend is unknown or misconfigured.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "memory":
        return InMemoryKeyValueStore()

    if backend == "firebase":
        if not cfg.base_url:
            raise ValidationAppError(
                code="store_missing_base_url",
                message="Firebase store requires STORE_BASE_URL environment variable",
            )
        return FirebaseKeyValueStore(
            cfg.base_url,
            auth_token=cfg.auth_token,
            timeout_seconds=cfg.timeout_seconds,
        )

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: memory, firebase",
    )
