from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness probe.

    Does not touch the store; reports which store backend this instance was
    configured with so a misrouted deployment is visible at a glance.

    Returns:
        dict: ``{"status": "ok", "store": <backend>}``.
    """

    store = getattr(request.app.state, "store", None)
    return {"status": "ok", "store": type(store).__name__ if store is not None else None}
