from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.api.dependencies import get_reconciler
from app.core.auth import verify_api_key
from app.schemas.identity import ReconciliationReport
from app.services.reconciliation_service import NameIndexReconciler

router = APIRouter(tags=["Admin"], dependencies=[Depends(verify_api_key)])


@router.post("/admin/name-index/reconcile", response_model=ReconciliationReport)
async def reconcile_name_index(
    repair: bool = Query(False, description="Write the repaired index when drift is found."),
    reconciler: NameIndexReconciler = Depends(get_reconciler),
) -> ReconciliationReport:
    """Compare user records with the username index.

    Stale and orphaned entries are reported (and dropped when ``repair`` is
    set); names held by several users are only reported.
    """
    return await reconciler.reconcile(repair=repair)
