from __future__ import annotations

from fastapi import APIRouter, Depends

from app.adapters.notifier import CollectingNotifier
from app.api.dependencies import get_identity_coordinator, get_notifier
from app.core.auth import verify_api_key
from app.schemas.identity import RenameUserRequest, RenameUserResponse, RetryIndexWriteResponse
from app.schemas.notifications import to_items
from app.services.identity_service import IdentityChangeCoordinator

router = APIRouter(tags=["Users"], dependencies=[Depends(verify_api_key)])


@router.put("/users/{user_id}/username", response_model=RenameUserResponse)
async def rename_user(
    user_id: str,
    body: RenameUserRequest,
    coordinator: IdentityChangeCoordinator = Depends(get_identity_coordinator),
    notifier: CollectingNotifier = Depends(get_notifier),
) -> RenameUserResponse:
    """Change the username of an account.

    Requires the current password. Domain errors (wrong password, mismatch,
    name taken, store failures) are raised as AppError and rendered by the
    global exception handlers.

    Returns:
        RenameUserResponse: Stored name, previous name and the notifications
            produced by the change.
    """
    result = await coordinator.rename_user(
        user_id,
        body.new_user_name,
        body.confirm_user_name,
        body.password,
    )
    return RenameUserResponse(
        user_name=result.new_user_name,
        previous_user_name=result.previous_user_name,
        changed=result.changed,
        notifications=to_items(notifier.notifications),
    )


@router.post("/users/{user_id}/username/index", response_model=RetryIndexWriteResponse)
async def retry_index_write(
    user_id: str,
    coordinator: IdentityChangeCoordinator = Depends(get_identity_coordinator),
    notifier: CollectingNotifier = Depends(get_notifier),
) -> RetryIndexWriteResponse:
    """Bring the username index in line with the user record after a partial failure."""
    user_name = await coordinator.retry_index_write(user_id)
    return RetryIndexWriteResponse(
        user_name=user_name,
        notifications=to_items(notifier.notifications),
    )
