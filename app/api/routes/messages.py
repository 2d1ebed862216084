from __future__ import annotations

import math

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from app.adapters.notifier import CollectingNotifier
from app.api.dependencies import get_message_service, get_notifier
from app.core.auth import verify_api_key
from app.schemas.messages import SendMessageRequest, SendMessageResponse
from app.schemas.notifications import to_items
from app.services.message_service import MessageService

router = APIRouter(tags=["Messages"], dependencies=[Depends(verify_api_key)])


@router.post(
    "/chatrooms/{chatroom_name}/messages",
    response_model=SendMessageResponse,
    responses={429: {"model": SendMessageResponse, "description": "Sender is cooling down."}},
)
async def send_message(
    chatroom_name: str,
    body: SendMessageRequest,
    service: MessageService = Depends(get_message_service),
    notifier: CollectingNotifier = Depends(get_notifier),
):
    """Submit a chat message.

    The text is sanitized server-side. A sender may post once every cooldown
    period; a throttled attempt answers 429 with ``Retry-After`` (seconds) and
    the remaining cooldown in ``retry_after_ms``.
    """
    result = await service.send_message(body.sender_id, chatroom_name, body.text)
    response = SendMessageResponse(
        **result.model_dump(),
        notifications=to_items(notifier.notifications),
    )
    if result.admitted:
        return response

    retry_after_s = math.ceil((result.retry_after_ms or 0) / 1000)
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=response.model_dump(),
        headers={"Retry-After": str(retry_after_s)},
    )
