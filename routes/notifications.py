import asyncio
from typing import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import StreamingResponse

from config import config
from constants import RecipientKinds
from models.notification import BroadcastRequest, NotificationPage
from models.user import CurrentUser
from routes.deps import (
    get_current_user,
    get_db,
    get_notification_service,
    get_notification_stream,
    require_kind,
)
from utils.directory import RecipientDirectory
from utils.notification_events import broadcast
from utils.notification_stream import NotificationStream, Subscription, recipient_filter
from utils.notifications import NotificationService
from logging_config import get_logger

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])
logger = get_logger("notifications")

PAGE = Query(1, ge=1)
LIMIT = Query(config.NOTIFICATION_PAGE_SIZE, ge=1, le=config.NOTIFICATION_MAX_PAGE_SIZE)


@router.get("", response_model=NotificationPage)
async def get_notifications(
    page: int = PAGE,
    limit: int = LIMIT,
    unread_only: bool = False,
    current_user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """List the current user's notifications, newest first."""
    return await service.list_for(current_user, page=page, limit=limit, unread_only=unread_only)


@router.get("/unread", response_model=NotificationPage)
async def get_unread_notifications(
    page: int = PAGE,
    limit: int = LIMIT,
    current_user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return await service.list_for(current_user, page=page, limit=limit, unread_only=True)


@router.get("/deleted", response_model=NotificationPage)
async def get_deleted_notifications(
    page: int = PAGE,
    limit: int = LIMIT,
    current_user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Soft-deleted notifications, for the restore view."""
    return await service.list_for(current_user, page=page, limit=limit, deleted=True)


@router.get("/unread-count")
async def get_unread_count(
    current_user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Get count of unread notifications."""
    count, display = await service.unread_count(current_user)
    return {"unread_count": count, "display": display}


@router.patch("/read-all")
async def mark_all_read(
    current_user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Mark all notifications as read for the current user."""
    updated = await service.mark_all_as_read(current_user)
    return {"message": "All notifications marked as read", "updated": updated}


@router.patch("/{notification_id}/read")
async def mark_as_read(
    notification_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Mark a notification as read."""
    notification = await service.mark_as_read(notification_id, current_user)
    return {"message": "Marked as read", "notification": notification}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    await service.soft_delete(notification_id, current_user)
    return {"message": "Notification deleted"}


@router.patch("/{notification_id}/restore")
async def restore_notification(
    notification_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    notification = await service.restore(notification_id, current_user)
    return {"message": "Notification restored", "notification": notification}


async def sse_events(
    subscription: Subscription,
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive: float = config.STREAM_KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """Server-sent event frames for one subscription until the client goes away."""
    while not await is_disconnected():
        try:
            notification = await asyncio.wait_for(subscription.get(), timeout=keepalive)
        except asyncio.TimeoutError:
            yield ": keepalive\n\n"
            continue
        payload = notification.model_dump_json()
        yield f"data: {{\"notification\": {payload}}}\n\n"


@router.get("/stream")
async def stream_notifications(
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    stream: NotificationStream = Depends(get_notification_stream),
):
    """Long-lived SSE connection pushing new notifications for the current user."""
    async def event_source():
        async with stream.subscription(recipient_filter(current_user)) as subscription:
            logger.info("Notification stream opened", extra={"data": {"subscribers": stream.subscriber_count}})
            async for frame in sse_events(subscription, request.is_disconnected):
                yield frame
        logger.info("Notification stream closed", extra={"data": {"subscribers": stream.subscriber_count}})

    return StreamingResponse(
        event_source(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.post("/broadcast")
async def broadcast_notification(
    body: BroadcastRequest = Body(...),
    current_user: CurrentUser = Depends(require_kind(RecipientKinds.ADMIN)),
    db=Depends(get_db),
    service: NotificationService = Depends(get_notification_service),
):
    """Send an announcement to every student and company account (Admin only)."""
    result = await broadcast(service, RecipientDirectory(db), body.content, body.type)
    logger.info(
        "Broadcast sent",
        extra={"data": {"by": current_user.id, "succeeded": len(result.succeeded), "failed": len(result.failed)}}
    )
    return {
        "message": "Broadcast sent",
        "sent": len(result.succeeded),
        "failed": [failure.model_dump() for failure in result.failed],
    }
