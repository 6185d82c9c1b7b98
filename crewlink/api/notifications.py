# crewlink/api/notifications.py
from fastapi import APIRouter, Depends, Query

from crewlink.api.dependencies import (
    get_current_user,
    get_notification_router,
    require_service_key,
)
from crewlink.domain.events import NotificationEvent
from crewlink.infrastructure import schemas
from crewlink.interactors.notification_router import NotificationRouter

router = APIRouter()


@router.get("", response_model=schemas.NotificationPage)
async def read_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    notification_router: NotificationRouter = Depends(get_notification_router),
    current_user: schemas.User = Depends(get_current_user),
):
    return await notification_router.list_notifications(
        current_user.id, skip=(page - 1) * limit, limit=limit, unread_only=unread_only
    )


@router.get("/unread-count", response_model=schemas.UnreadCount)
async def get_unread_count(
    notification_router: NotificationRouter = Depends(get_notification_router),
    current_user: schemas.User = Depends(get_current_user),
):
    return await notification_router.unread_count(current_user.id)


@router.get("/preferences", response_model=schemas.NotificationPreferences)
async def read_preferences(
    notification_router: NotificationRouter = Depends(get_notification_router),
    current_user: schemas.User = Depends(get_current_user),
):
    return await notification_router.get_preferences(current_user.id)


@router.put("/preferences", response_model=schemas.NotificationPreferences)
async def update_preferences(
    updates: schemas.NotificationPreferencesUpdate,
    notification_router: NotificationRouter = Depends(get_notification_router),
    current_user: schemas.User = Depends(get_current_user),
):
    return await notification_router.update_preferences(current_user.id, updates)


@router.put("/read-all")
async def mark_all_read(
    notification_router: NotificationRouter = Depends(get_notification_router),
    current_user: schemas.User = Depends(get_current_user),
):
    updated = await notification_router.mark_all_read(current_user.id)
    return {"updated": updated}


@router.post(
    "/events",
    response_model=schemas.Notification,
    status_code=201,
    dependencies=[Depends(require_service_key)],
)
async def route_event(
    event: NotificationEvent,
    notification_router: NotificationRouter = Depends(get_notification_router),
):
    return await notification_router.route(event)


@router.put("/{notification_id}/read", status_code=204)
async def mark_read(
    notification_id: int,
    notification_router: NotificationRouter = Depends(get_notification_router),
    current_user: schemas.User = Depends(get_current_user),
):
    await notification_router.mark_read(notification_id, current_user.id)


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: int,
    notification_router: NotificationRouter = Depends(get_notification_router),
    current_user: schemas.User = Depends(get_current_user),
):
    await notification_router.delete(notification_id, current_user.id)
