# crewlink/interactors/notification_router.py
import logging
import math

from crewlink.domain.errors import NotFound
from crewlink.domain.events import NotificationEvent
from crewlink.domain.realtime import NotificationData, RealtimeNotification
from crewlink.infrastructure import schemas
from crewlink.infrastructure.realtime_bus import RealtimeBus
from crewlink.infrastructure.unit_of_work import AbstractUnitOfWork


class NotificationRouter:
    """
    Turns domain events into notification records for their recipient.

    A record is always stored; the recipient's per-type preference decides
    whether a live toast is pushed and whether email or push delivery is
    requested from the external delivery service.
    """

    def __init__(
        self,
        uow: AbstractUnitOfWork,
        realtime_bus: RealtimeBus,
        logger: logging.Logger,
    ):
        self.uow = uow
        self.realtime_bus = realtime_bus
        self.logger = logger

    async def route(self, event: NotificationEvent) -> schemas.Notification:
        preference = await self.uow.notifications.get_preference(
            event.user_id, event.type
        )
        record = await self.uow.notifications.create_notification(
            event,
            email_requested=preference.email_enabled,
            push_requested=preference.push_enabled,
        )
        await self.uow.commit()
        self.logger.info(
            f"Routed {event.type.value} notification {record.id} to user {event.user_id}"
        )

        if preference.in_app_enabled:
            await self.realtime_bus.publish(
                RealtimeNotification(notification=NotificationData.model_validate(record)),
                event.user_id,
            )
        return schemas.Notification.model_validate(record)

    async def list_notifications(
        self, user_id: str, skip: int = 0, limit: int = 20, unread_only: bool = False
    ) -> schemas.NotificationPage:
        records, total = await self.uow.notifications.list_notifications(
            user_id, skip, limit, unread_only
        )
        return schemas.NotificationPage(
            notifications=[schemas.Notification.model_validate(r) for r in records],
            pagination=schemas.Pagination(
                page=skip // limit + 1,
                limit=limit,
                total=total,
                pages=math.ceil(total / limit),
            ),
        )

    async def unread_count(self, user_id: str) -> schemas.UnreadCount:
        count = await self.uow.notifications.unread_count(user_id)
        return schemas.UnreadCount(unread_count=count)

    async def mark_read(self, notification_id: int, user_id: str) -> None:
        if not await self.uow.notifications.mark_read(notification_id, user_id):
            raise NotFound("Notification not found")
        await self.uow.commit()

    async def mark_all_read(self, user_id: str) -> int:
        updated = await self.uow.notifications.mark_all_read(user_id)
        await self.uow.commit()
        return updated

    async def delete(self, notification_id: int, user_id: str) -> None:
        if not await self.uow.notifications.delete_notification(notification_id, user_id):
            raise NotFound("Notification not found")
        await self.uow.commit()

    async def get_preferences(self, user_id: str) -> schemas.NotificationPreferences:
        preferences = await self.uow.notifications.get_preferences(user_id)
        return schemas.NotificationPreferences(
            preferences=[
                schemas.NotificationPreference(
                    type=notification_type,
                    email_enabled=preference.email_enabled,
                    push_enabled=preference.push_enabled,
                    in_app_enabled=preference.in_app_enabled,
                )
                for notification_type, preference in preferences.items()
            ]
        )

    async def update_preferences(
        self, user_id: str, updates: schemas.NotificationPreferencesUpdate
    ) -> schemas.NotificationPreferences:
        for preference in updates.preferences:
            await self.uow.notifications.upsert_preference(user_id, preference)
        await self.uow.commit()
        return await self.get_preferences(user_id)
