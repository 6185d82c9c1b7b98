# crewlink/gateways/notification_gateway.py
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from crewlink.domain.entities import (
    DEFAULT_PREFERENCES,
    ChannelPreference,
    NotificationType,
)
from crewlink.domain.events import NotificationEvent
from crewlink.gateways.interfaces import INotificationGateway
from crewlink.infrastructure import models, schemas


class NotificationGateway(INotificationGateway):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_notification(
        self, event: NotificationEvent, email_requested: bool, push_requested: bool
    ) -> models.Notification:
        notification = models.Notification(
            user_id=event.user_id,
            type=event.type.value,
            title=event.title,
            message=event.message,
            data=event.data,
            is_read=False,
            email_requested=email_requested,
            push_requested=push_requested,
        )
        self.session.add(notification)
        await self.session.flush()
        return notification

    async def list_notifications(
        self, user_id: str, skip: int, limit: int, unread_only: bool
    ) -> tuple[list[models.Notification], int]:
        filters = [models.Notification.user_id == user_id]
        if unread_only:
            filters.append(models.Notification.is_read.is_(False))

        count_stmt = select(func.count(models.Notification.id)).filter(*filters)
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            select(models.Notification)
            .filter(*filters)
            .order_by(models.Notification.created_at.desc(), models.Notification.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def unread_count(self, user_id: str) -> int:
        stmt = select(func.count(models.Notification.id)).filter(
            models.Notification.user_id == user_id,
            models.Notification.is_read.is_(False),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def mark_read(self, notification_id: int, user_id: str) -> bool:
        stmt = (
            update(models.Notification)
            .where(
                models.Notification.id == notification_id,
                models.Notification.user_id == user_id,
            )
            .values(is_read=True, updated_at=models.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def mark_all_read(self, user_id: str) -> int:
        stmt = (
            update(models.Notification)
            .where(
                models.Notification.user_id == user_id,
                models.Notification.is_read.is_(False),
            )
            .values(is_read=True, updated_at=models.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def delete_notification(self, notification_id: int, user_id: str) -> bool:
        stmt = (
            delete(models.Notification)
            .where(
                models.Notification.id == notification_id,
                models.Notification.user_id == user_id,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def get_preference(
        self, user_id: str, notification_type: NotificationType
    ) -> ChannelPreference:
        row = await self.session.get(
            models.NotificationPreference, (user_id, notification_type.value)
        )
        if row is None:
            return DEFAULT_PREFERENCES[notification_type]
        return ChannelPreference(
            email_enabled=row.email_enabled,
            push_enabled=row.push_enabled,
            in_app_enabled=row.in_app_enabled,
        )

    async def get_preferences(
        self, user_id: str
    ) -> dict[NotificationType, ChannelPreference]:
        stmt = select(models.NotificationPreference).filter(
            models.NotificationPreference.user_id == user_id
        )
        result = await self.session.execute(stmt)
        stored = {row.type: row for row in result.scalars().all()}

        preferences = {}
        for notification_type, default in DEFAULT_PREFERENCES.items():
            row = stored.get(notification_type.value)
            if row is None:
                preferences[notification_type] = default
            else:
                preferences[notification_type] = ChannelPreference(
                    email_enabled=row.email_enabled,
                    push_enabled=row.push_enabled,
                    in_app_enabled=row.in_app_enabled,
                )
        return preferences

    async def upsert_preference(
        self, user_id: str, preference: schemas.NotificationPreferenceUpdate
    ) -> None:
        row = await self.session.get(
            models.NotificationPreference, (user_id, preference.type.value)
        )
        if row is None:
            default = DEFAULT_PREFERENCES[preference.type]
            row = models.NotificationPreference(
                user_id=user_id,
                type=preference.type.value,
                email_enabled=default.email_enabled,
                push_enabled=default.push_enabled,
                in_app_enabled=default.in_app_enabled,
            )
            self.session.add(row)
        changes = preference.model_dump(exclude_unset=True, exclude={"type"})
        for key, value in changes.items():
            if value is not None:
                setattr(row, key, value)
        await self.session.flush()
