# crewlink/infrastructure/event_handlers.py
import logging

from crewlink.domain.entities import NotificationType
from crewlink.domain.events import (
    ConnectionAccepted,
    ConnectionDeclined,
    ConnectionRequested,
    MessageSent,
    MessageStatusChanged,
    NotificationEvent,
    PresenceUpdated,
)
from crewlink.domain.realtime import MessageStatusUpdate, NewMessage, PresenceChanged
from crewlink.infrastructure.database import Database
from crewlink.infrastructure.realtime_bus import RealtimeBus
from crewlink.infrastructure.unit_of_work import UnitOfWork
from crewlink.interactors.notification_router import NotificationRouter

MESSAGE_PREVIEW_LENGTH = 100


class EventHandlers:
    def __init__(self, database: Database, realtime_bus: RealtimeBus, logger: logging.Logger):
        self.database = database
        self.realtime_bus = realtime_bus
        self.logger = logger

    async def route_notification(self, event: NotificationEvent):
        async with self.database.session() as session:
            async with UnitOfWork(session) as uow:
                router = NotificationRouter(uow, self.realtime_bus, self.logger)
                return await router.route(event)

    async def notify_connection_requested(self, event: ConnectionRequested):
        await self.route_notification(
            NotificationEvent(
                type=NotificationType.CONNECTION_REQUEST,
                user_id=event.receiver_id,
                title="New connection request",
                message=f"{event.sender.name} wants to connect with you",
                data={
                    "request_id": event.request_id,
                    "sender_id": event.sender_id,
                    "sender_name": event.sender.display_name,
                    "sender_avatar": event.sender.avatar_url,
                    "message": event.message,
                },
            )
        )

    async def notify_connection_accepted(self, event: ConnectionAccepted):
        await self.route_notification(
            NotificationEvent(
                type=NotificationType.CONNECTION_ACCEPTED,
                user_id=event.sender_id,
                title="Connection accepted",
                message=f"{event.responder.name} accepted your connection request",
                data={
                    "request_id": event.request_id,
                    "user_id": event.receiver_id,
                    "room_id": event.room_id,
                },
            )
        )

    async def notify_connection_declined(self, event: ConnectionDeclined):
        await self.route_notification(
            NotificationEvent(
                type=NotificationType.CONNECTION_DECLINED,
                user_id=event.sender_id,
                title="Connection request declined",
                message=f"{event.responder.name} declined your connection request",
                data={"request_id": event.request_id, "user_id": event.receiver_id},
            )
        )

    async def publish_message_sent(self, event: MessageSent):
        message = event.message
        await self.realtime_bus.publish(NewMessage(message=message), message.receiver_id)

        preview = message.content[:MESSAGE_PREVIEW_LENGTH]
        await self.route_notification(
            NotificationEvent(
                type=NotificationType.MESSAGE,
                user_id=message.receiver_id,
                title="New message",
                message=f"{event.sender.name}: {preview}",
                data={
                    "message_id": message.id,
                    "room_id": message.room_id,
                    "sender_id": message.sender_id,
                },
            )
        )

    async def publish_message_status_changed(self, event: MessageStatusChanged):
        await self.realtime_bus.publish(
            MessageStatusUpdate(
                message_id=event.message_id, room_id=event.room_id, status=event.status
            ),
            event.sender_id,
        )

    async def publish_presence_updated(self, event: PresenceUpdated):
        async with self.database.session() as session:
            async with UnitOfWork(session) as uow:
                peers = await uow.connections.connected_user_ids(event.user_id)
        frame = PresenceChanged(
            user_id=event.user_id,
            is_online=event.is_online,
            last_seen_at=event.last_seen_at,
        )
        for peer_id in peers:
            await self.realtime_bus.publish(frame, peer_id)
