# crewlink/gateways/interfaces.py
from abc import ABC, abstractmethod
from datetime import datetime

from crewlink.domain.entities import (
    ChannelPreference,
    MessageStatus,
    NotificationType,
    RequestStatus,
)
from crewlink.domain.events import NotificationEvent
from crewlink.infrastructure import models, schemas


class IUserGateway(ABC):
    @abstractmethod
    async def get_user(self, user_id: str) -> models.User | None:
        pass

    @abstractmethod
    async def get_many(self, user_ids: list[str]) -> dict[str, models.User]:
        pass

    @abstractmethod
    async def upsert_identity(self, identity: schemas.Identity) -> models.User:
        pass

    @abstractmethod
    async def update_profile(
        self, user_id: str, profile: schemas.ProfileUpdate
    ) -> models.User:
        pass


class IConnectionGateway(ABC):
    @abstractmethod
    async def get_request(self, request_id: int) -> models.ConnectionRequest | None:
        pass

    @abstractmethod
    async def get_active_request(
        self, pair_key: str
    ) -> models.ConnectionRequest | None:
        pass

    @abstractmethod
    async def get_latest_request(
        self, pair_key: str
    ) -> models.ConnectionRequest | None:
        pass

    @abstractmethod
    async def create_request(
        self, sender_id: str, receiver_id: str, message: str | None
    ) -> models.ConnectionRequest | None:
        pass

    @abstractmethod
    async def transition_request(
        self, request_id: int, status: RequestStatus, responded_at: datetime
    ) -> bool:
        pass

    @abstractmethod
    async def decline_pending(self, pair_key: str, responded_at: datetime) -> int:
        pass

    @abstractmethod
    async def list_incoming_pending(
        self, user_id: str
    ) -> list[models.ConnectionRequest]:
        pass

    @abstractmethod
    async def list_outgoing_pending(
        self, user_id: str
    ) -> list[models.ConnectionRequest]:
        pass

    @abstractmethod
    async def is_blocked(self, user_a: str, user_b: str) -> bool:
        pass

    @abstractmethod
    async def get_block(self, blocker_id: str, blocked_id: str) -> models.UserBlock | None:
        pass

    @abstractmethod
    async def create_block(self, blocker_id: str, blocked_id: str) -> models.UserBlock:
        pass

    @abstractmethod
    async def delete_block(self, block: models.UserBlock) -> None:
        pass

    @abstractmethod
    async def connected_user_ids(self, user_id: str) -> list[str]:
        pass


class IChatGateway(ABC):
    @abstractmethod
    async def get_room(self, room_id: str) -> models.ChatRoom | None:
        pass

    @abstractmethod
    async def get_or_create_room(self, user_a: str, user_b: str) -> models.ChatRoom:
        pass

    @abstractmethod
    async def list_rooms(self, user_id: str) -> list[models.ChatRoom]:
        pass

    @abstractmethod
    async def advance_summary(self, message: models.ChatMessage) -> bool:
        pass

    @abstractmethod
    async def sync_summary_status(
        self, room_id: str, message_id: int, status: MessageStatus
    ) -> None:
        pass


class IMessageGateway(ABC):
    @abstractmethod
    async def create_message(
        self, room_id: str, sender_id: str, receiver_id: str, content: str
    ) -> models.ChatMessage:
        pass

    @abstractmethod
    async def get_message(self, message_id: int) -> models.ChatMessage | None:
        pass

    @abstractmethod
    async def list_room_messages(self, room_id: str) -> list[models.ChatMessage]:
        pass

    @abstractmethod
    async def advance_status(
        self, message_id: int, status: MessageStatus, at: datetime
    ) -> bool:
        pass

    @abstractmethod
    async def mark_room_read(
        self, room_id: str, user_id: str, at: datetime
    ) -> list[models.ChatMessage]:
        pass

    @abstractmethod
    async def unread_counts_by_room(self, user_id: str) -> dict[str, int]:
        pass

    @abstractmethod
    async def unread_total(self, user_id: str) -> int:
        pass


class INotificationGateway(ABC):
    @abstractmethod
    async def create_notification(
        self, event: NotificationEvent, email_requested: bool, push_requested: bool
    ) -> models.Notification:
        pass

    @abstractmethod
    async def list_notifications(
        self, user_id: str, skip: int, limit: int, unread_only: bool
    ) -> tuple[list[models.Notification], int]:
        pass

    @abstractmethod
    async def unread_count(self, user_id: str) -> int:
        pass

    @abstractmethod
    async def mark_read(self, notification_id: int, user_id: str) -> bool:
        pass

    @abstractmethod
    async def mark_all_read(self, user_id: str) -> int:
        pass

    @abstractmethod
    async def delete_notification(self, notification_id: int, user_id: str) -> bool:
        pass

    @abstractmethod
    async def get_preference(
        self, user_id: str, notification_type: NotificationType
    ) -> ChannelPreference:
        pass

    @abstractmethod
    async def get_preferences(
        self, user_id: str
    ) -> dict[NotificationType, ChannelPreference]:
        pass

    @abstractmethod
    async def upsert_preference(
        self, user_id: str, preference: schemas.NotificationPreferenceUpdate
    ) -> None:
        pass
