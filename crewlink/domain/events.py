# crewlink/domain/events.py
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from crewlink.domain.entities import MessageStatus, NotificationType


class Event(BaseModel):
    pass


class UserInfo(BaseModel):
    id: str
    display_name: str | None = None
    avatar_url: str | None = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def name(self) -> str:
        return self.display_name or "A crew member"


class ChatMessageData(BaseModel):
    id: int
    room_id: str
    sender_id: str
    receiver_id: str
    content: str
    status: MessageStatus
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class ConnectionRequested(Event):
    request_id: int
    sender_id: str
    receiver_id: str
    message: str | None = None
    created_at: datetime
    sender: UserInfo


class ConnectionAccepted(Event):
    request_id: int
    sender_id: str
    receiver_id: str
    room_id: str
    responded_at: datetime
    responder: UserInfo


class ConnectionDeclined(Event):
    request_id: int
    sender_id: str
    receiver_id: str
    responded_at: datetime
    responder: UserInfo


class MessageSent(Event):
    message: ChatMessageData
    sender: UserInfo


class MessageStatusChanged(Event):
    message_id: int
    room_id: str
    sender_id: str
    receiver_id: str
    status: MessageStatus


class NotificationEvent(Event):
    """Input of the notification router, from domain handlers or external producers."""

    type: NotificationType
    user_id: str
    title: str
    message: str
    data: dict[str, Any] | None = None


class PresenceUpdated(Event):
    user_id: str
    is_online: bool
    last_seen_at: datetime | None = None
