# crewlink/domain/realtime.py
"""
Wire events of the realtime channel.

Every frame carries an ``event`` tag and is parsed through a single
discriminated union, so a publisher and a subscriber cannot disagree on an
event name without a validation error.
"""
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from crewlink.domain.entities import MessageStatus, NotificationType
from crewlink.domain.events import ChatMessageData


class TypingStart(BaseModel):
    event: Literal["typing-start"] = "typing-start"
    sender_id: str
    receiver_id: str


class TypingStop(BaseModel):
    event: Literal["typing-stop"] = "typing-stop"
    sender_id: str
    receiver_id: str


class NewMessage(BaseModel):
    event: Literal["new-message"] = "new-message"
    message: ChatMessageData


class MessageStatusUpdate(BaseModel):
    event: Literal["message-status-update"] = "message-status-update"
    message_id: int
    room_id: str
    status: MessageStatus


class NotificationData(BaseModel):
    id: int
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] | None = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RealtimeNotification(BaseModel):
    event: Literal["realtime-notification"] = "realtime-notification"
    notification: NotificationData


class PresenceChanged(BaseModel):
    event: Literal["presence-changed"] = "presence-changed"
    user_id: str
    is_online: bool
    last_seen_at: datetime | None = None


class ErrorFrame(BaseModel):
    event: Literal["error"] = "error"
    code: str
    detail: str


RealtimeEvent = Annotated[
    Union[
        TypingStart,
        TypingStop,
        NewMessage,
        MessageStatusUpdate,
        RealtimeNotification,
        PresenceChanged,
        ErrorFrame,
    ],
    Field(discriminator="event"),
]

realtime_event_adapter: TypeAdapter[RealtimeEvent] = TypeAdapter(RealtimeEvent)

# Frames a client session may send; everything else is server-originated.
INBOUND_EVENTS = (TypingStart, TypingStop)


def parse_event(raw: str | bytes) -> RealtimeEvent:
    return realtime_event_adapter.validate_json(raw)
