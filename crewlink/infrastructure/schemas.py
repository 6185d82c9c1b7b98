# crewlink/infrastructure/schemas.py
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from crewlink.domain.entities import (
    MessageStatus,
    NotificationType,
    RelationshipStatus,
    RequestStatus,
    RespondAction,
)


class UserBasic(BaseModel):
    id: str
    display_name: str | None = None
    avatar_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class User(UserBasic):
    department: str | None = None
    role: str | None = None
    ship_name: str | None = None
    cruise_line: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserProfile(User):
    connection_status: RelationshipStatus


class ProfileUpdate(BaseModel):
    display_name: str | None = None
    avatar_url: str | None = None
    department: str | None = None
    role: str | None = None
    ship_name: str | None = None
    cruise_line: str | None = None


class Identity(BaseModel):
    """Claims of a verified bearer token."""

    user_id: str
    display_name: str | None = None
    avatar_url: str | None = None


class ConnectionRequestCreate(BaseModel):
    receiver_id: str
    message: str | None = Field(None, max_length=500)


class ConnectionRespond(BaseModel):
    action: RespondAction


class ConnectionRequest(BaseModel):
    id: int
    sender_id: str
    receiver_id: str
    message: str | None = None
    status: RequestStatus
    created_at: datetime
    responded_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class PendingRequest(ConnectionRequest):
    sender: UserBasic


class SentRequest(ConnectionRequest):
    receiver: UserBasic


class RespondResult(BaseModel):
    request: ConnectionRequest
    room_id: str | None = None


class ConnectionStatus(BaseModel):
    user_id: str
    status: RelationshipStatus


class PendingRequests(BaseModel):
    requests: list[PendingRequest]


class SentRequests(BaseModel):
    requests: list[SentRequest]


class MessageCreate(BaseModel):
    receiver_id: str
    content: str = Field(..., min_length=1, max_length=4000)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        # Stored as given; only rejected when there is nothing to show.
        if not value.strip():
            raise ValueError("Message content cannot be empty")
        return value


class ChatMessage(BaseModel):
    id: int
    room_id: str
    sender_id: str
    receiver_id: str
    content: str
    status: MessageStatus
    timestamp: datetime
    delivered_at: datetime | None = None
    read_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class MessageStatusUpdate(BaseModel):
    message_id: int
    status: MessageStatus


class ChatRoom(BaseModel):
    room_id: str
    participant1_id: str
    participant2_id: str
    other_user_id: str
    other_user_name: str | None = None
    other_user_avatar: str | None = None
    other_user_online: bool = False
    other_user_last_seen: datetime | None = None
    last_message_id: int | None = None
    last_message_content: str | None = None
    last_message_time: datetime | None = None
    last_message_status: MessageStatus | None = None
    last_message_sender_id: str | None = None
    unread_count: int = 0
    created_at: datetime
    updated_at: datetime | None = None


class ChatRooms(BaseModel):
    rooms: list[ChatRoom]


class Conversation(BaseModel):
    room_id: str
    messages: list[ChatMessage]


class RoomReadResult(BaseModel):
    room_id: str
    updated: int


class UnreadCount(BaseModel):
    unread_count: int


class OnlineStatusUpdate(BaseModel):
    is_online: bool


class UserOnlineStatus(BaseModel):
    user_id: str
    is_online: bool
    last_seen: datetime | None = None


class Notification(BaseModel):
    id: int
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] | None = None
    is_read: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class NotificationPage(BaseModel):
    notifications: list[Notification]
    pagination: Pagination


class NotificationPreference(BaseModel):
    type: NotificationType
    email_enabled: bool
    push_enabled: bool
    in_app_enabled: bool

    model_config = ConfigDict(from_attributes=True)


class NotificationPreferences(BaseModel):
    preferences: list[NotificationPreference]


class NotificationPreferenceUpdate(BaseModel):
    type: NotificationType
    email_enabled: bool | None = None
    push_enabled: bool | None = None
    in_app_enabled: bool | None = None


class NotificationPreferencesUpdate(BaseModel):
    preferences: list[NotificationPreferenceUpdate]
