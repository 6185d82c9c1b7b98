# crewlink/infrastructure/models.py
from datetime import UTC, datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crewlink.infrastructure.database import Base


def utcnow() -> datetime:
    return datetime.now(UTC)


ACTIVE_REQUEST_CLAUSE = text("status IN ('pending', 'accepted')")


class User(Base):
    """Profile mirror of an externally owned identity, used for display fields only."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    display_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    department: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    role: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    ship_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    cruise_line: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )


class ConnectionRequest(Base):
    __tablename__ = "connection_requests"

    __table_args__ = (
        Index("ix_connection_requests_receiver_status", "receiver_id", "status"),
        Index("ix_connection_requests_sender_status", "sender_id", "status"),
        # At most one pending-or-accepted request per unordered pair.
        Index(
            "uq_connection_requests_active_pair",
            "pair_key",
            unique=True,
            sqlite_where=ACTIVE_REQUEST_CLAUSE,
            postgresql_where=ACTIVE_REQUEST_CLAUSE,
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, index=True, autoincrement=True
    )
    sender_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"))
    receiver_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"))
    pair_key: Mapped[str] = mapped_column(String, index=True)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String, default="pending")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
    responded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    sender: Mapped[User] = relationship(
        "User", foreign_keys=[sender_id], lazy="joined"
    )
    receiver: Mapped[User] = relationship(
        "User", foreign_keys=[receiver_id], lazy="joined"
    )


class UserBlock(Base):
    __tablename__ = "user_blocks"

    blocker_id: Mapped[str] = mapped_column(
        String, ForeignKey("users.id"), primary_key=True
    )
    blocked_id: Mapped[str] = mapped_column(
        String, ForeignKey("users.id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )


class ChatRoom(Base):
    __tablename__ = "chat_rooms"

    room_id: Mapped[str] = mapped_column(String, primary_key=True)
    participant1_id: Mapped[str] = mapped_column(
        String, ForeignKey("users.id"), index=True
    )
    participant2_id: Mapped[str] = mapped_column(
        String, ForeignKey("users.id"), index=True
    )
    # Denormalized summary of the newest message, kept for list rendering.
    last_message_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_message_content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_message_sender_id: Mapped[Optional[str]] = mapped_column(
        String, nullable=True
    )
    last_message_status: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    last_message_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    participant1: Mapped[User] = relationship(
        "User", foreign_keys=[participant1_id], lazy="joined"
    )
    participant2: Mapped[User] = relationship(
        "User", foreign_keys=[participant2_id], lazy="joined"
    )

    def other_participant(self, user_id: str) -> User:
        return self.participant2 if self.participant1_id == user_id else self.participant1

    def has_participant(self, user_id: str) -> bool:
        return user_id in (self.participant1_id, self.participant2_id)


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    __table_args__ = (
        Index("ix_chat_messages_room_order", "room_id", "timestamp", "id"),
        Index("ix_chat_messages_receiver_status", "receiver_id", "status"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, index=True, autoincrement=True
    )
    room_id: Mapped[str] = mapped_column(
        String, ForeignKey("chat_rooms.room_id"), index=True
    )
    sender_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"))
    receiver_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"))
    content: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String, default="sent")
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    read_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class Notification(Base):
    __tablename__ = "notifications"

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read"),
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, index=True, autoincrement=True
    )
    user_id: Mapped[str] = mapped_column(String, index=True)
    type: Mapped[str] = mapped_column(String)
    title: Mapped[str] = mapped_column(String)
    message: Mapped[str] = mapped_column(Text)
    data: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "payload", JSON, nullable=True
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    # Set when the recipient's preferences ask for external delivery.
    email_requested: Mapped[bool] = mapped_column(Boolean, default=False)
    push_requested: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    type: Mapped[str] = mapped_column(String, primary_key=True)
    email_enabled: Mapped[bool] = mapped_column(Boolean)
    push_enabled: Mapped[bool] = mapped_column(Boolean)
    in_app_enabled: Mapped[bool] = mapped_column(Boolean)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
