# crewlink/domain/entities.py
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class RequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


ACTIVE_REQUEST_STATUSES = (RequestStatus.PENDING, RequestStatus.ACCEPTED)


class RespondAction(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"


class RelationshipStatus(str, Enum):
    """How one user sees another; drives profile visibility and messaging rights."""

    NONE = "none"
    PENDING_OUTGOING = "pending-outgoing"
    PENDING_INCOMING = "pending-incoming"
    CONNECTED = "connected"
    DECLINED = "declined"
    BLOCKED = "blocked"


class MessageStatus(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"

    @property
    def rank(self) -> int:
        return _MESSAGE_STATUS_RANKS[self]

    def lower_statuses(self) -> list["MessageStatus"]:
        """Statuses a message may be advanced from to reach this one."""
        return [status for status in MessageStatus if status.rank < self.rank]


_MESSAGE_STATUS_RANKS = {
    MessageStatus.SENT: 0,
    MessageStatus.DELIVERED: 1,
    MessageStatus.READ: 2,
}


class NotificationType(str, Enum):
    CONNECTION_REQUEST = "connection_request"
    CONNECTION_ACCEPTED = "connection_accepted"
    CONNECTION_DECLINED = "connection_declined"
    MESSAGE = "message"
    ASSIGNMENT = "assignment"
    PORT_CONNECTION = "port_connection"
    MODERATION = "moderation"
    SYSTEM = "system"


@dataclass(frozen=True)
class ChannelPreference:
    email_enabled: bool
    push_enabled: bool
    in_app_enabled: bool


# Applied whenever a user has no stored preference row for a type.
DEFAULT_PREFERENCES: dict[NotificationType, ChannelPreference] = {
    NotificationType.CONNECTION_REQUEST: ChannelPreference(True, True, True),
    NotificationType.CONNECTION_ACCEPTED: ChannelPreference(True, True, True),
    NotificationType.CONNECTION_DECLINED: ChannelPreference(False, True, True),
    NotificationType.MESSAGE: ChannelPreference(False, True, True),
    NotificationType.SYSTEM: ChannelPreference(True, True, True),
    NotificationType.ASSIGNMENT: ChannelPreference(True, True, True),
    NotificationType.PORT_CONNECTION: ChannelPreference(False, True, True),
    NotificationType.MODERATION: ChannelPreference(True, True, True),
}


ROOM_ID_SEPARATOR = "_"
ROOM_ID_ESCAPE = "~"


def _escape_user_id(user_id: str) -> str:
    return user_id.replace(ROOM_ID_ESCAPE, ROOM_ID_ESCAPE * 2).replace(
        ROOM_ID_SEPARATOR, ROOM_ID_ESCAPE + ROOM_ID_SEPARATOR
    )


def split_room_id(room_id: str) -> tuple[str, str] | None:
    """Both participants of a room id, or None when it is not one."""
    parts = [""]
    chars = iter(room_id)
    for char in chars:
        if char == ROOM_ID_ESCAPE:
            escaped = next(chars, None)
            if escaped not in (ROOM_ID_ESCAPE, ROOM_ID_SEPARATOR):
                return None
            parts[-1] += escaped
        elif char == ROOM_ID_SEPARATOR:
            parts.append("")
        else:
            parts[-1] += char
    if len(parts) != 2:
        return None
    return parts[0], parts[1]


def room_id_for(user_a: str, user_b: str) -> str:
    """
    Room id shared by both participants, independent of who asks.

    Separators inside user ids are escaped, so distinct pairs never share an
    id: ``("a_b", "c")`` gives ``a~_b_c`` while ``("a", "b_c")`` gives ``a_b~_c``.
    """
    low, high = sorted((user_a, user_b))
    return f"{_escape_user_id(low)}{ROOM_ID_SEPARATOR}{_escape_user_id(high)}"


# The same sorted-pair key identifies a connection request's pair.
pair_key_for = room_id_for


def other_participant_of(room_id: str, user_id: str) -> str | None:
    """Inverse of `room_id_for` for one known participant."""
    participants = split_room_id(room_id)
    if participants is None or room_id_for(*participants) != room_id:
        return None
    low, high = participants
    if user_id == low:
        return high
    if user_id == high:
        return low
    return None


@dataclass
class PresenceState:
    user_id: str
    is_online: bool = False
    last_seen_at: datetime | None = None
    typing_in_room: str | None = None
