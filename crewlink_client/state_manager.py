import itertools
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from crewlink.domain.entities import room_id_for

STATUS_RANK = {"sent": 0, "delivered": 1, "read": 2}


class StateEvent(Enum):
    """Events that can trigger state changes."""

    USER_LOGGED_IN = "user_logged_in"
    USER_LOGGED_OUT = "user_logged_out"
    ROOMS_LOADED = "rooms_loaded"
    ROOM_UPDATED = "room_updated"
    MESSAGES_CHANGED = "messages_changed"
    UNREAD_COUNT_UPDATED = "unread_count_updated"
    CURRENT_ROOM_CHANGED = "current_room_changed"
    RELATIONSHIP_CHANGED = "relationship_changed"
    PENDING_REQUESTS_CHANGED = "pending_requests_changed"
    NOTIFICATION_RECEIVED = "notification_received"
    TYPING_CHANGED = "typing_changed"
    PRESENCE_CHANGED = "presence_changed"
    CONNECTION_STATUS_CHANGED = "connection_status_changed"


class MessageState(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class LocalMessage:
    """
    A message as the local cache holds it.

    Only ``CONFIRMED`` entries carry a server id and timestamp; pending and
    failed entries are identified by ``local_id`` alone.
    """

    local_id: str
    room_id: str
    sender_id: str
    receiver_id: str
    content: str
    state: MessageState
    id: Optional[int] = None
    status: Optional[str] = None
    timestamp: Optional[str] = None
    error: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_tentative(self) -> bool:
        return self.state != MessageState.CONFIRMED

    @classmethod
    def from_server(cls, message: Dict[str, Any], local_id: Optional[str] = None):
        return cls(
            local_id=local_id or f"server-{message['id']}",
            room_id=message["room_id"],
            sender_id=message["sender_id"],
            receiver_id=message["receiver_id"],
            content=message["content"],
            state=MessageState.CONFIRMED,
            id=message["id"],
            status=message.get("status"),
            timestamp=message.get("timestamp"),
            data=dict(message),
        )


@dataclass(frozen=True)
class Relationship:
    status: str
    tentative: bool = False


def _parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return datetime.min.replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _message_order(message: LocalMessage):
    # Confirmed messages follow server order; tentative ones trail in send order.
    if message.state == MessageState.CONFIRMED:
        return (0, _parse_timestamp(message.timestamp), message.id, "")
    return (1, datetime.min.replace(tzinfo=timezone.utc), 0, message.local_id)


class ObserverHandle:
    """Returned by `AppState.subscribe`; `close()` or leaving the `with` block unsubscribes."""

    def __init__(self, app_state: "AppState", event: StateEvent, callback: Callable):
        self._app_state = app_state
        self.event = event
        self.callback = callback
        self.closed = False

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._app_state.unsubscribe(self.event, self.callback)

    def __enter__(self) -> "ObserverHandle":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class AppState:
    """
    Local cache of one signed-in user's view, with observers per event.

    All reads return copies; writers notify observers outside the lock.
    """

    def __init__(self) -> None:
        self._instance_lock = threading.RLock()

        # Configure logging
        self.logger = logging.getLogger("AppState")
        self.logger.setLevel(logging.INFO)
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s:%(name)s: %(message)s"
        )
        handler.setFormatter(formatter)
        if not self.logger.handlers:
            self.logger.addHandler(handler)

        self._observers: Dict[StateEvent, List[Callable]] = {
            event: [] for event in StateEvent
        }
        self._reset()

    def _reset(self) -> None:
        self._current_user: Optional[Dict[str, Any]] = None
        self._rooms: Dict[str, Dict[str, Any]] = {}
        self._messages: Dict[str, List[LocalMessage]] = {}
        self._unread_counts: Dict[str, int] = {}
        self._current_room_id: Optional[str] = None
        self._relationships: Dict[str, Relationship] = {}
        self._pending_requests: List[Dict[str, Any]] = []
        self._notifications: List[Dict[str, Any]] = []
        self._typing_users: set = set()
        self._presence: Dict[str, Dict[str, Any]] = {}
        self._is_connected: bool = False

    # Observer pattern methods
    def subscribe(
        self, event: StateEvent, callback: Callable[[Dict[str, Any]], None]
    ) -> ObserverHandle:
        """Subscribe to state changes for a specific event."""
        with self._instance_lock:
            if callback not in self._observers[event]:
                self._observers[event].append(callback)
        return ObserverHandle(self, event, callback)

    def unsubscribe(
        self, event: StateEvent, callback: Callable[[Dict[str, Any]], None]
    ) -> None:
        with self._instance_lock:
            if callback in self._observers[event]:
                self._observers[event].remove(callback)

    def _notify_observers(self, event: StateEvent, data: Dict[str, Any]) -> None:
        """Notify all observers of a state change."""
        with self._instance_lock:
            observers = self._observers[event].copy()

        for callback in observers:
            try:
                callback(data)
            except Exception as e:
                self.logger.error(
                    f"Error in observer callback for {event.value}: {str(e)}"
                )

    # User state management
    @property
    def current_user(self) -> Optional[Dict[str, Any]]:
        with self._instance_lock:
            return self._current_user.copy() if self._current_user else None

    @property
    def current_user_id(self) -> Optional[str]:
        with self._instance_lock:
            return self._current_user.get("id") if self._current_user else None

    @property
    def is_authenticated(self) -> bool:
        with self._instance_lock:
            return self._current_user is not None

    def set_current_user(self, user: Optional[Dict[str, Any]]) -> None:
        with self._instance_lock:
            self._current_user = user.copy() if user else None

        event = StateEvent.USER_LOGGED_IN if user else StateEvent.USER_LOGGED_OUT
        self._notify_observers(event, {"user": self.current_user})
        self.logger.info(f"User state changed: {event.value}")

    # Rooms
    @property
    def rooms(self) -> List[Dict[str, Any]]:
        with self._instance_lock:
            rooms = [room.copy() for room in self._rooms.values()]
        return sorted(
            rooms,
            key=lambda r: _parse_timestamp(r.get("last_message_time") or r.get("created_at")),
            reverse=True,
        )

    def get_room(self, room_id: str) -> Optional[Dict[str, Any]]:
        with self._instance_lock:
            room = self._rooms.get(room_id)
            return room.copy() if room else None

    def set_rooms(self, rooms: List[Dict[str, Any]]) -> None:
        with self._instance_lock:
            self._rooms = {room["room_id"]: room.copy() for room in rooms}
            for room in rooms:
                self._unread_counts[room["room_id"]] = room.get("unread_count", 0)
        self._notify_observers(StateEvent.ROOMS_LOADED, {"rooms": self.rooms})
        self.logger.info(f"Loaded {len(rooms)} rooms")

    def _touch_room(self, message: LocalMessage) -> None:
        """Point the room summary at `message` if it is the newest confirmed one."""
        with self._instance_lock:
            room = self._rooms.setdefault(
                message.room_id,
                {
                    "room_id": message.room_id,
                    "other_user_id": message.receiver_id
                    if message.sender_id == self.current_user_id
                    else message.sender_id,
                    "created_at": message.timestamp,
                },
            )
            current_id = room.get("last_message_id")
            current_key = (_parse_timestamp(room.get("last_message_time")), current_id or 0)
            new_key = (_parse_timestamp(message.timestamp), message.id)
            if current_id is not None and new_key <= current_key:
                return
            room.update(
                {
                    "last_message_id": message.id,
                    "last_message_content": message.content,
                    "last_message_time": message.timestamp,
                    "last_message_status": message.status,
                    "last_message_sender_id": message.sender_id,
                }
            )
            updated = room.copy()
        self._notify_observers(StateEvent.ROOM_UPDATED, {"room": updated})

    # Messages
    def messages(self, room_id: str) -> List[LocalMessage]:
        with self._instance_lock:
            return sorted(self._messages.get(room_id, []), key=_message_order)

    def get_local_message(self, local_id: str) -> Optional[LocalMessage]:
        with self._instance_lock:
            for messages in self._messages.values():
                for message in messages:
                    if message.local_id == local_id:
                        return message
        return None

    def _notify_messages(self, room_id: str) -> None:
        self._notify_observers(
            StateEvent.MESSAGES_CHANGED,
            {"room_id": room_id, "messages": self.messages(room_id)},
        )

    def add_local_message(self, message: LocalMessage) -> None:
        with self._instance_lock:
            self._messages.setdefault(message.room_id, []).append(message)
        self._notify_messages(message.room_id)

    def _replace_local(self, local_id: str, new: Optional[LocalMessage]) -> Optional[LocalMessage]:
        with self._instance_lock:
            for room_id, messages in self._messages.items():
                for index, message in enumerate(messages):
                    if message.local_id == local_id:
                        if new is None:
                            messages.pop(index)
                        else:
                            messages[index] = new
                        return message
        return None

    def confirm_message(self, local_id: str, server_message: Dict[str, Any]) -> LocalMessage:
        """Swap a pending entry for the server's copy of the message."""
        confirmed = LocalMessage.from_server(server_message, local_id=local_id)
        with self._instance_lock:
            room_messages = self._messages.setdefault(confirmed.room_id, [])
            # The same message may already have arrived through another path.
            room_messages[:] = [
                m for m in room_messages if m.id != confirmed.id or m.local_id == local_id
            ]
            if self._replace_local(local_id, confirmed) is None:
                room_messages.append(confirmed)
        self._touch_room(confirmed)
        self._notify_messages(confirmed.room_id)
        return confirmed

    def fail_message(self, local_id: str, error: str) -> Optional[LocalMessage]:
        with self._instance_lock:
            current = self.get_local_message(local_id)
            if current is None:
                return None
            failed = replace(current, state=MessageState.FAILED, error=error)
            self._replace_local(local_id, failed)
        self._notify_messages(failed.room_id)
        return failed

    def mark_pending(self, local_id: str) -> Optional[LocalMessage]:
        with self._instance_lock:
            current = self.get_local_message(local_id)
            if current is None:
                return None
            pending = replace(current, state=MessageState.PENDING, error=None)
            self._replace_local(local_id, pending)
        self._notify_messages(pending.room_id)
        return pending

    def remove_local_message(self, local_id: str) -> Optional[LocalMessage]:
        removed = self._replace_local(local_id, None)
        if removed is not None:
            self._notify_messages(removed.room_id)
        return removed

    def merge_server_messages(self, room_id: str, server_messages: List[Dict[str, Any]]) -> None:
        """Replace confirmed history of a room, keeping tentative entries."""
        with self._instance_lock:
            tentative = [m for m in self._messages.get(room_id, []) if m.is_tentative]
            known = {
                m.id: m for m in self._messages.get(room_id, []) if not m.is_tentative
            }
            confirmed = []
            for data in server_messages:
                incoming = LocalMessage.from_server(
                    data, local_id=known[data["id"]].local_id if data["id"] in known else None
                )
                previous = known.get(incoming.id)
                if previous is not None and STATUS_RANK.get(previous.status, 0) > STATUS_RANK.get(
                    incoming.status, 0
                ):
                    incoming = replace(incoming, status=previous.status)
                confirmed.append(incoming)
            self._messages[room_id] = confirmed + tentative
        self._notify_messages(room_id)

    def add_server_message(self, server_message: Dict[str, Any]) -> Optional[LocalMessage]:
        """Cache a message pushed by the server; None if it is already known."""
        message = LocalMessage.from_server(server_message)
        with self._instance_lock:
            room_messages = self._messages.setdefault(message.room_id, [])
            if any(m.id == message.id for m in room_messages):
                return None
            room_messages.append(message)
        self._touch_room(message)
        self._notify_messages(message.room_id)
        return message

    def apply_status(self, message_id: int, room_id: str, status: str) -> bool:
        """Advance a confirmed message's status; older statuses are ignored."""
        with self._instance_lock:
            messages = self._messages.get(room_id, [])
            for index, message in enumerate(messages):
                if message.id != message_id:
                    continue
                if STATUS_RANK.get(status, 0) <= STATUS_RANK.get(message.status, 0):
                    return False
                messages[index] = replace(message, status=status)
                break
            else:
                return False
            room = self._rooms.get(room_id)
            if room and room.get("last_message_id") == message_id:
                room["last_message_status"] = status
        self._notify_messages(room_id)
        return True

    # Unread counts
    @property
    def unread_counts(self) -> Dict[str, int]:
        with self._instance_lock:
            return self._unread_counts.copy()

    def get_unread_count(self, room_id: str) -> int:
        with self._instance_lock:
            return self._unread_counts.get(room_id, 0)

    def update_unread_count(self, room_id: str, count: int) -> None:
        with self._instance_lock:
            old_count = self._unread_counts.get(room_id, 0)
            self._unread_counts[room_id] = count

        if old_count != count:
            self._notify_observers(
                StateEvent.UNREAD_COUNT_UPDATED,
                {"room_id": room_id, "old_count": old_count, "new_count": count},
            )

    @property
    def current_room_id(self) -> Optional[str]:
        with self._instance_lock:
            return self._current_room_id

    def set_current_room(self, room_id: Optional[str]) -> None:
        with self._instance_lock:
            old_room_id = self._current_room_id
            self._current_room_id = room_id

        if old_room_id != room_id:
            self._notify_observers(
                StateEvent.CURRENT_ROOM_CHANGED,
                {"old_room_id": old_room_id, "new_room_id": room_id},
            )

    # Relationships
    def get_relationship(self, user_id: str) -> Relationship:
        with self._instance_lock:
            return self._relationships.get(user_id, Relationship("none"))

    def set_relationship(self, user_id: str, relationship: Relationship) -> None:
        with self._instance_lock:
            self._relationships[user_id] = relationship
        self._notify_observers(
            StateEvent.RELATIONSHIP_CHANGED,
            {"user_id": user_id, "relationship": relationship},
        )

    @property
    def pending_requests(self) -> List[Dict[str, Any]]:
        with self._instance_lock:
            return [request.copy() for request in self._pending_requests]

    def set_pending_requests(self, requests: List[Dict[str, Any]]) -> None:
        with self._instance_lock:
            self._pending_requests = [request.copy() for request in requests]
        self._notify_observers(
            StateEvent.PENDING_REQUESTS_CHANGED, {"requests": self.pending_requests}
        )

    # Notifications
    @property
    def notifications(self) -> List[Dict[str, Any]]:
        with self._instance_lock:
            return [n.copy() for n in self._notifications]

    def add_notification(self, notification: Dict[str, Any]) -> None:
        with self._instance_lock:
            if any(n.get("id") == notification.get("id") for n in self._notifications):
                return
            self._notifications.insert(0, notification.copy())
        self._notify_observers(
            StateEvent.NOTIFICATION_RECEIVED, {"notification": notification.copy()}
        )

    # Typing and presence
    def is_typing(self, user_id: str) -> bool:
        with self._instance_lock:
            return user_id in self._typing_users

    def set_typing(self, user_id: str, is_typing: bool) -> None:
        with self._instance_lock:
            was_typing = user_id in self._typing_users
            if is_typing:
                self._typing_users.add(user_id)
            else:
                self._typing_users.discard(user_id)
        if was_typing != is_typing:
            self._notify_observers(
                StateEvent.TYPING_CHANGED, {"user_id": user_id, "is_typing": is_typing}
            )

    def get_presence(self, user_id: str) -> Dict[str, Any]:
        with self._instance_lock:
            return self._presence.get(user_id, {"is_online": False, "last_seen_at": None}).copy()

    def set_presence(self, user_id: str, is_online: bool, last_seen_at: Optional[str]) -> None:
        with self._instance_lock:
            self._presence[user_id] = {"is_online": is_online, "last_seen_at": last_seen_at}
            if not is_online:
                self._typing_users.discard(user_id)
        self._notify_observers(
            StateEvent.PRESENCE_CHANGED,
            {"user_id": user_id, "is_online": is_online, "last_seen_at": last_seen_at},
        )

    # Connection status
    @property
    def is_connected(self) -> bool:
        with self._instance_lock:
            return self._is_connected

    def set_connection_status(self, connected: bool) -> None:
        with self._instance_lock:
            old_status = self._is_connected
            self._is_connected = connected

        if old_status != connected:
            self._notify_observers(
                StateEvent.CONNECTION_STATUS_CHANGED,
                {"old_status": old_status, "new_status": connected},
            )
            self.logger.info(f"Connection status changed: {connected}")

    def clear_all_state(self) -> None:
        """Clear all state (for logout)."""
        with self._instance_lock:
            self._reset()
        self.logger.info("All state cleared")


class StateManager:
    """
    Coordinates between the API client, the realtime session, and application state.

    Every command first applies a tentative change to the cache, then makes
    the HTTP round trip, then either confirms or rolls the change back. The
    returned ``ApiResponse.error`` carries the server's reason on failure.
    """

    def __init__(
        self,
        api_client,
        realtime_client=None,
        app_state: Optional[AppState] = None,
        typing_delay: float = 1.0,
    ) -> None:
        self.api_client = api_client
        self.realtime_client = realtime_client
        self.app_state = app_state or AppState()
        self.typing_delay = typing_delay

        # Configure logging
        self.logger = logging.getLogger("StateManager")
        self.logger.setLevel(logging.INFO)
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s:%(name)s: %(message)s"
        )
        handler.setFormatter(formatter)
        if not self.logger.handlers:
            self.logger.addHandler(handler)

        self._local_ids = itertools.count(1)
        self._realtime_subscriptions = []
        self._typing_lock = threading.Lock()
        self._typing_receiver: Optional[str] = None
        self._typing_timer: Optional[threading.Timer] = None

    def initialize(self) -> None:
        """Load initial data if authenticated."""
        if self.api_client.is_authenticated():
            self.load_initial_data()

    def load_initial_data(self) -> bool:
        user_response = self.api_client.get_current_user()
        if not user_response.success:
            self.logger.error(f"Failed to load current user: {user_response.error}")
            return False
        self.app_state.set_current_user(user_response.data)

        self.refresh_rooms()
        self.refresh_pending_requests()
        self.setup_real_time_subscriptions()
        return True

    def refresh_rooms(self) -> bool:
        response = self.api_client.get_rooms()
        if not response.success:
            self.logger.error(f"Failed to load rooms: {response.error}")
            return False
        rooms = response.data.get("rooms", [])
        self.app_state.set_rooms(rooms)
        for room in rooms:
            self.app_state.set_relationship(room["other_user_id"], Relationship("connected"))
            self.app_state.set_presence(
                room["other_user_id"],
                room.get("other_user_online", False),
                room.get("other_user_last_seen"),
            )
        return True

    def refresh_pending_requests(self) -> bool:
        response = self.api_client.get_pending_requests()
        if not response.success:
            self.logger.error(f"Failed to load pending requests: {response.error}")
            return False
        requests = response.data.get("requests", [])
        self.app_state.set_pending_requests(requests)
        for request in requests:
            self.app_state.set_relationship(request["sender_id"], Relationship("pending-incoming"))
        return True

    def load_messages(self, room_id: str) -> bool:
        response = self.api_client.get_room_messages(room_id)
        if not response.success:
            self.logger.error(f"Failed to load messages for {room_id}: {response.error}")
            return False
        self.app_state.merge_server_messages(room_id, response.data)
        return True

    # Realtime
    def setup_real_time_subscriptions(self) -> None:
        if self.realtime_client is None or self._realtime_subscriptions:
            return
        handlers = {
            "new-message": self._handle_new_message,
            "message-status-update": self._handle_status_update,
            "realtime-notification": self._handle_notification,
            "typing-start": self._handle_typing,
            "typing-stop": self._handle_typing,
            "presence-changed": self._handle_presence,
        }
        for event, handler in handlers.items():
            self._realtime_subscriptions.append(self.realtime_client.subscribe(event, handler))
        self.realtime_client.on_connection_change = self.app_state.set_connection_status
        self.realtime_client.start()

    def _handle_new_message(self, frame: Dict[str, Any]) -> None:
        message = self.app_state.add_server_message(frame["message"])
        if message is None:
            return
        if message.receiver_id == self.app_state.current_user_id:
            self.app_state.set_typing(message.sender_id, False)
            if self.app_state.current_room_id != message.room_id:
                self.app_state.update_unread_count(
                    message.room_id, self.app_state.get_unread_count(message.room_id) + 1
                )

    def _handle_status_update(self, frame: Dict[str, Any]) -> None:
        self.app_state.apply_status(frame["message_id"], frame["room_id"], frame["status"])

    def _handle_notification(self, frame: Dict[str, Any]) -> None:
        notification = frame["notification"]
        self.app_state.add_notification(notification)
        data = notification.get("data") or {}
        if notification.get("type") == "connection_request":
            self.refresh_pending_requests()
        elif notification.get("type") == "connection_accepted" and data.get("user_id"):
            self.app_state.set_relationship(data["user_id"], Relationship("connected"))
            self.refresh_rooms()
        elif notification.get("type") == "connection_declined" and data.get("user_id"):
            self.app_state.set_relationship(data["user_id"], Relationship("declined"))

    def _handle_typing(self, frame: Dict[str, Any]) -> None:
        self.app_state.set_typing(frame["sender_id"], frame["event"] == "typing-start")

    def _handle_presence(self, frame: Dict[str, Any]) -> None:
        self.app_state.set_presence(
            frame["user_id"], frame["is_online"], frame.get("last_seen_at")
        )

    # Messages
    def _next_local_id(self) -> str:
        return f"local-{next(self._local_ids)}"

    def _persist_message(self, local_id: str) -> LocalMessage:
        pending = self.app_state.get_local_message(local_id)
        response = self.api_client.send_message(pending.receiver_id, pending.content)
        if response.success:
            return self.app_state.confirm_message(local_id, response.data)
        self.logger.warning(f"Message {local_id} failed: {response.error}")
        return self.app_state.fail_message(local_id, response.error)

    def send_message(self, receiver_id: str, content: str) -> LocalMessage:
        """Send a message; the returned entry is either confirmed or failed."""
        sender_id = self.app_state.current_user_id
        self.stop_typing()
        pending = LocalMessage(
            local_id=self._next_local_id(),
            room_id=room_id_for(sender_id, receiver_id),
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            state=MessageState.PENDING,
        )
        self.app_state.add_local_message(pending)
        return self._persist_message(pending.local_id)

    def retry_message(self, local_id: str) -> Optional[LocalMessage]:
        current = self.app_state.get_local_message(local_id)
        if current is None or current.state != MessageState.FAILED:
            self.logger.warning(f"Only failed messages can be retried: {local_id}")
            return None
        self.app_state.mark_pending(local_id)
        return self._persist_message(local_id)

    def discard_message(self, local_id: str) -> bool:
        current = self.app_state.get_local_message(local_id)
        if current is None or current.state != MessageState.FAILED:
            return False
        self.app_state.remove_local_message(local_id)
        return True

    def mark_message_status(self, message_id: int, room_id: str, status: str):
        response = self.api_client.update_message_status(message_id, status)
        if response.success:
            self.app_state.apply_status(message_id, room_id, response.data["status"])
        return response

    def open_room(self, room_id: str) -> None:
        self.app_state.set_current_room(room_id)
        self.load_messages(room_id)
        response = self.api_client.mark_room_read(room_id)
        if response.success:
            self.app_state.update_unread_count(room_id, 0)

    # Connections
    def send_connection_request(self, user_id: str, message: Optional[str] = None):
        previous = self.app_state.get_relationship(user_id)
        self.app_state.set_relationship(user_id, Relationship("pending-outgoing", tentative=True))

        response = self.api_client.send_connection_request(user_id, message)
        if response.success:
            self.app_state.set_relationship(user_id, Relationship("pending-outgoing"))
        else:
            self.app_state.set_relationship(user_id, previous)
        return response

    def respond_to_request(self, request_id: int, action: str):
        requests = self.app_state.pending_requests
        request = next((r for r in requests if r["id"] == request_id), None)
        sender_id = request["sender_id"] if request else None
        previous = self.app_state.get_relationship(sender_id) if sender_id else None

        if sender_id:
            tentative = "connected" if action == "accept" else "declined"
            self.app_state.set_relationship(sender_id, Relationship(tentative, tentative=True))
        self.app_state.set_pending_requests([r for r in requests if r["id"] != request_id])

        response = self.api_client.respond_to_request(request_id, action)
        if response.success:
            confirmed = response.data["request"]
            status = "connected" if confirmed["status"] == "accepted" else "declined"
            self.app_state.set_relationship(confirmed["sender_id"], Relationship(status))
            if response.data.get("room_id"):
                self.refresh_rooms()
        else:
            self.app_state.set_pending_requests(requests)
            if sender_id:
                self.app_state.set_relationship(sender_id, previous)
        return response

    # Typing
    def on_input(self, receiver_id: str) -> None:
        """Call on every keystroke; sends typing-start once and typing-stop after a pause."""
        if self.realtime_client is None:
            return
        sender_id = self.app_state.current_user_id
        with self._typing_lock:
            if self._typing_timer is not None:
                self._typing_timer.cancel()
            if self._typing_receiver != receiver_id:
                if self._typing_receiver is not None:
                    self.realtime_client.send_typing(sender_id, self._typing_receiver, False)
                self._typing_receiver = receiver_id
                self.realtime_client.send_typing(sender_id, receiver_id, True)
            self._typing_timer = threading.Timer(self.typing_delay, self.stop_typing)
            self._typing_timer.daemon = True
            self._typing_timer.start()

    def stop_typing(self) -> None:
        with self._typing_lock:
            if self._typing_timer is not None:
                self._typing_timer.cancel()
                self._typing_timer = None
            receiver_id, self._typing_receiver = self._typing_receiver, None
        if receiver_id is not None and self.realtime_client is not None:
            self.realtime_client.send_typing(self.app_state.current_user_id, receiver_id, False)

    def logout_user(self) -> None:
        self.stop_typing()
        for subscription in self._realtime_subscriptions:
            subscription.close()
        self._realtime_subscriptions.clear()
        if self.realtime_client is not None:
            self.realtime_client.stop()
        self.app_state.clear_all_state()
