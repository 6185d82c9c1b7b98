import threading
from unittest.mock import Mock

import pytest

from crewlink_client.api_client import ApiResponse
from crewlink_client.state_manager import (
    AppState,
    MessageState,
    Relationship,
    StateEvent,
    StateManager,
)


def _message(message_id, content="hi", timestamp="2026-10-17T09:00:00", status="sent",
             sender_id="alice", receiver_id="bob"):
    return {
        "id": message_id,
        "room_id": "alice_bob",
        "sender_id": sender_id,
        "receiver_id": receiver_id,
        "content": content,
        "status": status,
        "timestamp": timestamp,
        "delivered_at": None,
        "read_at": None,
    }


@pytest.fixture
def api_client():
    client = Mock()
    client.is_authenticated.return_value = True
    client.get_current_user.return_value = ApiResponse(True, {"id": "alice", "display_name": "Alice"})
    client.get_rooms.return_value = ApiResponse(True, {"rooms": []})
    client.get_pending_requests.return_value = ApiResponse(True, {"requests": []})
    return client


@pytest.fixture
def realtime_client():
    return Mock()


@pytest.fixture
def manager(api_client, realtime_client):
    manager = StateManager(api_client, realtime_client, typing_delay=0.05)
    manager.app_state.set_current_user({"id": "alice"})
    return manager


def test_observer_handle_unsubscribes():
    state = AppState()
    seen = []
    handle = state.subscribe(StateEvent.TYPING_CHANGED, seen.append)

    state.set_typing("bob", True)
    handle.close()
    handle.close()
    state.set_typing("bob", False)

    assert seen == [{"user_id": "bob", "is_typing": True}]


def test_failing_observer_is_isolated():
    state = AppState()
    seen = []

    def broken(data):
        raise RuntimeError("boom")

    state.subscribe(StateEvent.CONNECTION_STATUS_CHANGED, broken)
    with state.subscribe(StateEvent.CONNECTION_STATUS_CHANGED, seen.append):
        state.set_connection_status(True)

    assert seen == [{"old_status": False, "new_status": True}]


def test_send_message_shows_pending_then_confirms(manager, api_client):
    states_seen = []

    def send(receiver_id, content):
        states_seen.append([m.state for m in manager.app_state.messages("alice_bob")])
        return ApiResponse(True, _message(11, content), status_code=201)

    api_client.send_message.side_effect = send
    message = manager.send_message("bob", "Deck 5?")

    assert states_seen == [[MessageState.PENDING]]
    assert message.state == MessageState.CONFIRMED
    assert message.id == 11
    [cached] = manager.app_state.messages("alice_bob")
    assert cached.local_id == message.local_id
    assert manager.app_state.get_room("alice_bob")["last_message_id"] == 11


def test_failed_send_keeps_server_reason(manager, api_client):
    api_client.send_message.return_value = ApiResponse(
        False, status_code=403, error="You can only message accepted connections", code="not_connected"
    )

    message = manager.send_message("bob", "hello?")

    assert message.state == MessageState.FAILED
    assert message.error == "You can only message accepted connections"
    assert manager.app_state.get_room("alice_bob") is None


def test_retry_and_discard_only_touch_failed(manager, api_client):
    api_client.send_message.return_value = ApiResponse(False, error="Could not reach CrewLink")
    failed = manager.send_message("bob", "again")

    api_client.send_message.return_value = ApiResponse(True, _message(12, "again"))
    retried = manager.retry_message(failed.local_id)
    assert retried.state == MessageState.CONFIRMED

    assert manager.retry_message(failed.local_id) is None
    assert manager.discard_message(failed.local_id) is False
    assert api_client.send_message.call_count == 2

    api_client.send_message.return_value = ApiResponse(False, error="nope")
    other = manager.send_message("bob", "lost")
    assert manager.discard_message(other.local_id) is True
    assert [m.id for m in manager.app_state.messages("alice_bob")] == [12]


def test_confirmed_messages_sorted_by_server_order(manager, api_client):
    api_client.send_message.return_value = ApiResponse(False, error="offline")
    manager.send_message("bob", "pending one")
    api_client.get_room_messages.return_value = ApiResponse(
        True,
        [
            _message(3, "later", "2026-10-17T09:05:00"),
            _message(1, "first", "2026-10-17T09:00:00"),
            _message(2, "same time", "2026-10-17T09:00:00"),
        ],
    )

    manager.load_messages("alice_bob")

    contents = [m.content for m in manager.app_state.messages("alice_bob")]
    assert contents == ["first", "same time", "later", "pending one"]


def test_incoming_message_counts_unread_outside_room(manager):
    manager._handle_new_message(
        {"event": "new-message", "message": _message(5, sender_id="bob", receiver_id="alice")}
    )
    manager._handle_new_message(
        {"event": "new-message", "message": _message(5, sender_id="bob", receiver_id="alice")}
    )

    assert len(manager.app_state.messages("alice_bob")) == 1
    assert manager.app_state.get_unread_count("alice_bob") == 1

    manager.app_state.set_current_room("alice_bob")
    manager._handle_new_message(
        {"event": "new-message", "message": _message(6, sender_id="bob", receiver_id="alice")}
    )
    assert manager.app_state.get_unread_count("alice_bob") == 1


def test_status_updates_never_regress(manager):
    manager.app_state.add_server_message(_message(8))

    manager._handle_status_update({"message_id": 8, "room_id": "alice_bob", "status": "read"})
    manager._handle_status_update({"message_id": 8, "room_id": "alice_bob", "status": "delivered"})

    [message] = manager.app_state.messages("alice_bob")
    assert message.status == "read"
    assert manager.app_state.get_room("alice_bob")["last_message_status"] == "read"


def test_reload_keeps_newer_local_status(manager, api_client):
    manager.app_state.add_server_message(_message(8))
    manager.app_state.apply_status(8, "alice_bob", "read")
    api_client.get_room_messages.return_value = ApiResponse(True, [_message(8, status="delivered")])

    manager.load_messages("alice_bob")

    [message] = manager.app_state.messages("alice_bob")
    assert message.status == "read"


def test_connection_request_rolls_back_on_failure(manager, api_client):
    seen = []

    def send(user_id, message):
        seen.append(manager.app_state.get_relationship("bob"))
        return ApiResponse(False, status_code=409, error="A request is already pending", code="duplicate_request")

    api_client.send_connection_request.side_effect = send
    response = manager.send_connection_request("bob")

    assert seen == [Relationship("pending-outgoing", tentative=True)]
    assert response.code == "duplicate_request"
    assert manager.app_state.get_relationship("bob") == Relationship("none")


def test_connection_request_confirmed(manager, api_client):
    api_client.send_connection_request.return_value = ApiResponse(True, {"id": 1, "status": "pending"})

    manager.send_connection_request("bob", "Hi from deck 5")

    api_client.send_connection_request.assert_called_once_with("bob", "Hi from deck 5")
    assert manager.app_state.get_relationship("bob") == Relationship("pending-outgoing")


def test_respond_to_request_accept(manager, api_client):
    manager.app_state.set_pending_requests([{"id": 4, "sender_id": "carol", "status": "pending"}])
    api_client.respond_to_request.return_value = ApiResponse(
        True,
        {"request": {"id": 4, "sender_id": "carol", "status": "accepted"}, "room_id": "alice_carol"},
    )

    manager.respond_to_request(4, "accept")

    assert manager.app_state.pending_requests == []
    assert manager.app_state.get_relationship("carol") == Relationship("connected")
    api_client.get_rooms.assert_called_once()


def test_respond_to_request_failure_restores_request(manager, api_client):
    request = {"id": 4, "sender_id": "carol", "status": "pending"}
    manager.app_state.set_pending_requests([request])
    manager.app_state.set_relationship("carol", Relationship("pending-incoming"))
    api_client.respond_to_request.return_value = ApiResponse(
        False, status_code=404, error="Connection request not found", code="not_found"
    )

    manager.respond_to_request(4, "decline")

    assert manager.app_state.pending_requests == [request]
    assert manager.app_state.get_relationship("carol") == Relationship("pending-incoming")


def test_typing_debounce(manager, realtime_client):
    stopped = threading.Event()
    realtime_client.send_typing.side_effect = (
        lambda sender, receiver, is_typing: None if is_typing else stopped.set()
    )

    manager.on_input("bob")
    manager.on_input("bob")
    manager.on_input("bob")

    assert stopped.wait(2)
    calls = [call.args for call in realtime_client.send_typing.call_args_list]
    assert calls == [("alice", "bob", True), ("alice", "bob", False)]


def test_sending_stops_typing(manager, api_client, realtime_client):
    api_client.send_message.return_value = ApiResponse(True, _message(20))
    manager.on_input("bob")
    manager.send_message("bob", "hi")

    calls = [call.args for call in realtime_client.send_typing.call_args_list]
    assert calls == [("alice", "bob", True), ("alice", "bob", False)]


def test_realtime_frames_update_state(manager, realtime_client, api_client):
    handlers = {}

    def subscribe(event, callback):
        handlers[event] = callback
        return Mock()

    realtime_client.subscribe.side_effect = subscribe
    assert manager.load_initial_data() is True
    realtime_client.start.assert_called_once()

    handlers["typing-start"]({"event": "typing-start", "sender_id": "bob", "receiver_id": "alice"})
    assert manager.app_state.is_typing("bob")

    handlers["presence-changed"](
        {"event": "presence-changed", "user_id": "bob", "is_online": False, "last_seen_at": "2026-10-17T10:00:00"}
    )
    assert manager.app_state.get_presence("bob")["is_online"] is False
    assert not manager.app_state.is_typing("bob")

    handlers["realtime-notification"](
        {
            "event": "realtime-notification",
            "notification": {
                "id": 9,
                "type": "connection_accepted",
                "title": "Connection Accepted",
                "message": "Bob Galley accepted your connection request",
                "data": {"request_id": 1, "user_id": "bob"},
            },
        }
    )
    assert manager.app_state.notifications[0]["id"] == 9
    assert manager.app_state.get_relationship("bob") == Relationship("connected")


def test_logout_clears_state(manager, realtime_client):
    subscription = Mock()
    realtime_client.subscribe.return_value = subscription
    manager.setup_real_time_subscriptions()

    manager.logout_user()

    assert subscription.close.call_count == 6
    realtime_client.stop.assert_called_once()
    assert manager.app_state.current_user is None
