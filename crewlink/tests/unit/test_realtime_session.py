# crewlink/tests/unit/test_realtime_session.py
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import WebSocketDisconnect

from crewlink.api.realtime import RealtimeSession
from crewlink.domain.entities import RequestStatus
from crewlink.domain.events import PresenceUpdated
from crewlink.domain.realtime import TypingStart, TypingStop
from crewlink.infrastructure.database import create_database
from crewlink.infrastructure.models import utcnow

pytestmark = pytest.mark.asyncio


@pytest.fixture
def websocket():
    return AsyncMock()


@pytest.fixture
def event_dispatcher():
    return AsyncMock()


@pytest.fixture
def bus():
    bus = AsyncMock()
    bus.publish.return_value = True
    return bus


@pytest.fixture
async def database(engine, crew):
    request = await crew.connections.create_request("alice", "bob", None)
    await crew.connections.transition_request(request.id, RequestStatus.ACCEPTED, utcnow())
    await crew.commit()
    return create_database(engine)


@pytest.fixture
def session(websocket, bus, presence, event_dispatcher, database, test_logger):
    return RealtimeSession(
        websocket, "alice", bus, presence, event_dispatcher, database, test_logger
    )


def _sent_frames(websocket):
    return [json.loads(call.args[0]) for call in websocket.send_text.await_args_list]


def _typing(event="typing-start", sender_id="alice", receiver_id="bob"):
    return json.dumps({"event": event, "sender_id": sender_id, "receiver_id": receiver_id})


async def test_open_announces_first_session(session, event_dispatcher, presence):
    await session.open()
    [call] = event_dispatcher.dispatch.await_args_list
    assert call.args[0] == PresenceUpdated(
        user_id="alice",
        is_online=True,
        last_seen_at=(await presence.get_presence("alice")).last_seen_at,
    )

    event_dispatcher.reset_mock()
    await session.open()
    event_dispatcher.dispatch.assert_not_awaited()


async def test_typing_frame_is_forwarded(session, bus, presence):
    await session.open()
    await session.handle_frame(_typing())

    frame, target = bus.publish.await_args.args
    assert isinstance(frame, TypingStart)
    assert target == "bob"
    assert (await presence.get_presence("alice")).typing_in_room == "alice_bob"


async def test_malformed_frame(session, websocket, bus):
    await session.handle_frame("{oops")
    assert _sent_frames(websocket)[0]["code"] == "invalid_event"
    bus.publish.assert_not_awaited()


async def test_server_frames_rejected(session, websocket):
    frame = {"event": "presence-changed", "user_id": "alice", "is_online": True}
    await session.handle_frame(json.dumps(frame))
    assert _sent_frames(websocket)[0]["code"] == "unsupported_event"


async def test_spoofed_sender_rejected(session, websocket, bus):
    await session.handle_frame(_typing(sender_id="carol"))
    [frame] = _sent_frames(websocket)
    assert frame == {
        "event": "error",
        "code": "forbidden",
        "detail": "Typing events must be sent as yourself",
    }
    bus.publish.assert_not_awaited()


async def test_typing_to_unconnected_user_rejected(session, websocket, bus, presence):
    await session.handle_frame(_typing(receiver_id="carol"))

    [frame] = _sent_frames(websocket)
    assert frame["code"] == "not_connected"
    bus.publish.assert_not_awaited()
    assert (await presence.get_presence("alice")).typing_in_room is None


async def test_typing_to_blocking_user_rejected(session, websocket, bus, crew):
    await crew.connections.create_block("bob", "alice")
    await crew.commit()

    await session.handle_frame(_typing())

    assert _sent_frames(websocket)[0]["code"] == "not_connected"
    bus.publish.assert_not_awaited()


async def test_close_stops_typing_and_goes_offline(session, bus, presence, event_dispatcher):
    await session.open()
    await session.handle_frame(_typing())
    bus.reset_mock()
    event_dispatcher.reset_mock()

    await session.close()

    frame, target = bus.publish.await_args.args
    assert isinstance(frame, TypingStop)
    assert target == "bob"
    [call] = event_dispatcher.dispatch.await_args_list
    assert call.args[0].is_online is False
    assert (await presence.get_presence("alice")).is_online is False


async def test_close_with_other_session_open(session, presence, event_dispatcher):
    await session.open()
    await presence.mark_online("alice")
    event_dispatcher.reset_mock()

    await session.close()
    event_dispatcher.dispatch.assert_not_awaited()
    assert (await presence.get_presence("alice")).is_online is True


async def test_run_until_disconnect(
    websocket, realtime_bus, presence, event_dispatcher, database, test_logger
):
    websocket.receive_text.side_effect = [_typing(), WebSocketDisconnect()]
    session = RealtimeSession(
        websocket, "alice", realtime_bus, presence, event_dispatcher, database, test_logger
    )

    await session.run()

    state = await presence.get_presence("alice")
    assert state.is_online is False
    assert state.typing_in_room is None
