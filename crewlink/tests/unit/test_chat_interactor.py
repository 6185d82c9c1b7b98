# crewlink/tests/unit/test_chat_interactor.py
from unittest.mock import AsyncMock

import pytest

from crewlink.domain.entities import MessageStatus, RespondAction
from crewlink.domain.errors import (
    Forbidden,
    InvalidStatusTransition,
    NotConnected,
    NotFound,
)
from crewlink.domain.events import MessageSent, MessageStatusChanged, PresenceUpdated
from crewlink.interactors.chat_interactor import ChatInteractor
from crewlink.interactors.connection_interactor import ConnectionInteractor

pytestmark = pytest.mark.asyncio


@pytest.fixture
def event_dispatcher():
    return AsyncMock()


@pytest.fixture
def interactor(crew, event_dispatcher, presence):
    return ChatInteractor(crew, event_dispatcher, presence)


@pytest.fixture
async def connected(crew, event_dispatcher):
    connections = ConnectionInteractor(crew, event_dispatcher)
    request = await connections.send_request("alice", "bob")
    await connections.respond(request.id, "bob", RespondAction.ACCEPT)
    event_dispatcher.reset_mock()


def _dispatched(event_dispatcher, event_type):
    return [
        call.args[0]
        for call in event_dispatcher.dispatch.await_args_list
        if isinstance(call.args[0], event_type)
    ]


async def test_send_requires_connection(interactor, event_dispatcher):
    with pytest.raises(NotConnected):
        await interactor.send_message("alice", "bob", "hello")
    event_dispatcher.dispatch.assert_not_awaited()


async def test_send_message(interactor, event_dispatcher, connected):
    message = await interactor.send_message("alice", "bob", "hello")

    assert message.room_id == "alice_bob"
    assert message.status == MessageStatus.SENT
    [event] = _dispatched(event_dispatcher, MessageSent)
    assert event.message.id == message.id
    assert event.sender.display_name == "Alice Deck"


async def test_list_rooms_includes_presence(interactor, presence, connected):
    await interactor.send_message("alice", "bob", "hello")
    await presence.mark_online("bob")

    [room] = (await interactor.list_rooms("alice")).rooms
    assert room.other_user_id == "bob"
    assert room.other_user_online is True
    assert room.other_user_last_seen is not None
    assert room.unread_count == 0

    [room] = (await interactor.list_rooms("bob")).rooms
    assert room.other_user_online is False
    assert room.unread_count == 1


async def test_list_messages_participants_only(interactor, connected):
    await interactor.send_message("alice", "bob", "hello")
    with pytest.raises(Forbidden):
        await interactor.list_messages("alice_bob", "carol")
    assert len(await interactor.list_messages("alice_bob", "bob")) == 1


async def test_update_status_rules(interactor, event_dispatcher, connected):
    message = await interactor.send_message("alice", "bob", "hello")

    with pytest.raises(NotFound):
        await interactor.update_status(9999, "bob", MessageStatus.READ)
    with pytest.raises(Forbidden):
        await interactor.update_status(message.id, "alice", MessageStatus.READ)

    read = await interactor.update_status(message.id, "bob", MessageStatus.READ)
    assert read.status == MessageStatus.READ
    with pytest.raises(InvalidStatusTransition):
        await interactor.update_status(message.id, "bob", MessageStatus.DELIVERED)

    event_dispatcher.reset_mock()
    again = await interactor.update_status(message.id, "bob", MessageStatus.READ)
    assert again.status == MessageStatus.READ
    assert _dispatched(event_dispatcher, MessageStatusChanged) == []


async def test_status_update_after_lost_race(interactor, crew, connected):
    message = await interactor.send_message("alice", "bob", "hello")
    crew.messages.advance_status = AsyncMock(return_value=False)

    # The stored message is still "sent", so the lost update is a real conflict.
    with pytest.raises(InvalidStatusTransition):
        await interactor.update_status(message.id, "bob", MessageStatus.DELIVERED)


async def test_status_change_notifies_sender(interactor, event_dispatcher, connected):
    message = await interactor.send_message("alice", "bob", "hello")
    await interactor.update_status(message.id, "bob", MessageStatus.DELIVERED)

    [event] = _dispatched(event_dispatcher, MessageStatusChanged)
    assert event.sender_id == "alice"
    assert event.status == MessageStatus.DELIVERED


async def test_mark_room_read(interactor, event_dispatcher, connected):
    for i in range(2):
        await interactor.send_message("alice", "bob", f"message {i}")

    result = await interactor.mark_room_read("alice_bob", "bob")
    assert result.updated == 2
    assert len(_dispatched(event_dispatcher, MessageStatusChanged)) == 2
    assert (await interactor.unread_total("bob")).unread_count == 0

    with pytest.raises(Forbidden):
        await interactor.mark_room_read("alice_bob", "carol")


async def test_conversation_before_first_message(interactor, connected):
    conversation = await interactor.get_conversation("bob", "alice")
    assert conversation.room_id == "alice_bob"
    assert conversation.messages == []


async def test_hiding_presence(interactor, presence, event_dispatcher):
    await presence.mark_online("alice")
    assert (await interactor.get_presence("alice")).is_online is True

    status = await interactor.update_online_status("alice", False)
    assert status.is_online is False
    [event] = _dispatched(event_dispatcher, PresenceUpdated)
    assert event.is_online is False

    status = await interactor.update_online_status("alice", True)
    assert status.is_online is True
