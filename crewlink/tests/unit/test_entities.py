# crewlink/tests/unit/test_entities.py
import pytest

from crewlink.domain.entities import (
    DEFAULT_PREFERENCES,
    MessageStatus,
    NotificationType,
    other_participant_of,
    pair_key_for,
    room_id_for,
    split_room_id,
)


def test_room_id_is_order_independent():
    assert room_id_for("bob", "alice") == room_id_for("alice", "bob") == "alice_bob"


@pytest.mark.parametrize(
    "user_a, user_b",
    [("alice", "bob"), ("crew_7", "crew_12"), ("a_b", "a_c"), ("a~", "b"), ("a_", "_b")],
)
def test_other_participant_inverts_room_id(user_a, user_b):
    room_id = room_id_for(user_a, user_b)
    assert other_participant_of(room_id, user_a) == user_b
    assert other_participant_of(room_id, user_b) == user_a


def test_other_participant_of_foreign_room():
    assert other_participant_of("alice_bob", "carol") is None


def test_distinct_pairs_never_share_a_key():
    assert room_id_for("a_b", "c") == "a~_b_c"
    assert room_id_for("a", "b_c") == "a_b~_c"
    assert pair_key_for("a_b", "c") != pair_key_for("a", "b_c")
    assert room_id_for("a~", "b") != room_id_for("a", "~b")


@pytest.mark.parametrize("room_id", ["alice", "a_b_c", "a~x_b", "a_b~"])
def test_split_rejects_malformed_room_ids(room_id):
    assert split_room_id(room_id) is None


def test_split_room_id():
    assert split_room_id("a~_b_c") == ("a_b", "c")
    assert split_room_id("a~~_b") == ("a~", "b")


def test_message_status_ranks():
    assert MessageStatus.SENT.rank < MessageStatus.DELIVERED.rank < MessageStatus.READ.rank
    assert MessageStatus.READ.lower_statuses() == [MessageStatus.SENT, MessageStatus.DELIVERED]
    assert MessageStatus.SENT.lower_statuses() == []


def test_every_notification_type_has_defaults():
    assert set(DEFAULT_PREFERENCES) == set(NotificationType)
    assert DEFAULT_PREFERENCES[NotificationType.MESSAGE].email_enabled is False
