# crewlink/tests/unit/test_notification_router.py
from unittest.mock import AsyncMock

import pytest

from crewlink.domain.entities import NotificationType
from crewlink.domain.errors import NotFound
from crewlink.domain.events import NotificationEvent
from crewlink.domain.realtime import RealtimeNotification
from crewlink.infrastructure import schemas
from crewlink.interactors.notification_router import NotificationRouter

pytestmark = pytest.mark.asyncio


@pytest.fixture
def realtime_bus():
    bus = AsyncMock()
    bus.publish.return_value = True
    return bus


@pytest.fixture
def router(crew, realtime_bus, test_logger):
    return NotificationRouter(crew, realtime_bus, test_logger)


def _event(notification_type=NotificationType.MESSAGE, user_id="bob", title="New message"):
    return NotificationEvent(
        type=notification_type,
        user_id=user_id,
        title=title,
        message="Alice Deck: hi",
        data={"room_id": "alice_bob"},
    )


async def test_route_stores_and_pushes(router, realtime_bus, crew):
    notification = await router.route(_event())

    assert notification.user_id == "bob"
    assert notification.is_read is False
    frame, target = realtime_bus.publish.await_args.args
    assert isinstance(frame, RealtimeNotification)
    assert frame.notification.id == notification.id
    assert target == "bob"

    # Message defaults ask for push but not email.
    records, total = await crew.notifications.list_notifications("bob", 0, 20, False)
    assert total == 1
    assert records[0].push_requested is True
    assert records[0].email_requested is False


async def test_route_respects_in_app_preference(router, realtime_bus):
    await router.update_preferences(
        "bob",
        schemas.NotificationPreferencesUpdate(
            preferences=[
                schemas.NotificationPreferenceUpdate(
                    type=NotificationType.MESSAGE, in_app_enabled=False
                )
            ]
        ),
    )

    await router.route(_event())
    realtime_bus.publish.assert_not_awaited()
    assert (await router.unread_count("bob")).unread_count == 1


async def test_route_without_live_session(router, realtime_bus):
    realtime_bus.publish.return_value = False
    notification = await router.route(_event())
    assert notification.id is not None


async def test_pagination_shape(router):
    for i in range(7):
        await router.route(_event(title=f"Notice {i}"))

    page = await router.list_notifications("bob", skip=3, limit=3)
    assert page.pagination == schemas.Pagination(page=2, limit=3, total=7, pages=3)
    assert [n.title for n in page.notifications] == ["Notice 3", "Notice 2", "Notice 1"]

    empty = await router.list_notifications("alice")
    assert empty.pagination.total == 0
    assert empty.pagination.pages == 0


async def test_mark_read_and_delete_are_owner_only(router):
    notification = await router.route(_event())

    with pytest.raises(NotFound):
        await router.mark_read(notification.id, "alice")
    with pytest.raises(NotFound):
        await router.delete(notification.id, "alice")

    await router.mark_read(notification.id, "bob")
    assert (await router.unread_count("bob")).unread_count == 0
    await router.delete(notification.id, "bob")
    assert (await router.list_notifications("bob")).pagination.total == 0


async def test_mark_all_read(router):
    for _ in range(3):
        await router.route(_event())
    await router.route(_event(user_id="alice"))

    assert await router.mark_all_read("bob") == 3
    assert await router.mark_all_read("bob") == 0
    assert (await router.unread_count("alice")).unread_count == 1


async def test_preferences_cover_every_type(router):
    preferences = await router.get_preferences("bob")
    assert {p.type for p in preferences.preferences} == set(NotificationType)
