# crewlink/infrastructure/realtime_bus.py
import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable

from pydantic import ValidationError
from redis.exceptions import RedisError

from crewlink.domain.errors import ChannelUnavailable
from crewlink.domain.realtime import RealtimeEvent, parse_event
from crewlink.infrastructure.redis_client import RedisClient

EventHandler = Callable[[RealtimeEvent], Awaitable[None]]


def channel_for(user_id: str) -> str:
    return f"user:{user_id}"


class Subscription:
    """Live listener on one user channel; released by `close()` or leaving the `async with`."""

    def __init__(self, user_id: str, pubsub, task: asyncio.Task, logger: logging.Logger):
        self.user_id = user_id
        self._pubsub = pubsub
        self._task = task
        self._logger = logger
        self.closed = False

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        try:
            await self._pubsub.unsubscribe(channel_for(self.user_id))
            await self._pubsub.aclose()
        except RedisError as e:
            self._logger.warning(f"Failed to release channel of user {self.user_id}: {e!s}")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class RealtimeBus:
    """
    Best-effort push channel keyed by user id, on top of Redis pub/sub.

    Delivery is at-most-once to sessions that are connected right now; the
    durable record of anything important lives in the SQL store.
    """

    def __init__(self, redis_client: RedisClient, logger: logging.Logger):
        self.redis_client = redis_client
        self.logger = logger

    async def _deliver(self, event: RealtimeEvent, target_user_id: str) -> None:
        receivers = await self.redis_client.publish(
            channel_for(target_user_id), event.model_dump_json()
        )
        if not receivers:
            raise ChannelUnavailable()

    async def publish(self, event: RealtimeEvent, target_user_id: str) -> bool:
        """Push `event` to the target's live sessions; True if any session received it."""
        try:
            await self._deliver(event, target_user_id)
        except ChannelUnavailable:
            self.logger.debug(
                f"Dropped {event.event} for user {target_user_id}: no active session"
            )
            return False
        except RedisError as e:
            self.logger.warning(
                f"Failed to publish {event.event} to user {target_user_id}: {e!s}"
            )
            return False
        return True

    async def subscribe(
        self,
        user_id: str,
        handler: EventHandler,
        events: Iterable[str] | None = None,
    ) -> Subscription:
        wanted = frozenset(events) if events is not None else None
        pubsub = self.redis_client.pubsub()
        await pubsub.subscribe(channel_for(user_id))
        task = asyncio.create_task(self._listen(user_id, pubsub, handler, wanted))
        self.logger.debug(f"Subscribed to channel {channel_for(user_id)}")
        return Subscription(user_id, pubsub, task, self.logger)

    async def unsubscribe(self, subscription: Subscription) -> None:
        await subscription.close()

    async def _listen(
        self,
        user_id: str,
        pubsub,
        handler: EventHandler,
        wanted: frozenset[str] | None,
    ) -> None:
        async for message in pubsub.listen():
            if message["type"] != "message":
                continue
            try:
                event = parse_event(message["data"])
            except ValidationError as e:
                self.logger.warning(f"Discarded malformed event for user {user_id}: {e!s}")
                continue
            if wanted is not None and event.event not in wanted:
                continue
            try:
                await handler(event)
            except Exception as e:
                self.logger.error(
                    f"Handler for user {user_id} failed on {event.event}: {e!s}",
                    exc_info=True,
                )
