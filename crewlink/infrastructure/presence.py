# crewlink/infrastructure/presence.py
import logging
from datetime import datetime

from crewlink.domain.entities import PresenceState
from crewlink.infrastructure.models import utcnow
from crewlink.infrastructure.redis_client import RedisClient


class PresenceTracker:
    """
    Online and typing state kept in Redis, never in the SQL store.

    A user is online while at least one realtime session is open and they
    have not hidden themselves. Typing state carries a TTL so a lost
    ``typing-stop`` cannot leave an indicator stuck.
    """

    def __init__(
        self, redis_client: RedisClient, logger: logging.Logger, typing_ttl: int = 5
    ):
        self.redis_client = redis_client
        self.logger = logger
        self.typing_ttl = typing_ttl

    @staticmethod
    def _sessions_key(user_id: str) -> str:
        return f"presence:sessions:{user_id}"

    @staticmethod
    def _last_seen_key(user_id: str) -> str:
        return f"presence:last_seen:{user_id}"

    @staticmethod
    def _typing_key(user_id: str) -> str:
        return f"presence:typing:{user_id}"

    @staticmethod
    def _hidden_key(user_id: str) -> str:
        return f"presence:hidden:{user_id}"

    async def _touch(self, user_id: str) -> None:
        await self.redis_client.connection.set(
            self._last_seen_key(user_id), utcnow().isoformat()
        )

    async def mark_online(self, user_id: str) -> bool:
        """Register a session; True when this is the user's first open session."""
        redis = self.redis_client.connection
        sessions = await redis.incr(self._sessions_key(user_id))
        await self._touch(user_id)
        hidden = await redis.exists(self._hidden_key(user_id))
        self.logger.debug(f"User {user_id} opened a session ({sessions} open)")
        return sessions == 1 and not hidden

    async def mark_offline(self, user_id: str) -> str | None:
        """
        Release a session and clear the user's typing state.

        Returns the room the user was typing in, if any.
        """
        redis = self.redis_client.connection
        sessions = await redis.decr(self._sessions_key(user_id))
        if sessions <= 0:
            await redis.delete(self._sessions_key(user_id))
        await self._touch(user_id)
        typing_room = await redis.getdel(self._typing_key(user_id))
        self.logger.debug(f"User {user_id} closed a session ({max(sessions, 0)} open)")
        return typing_room

    async def set_typing(self, user_id: str, room_id: str, is_typing: bool) -> None:
        redis = self.redis_client.connection
        key = self._typing_key(user_id)
        if is_typing:
            await redis.set(key, room_id, ex=self.typing_ttl)
            return
        current = await redis.get(key)
        if current == room_id:
            await redis.delete(key)

    async def update_online_status(self, user_id: str, is_online: bool) -> PresenceState:
        redis = self.redis_client.connection
        if is_online:
            await redis.delete(self._hidden_key(user_id))
        else:
            await redis.set(self._hidden_key(user_id), "1")
            await redis.delete(self._typing_key(user_id))
        await self._touch(user_id)
        return await self.get_presence(user_id)

    async def get_presence(self, user_id: str) -> PresenceState:
        states = await self.get_many([user_id])
        return states[user_id]

    async def get_many(self, user_ids: list[str]) -> dict[str, PresenceState]:
        if not user_ids:
            return {}
        async with self.redis_client.connection.pipeline(transaction=False) as pipe:
            for user_id in user_ids:
                pipe.get(self._sessions_key(user_id))
                pipe.get(self._last_seen_key(user_id))
                pipe.get(self._typing_key(user_id))
                pipe.exists(self._hidden_key(user_id))
            values = await pipe.execute()

        states = {}
        for index, user_id in enumerate(user_ids):
            sessions, last_seen, typing_room, hidden = values[index * 4 : index * 4 + 4]
            is_online = int(sessions or 0) > 0 and not hidden
            states[user_id] = PresenceState(
                user_id=user_id,
                is_online=is_online,
                last_seen_at=datetime.fromisoformat(last_seen) if last_seen else None,
                typing_in_room=typing_room if is_online else None,
            )
        return states
