# crewlink/infrastructure/redis_client.py
import logging

import redis.asyncio as redis


class RedisClient:
    """Shared connection used by the realtime bus and the presence tracker."""

    def __init__(
        self,
        host: str,
        port: int,
        logger: logging.Logger,
        db: int = 0,
        password: str | None = None,
    ):
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.client: redis.Redis | None = None
        self.logger = logger

    async def connect(self):
        self.client = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        try:
            await self.client.ping()
            self.logger.info(
                f"Successfully connected to Redis at {self.host}:{self.port}/{self.db}"
            )
        except redis.ConnectionError as e:
            self.logger.error(f"Failed to connect to Redis: {e!s}")
            raise e

    async def disconnect(self):
        if self.client:
            await self.client.aclose()
            self.client = None
            self.logger.info("Disconnected from Redis")

    @property
    def connection(self) -> redis.Redis:
        if self.client is None:
            raise RuntimeError("Redis client not connected")
        return self.client

    async def is_healthy(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(await self.client.ping())
        except redis.RedisError as e:
            self.logger.warning(f"Redis health check failed: {e!s}")
            return False

    async def publish(self, channel: str, message: str) -> int:
        receivers = await self.connection.publish(channel, message)
        self.logger.debug(f"Published message to channel {channel} ({receivers} receivers)")
        return receivers

    def pubsub(self):
        return self.connection.pubsub()
