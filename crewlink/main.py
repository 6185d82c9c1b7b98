# crewlink/main.py
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from crewlink.api import chats, connections, notifications, realtime, users
from crewlink.config import AppConfig
from crewlink.domain.errors import DomainError
from crewlink.domain.events import (
    ConnectionAccepted,
    ConnectionDeclined,
    ConnectionRequested,
    MessageSent,
    MessageStatusChanged,
    PresenceUpdated,
)
from crewlink.infrastructure.database import build_engine, create_database
from crewlink.infrastructure.event_dispatcher import EventDispatcher
from crewlink.infrastructure.event_handlers import EventHandlers
from crewlink.infrastructure.presence import PresenceTracker
from crewlink.infrastructure.realtime_bus import RealtimeBus
from crewlink.infrastructure.redis_client import RedisClient
from crewlink.infrastructure.security import SecurityService


class Application:
    def __init__(self, config: AppConfig):
        self.config = config
        self.logger = self.setup_logger()
        engine = build_engine(config.DATABASE_URL)
        self.database = create_database(engine)
        self.redis_client = RedisClient(
            config.REDIS_HOST,
            config.REDIS_PORT,
            self.logger,
            db=config.REDIS_DB,
            password=config.REDIS_PASSWORD,
        )
        self.event_dispatcher = EventDispatcher(self.logger)
        self.security_service = SecurityService(config)
        self.realtime_bus = RealtimeBus(self.redis_client, self.logger)
        self.presence = PresenceTracker(
            self.redis_client, self.logger, typing_ttl=config.TYPING_TTL_SECONDS
        )

    def register_event_handlers(self) -> EventHandlers:
        event_handlers = EventHandlers(self.database, self.realtime_bus, self.logger)
        self.event_dispatcher.register(
            ConnectionRequested, event_handlers.notify_connection_requested
        )
        self.event_dispatcher.register(
            ConnectionAccepted, event_handlers.notify_connection_accepted
        )
        self.event_dispatcher.register(
            ConnectionDeclined, event_handlers.notify_connection_declined
        )
        self.event_dispatcher.register(MessageSent, event_handlers.publish_message_sent)
        self.event_dispatcher.register(
            MessageStatusChanged, event_handlers.publish_message_status_changed
        )
        self.event_dispatcher.register(
            PresenceUpdated, event_handlers.publish_presence_updated
        )
        return event_handlers

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        await self.database.connect()
        await self.redis_client.connect()
        yield
        await self.database.disconnect()
        await self.redis_client.disconnect()

    def setup_logger(self):
        logger = logging.getLogger("CrewLinkAPI")
        logger.setLevel(self.config.LOG_LEVEL)

        if not logger.handlers:
            c_handler = logging.StreamHandler(sys.stdout)
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            c_handler.setFormatter(formatter)
            logger.addHandler(c_handler)

        return logger

    def create_app(self) -> FastAPI:
        app = FastAPI(
            title=self.config.PROJECT_NAME,
            version=self.config.PROJECT_VERSION,
            description=self.config.PROJECT_DESCRIPTION,
            openapi_url=f"{self.config.API_V1_STR}/openapi.json",
            lifespan=self.lifespan,
        )

        # Handlers are bound here so they see the database in use when the app is built.
        self.register_event_handlers()

        app.state.config = self.config
        app.state.security_service = self.security_service
        app.state.event_dispatcher = self.event_dispatcher
        app.state.database = self.database
        app.state.logger = self.logger
        app.state.realtime_bus = self.realtime_bus
        app.state.presence = self.presence

        app.include_router(
            users.router, prefix=f"{self.config.API_V1_STR}/users", tags=["users"]
        )
        app.include_router(
            connections.router,
            prefix=f"{self.config.API_V1_STR}/connections",
            tags=["connections"],
        )
        app.include_router(
            chats.router, prefix=f"{self.config.API_V1_STR}/chat", tags=["chat"]
        )
        app.include_router(
            notifications.router,
            prefix=f"{self.config.API_V1_STR}/notifications",
            tags=["notifications"],
        )
        app.include_router(
            realtime.router, prefix=self.config.API_V1_STR, tags=["realtime"]
        )

        @app.get(f"{self.config.API_V1_STR}/health", tags=["health"])
        async def health():
            redis_ok = await self.redis_client.is_healthy()
            return {"status": "ok" if redis_ok else "degraded", "redis": redis_ok}

        @app.exception_handler(DomainError)
        async def domain_exception_handler(request: Request, exc: DomainError):
            return JSONResponse(
                status_code=exc.status_code,
                content={"detail": exc.detail, "code": exc.code},
            )

        @app.exception_handler(Exception)
        async def global_exception_handler(request: Request, exc: Exception):
            self.logger.error(
                f"Unhandled error on {request.method} {request.url.path}: {exc!s}",
                exc_info=exc,
            )
            return JSONResponse(
                status_code=500,
                content={"detail": "An unexpected error occurred", "code": "internal_error"},
            )

        return app


def create():
    config = AppConfig()
    application = Application(config)
    app = application.create_app()
    application.logger.info("Application created and configured")

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("crewlink.main:create", factory=True, host="127.0.0.1", port=8000)
