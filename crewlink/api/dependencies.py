# crewlink/api/dependencies.py
import logging
import secrets
from typing import AsyncGenerator

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from crewlink.config import AppConfig
from crewlink.infrastructure import schemas
from crewlink.infrastructure.event_dispatcher import EventDispatcher
from crewlink.infrastructure.presence import PresenceTracker
from crewlink.infrastructure.realtime_bus import RealtimeBus
from crewlink.infrastructure.security import SecurityService
from crewlink.infrastructure.unit_of_work import UnitOfWork
from crewlink.interactors.chat_interactor import ChatInteractor
from crewlink.interactors.connection_interactor import ConnectionInteractor
from crewlink.interactors.notification_router import NotificationRouter

bearer_scheme = HTTPBearer(auto_error=False)


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_logger(request: Request) -> logging.Logger:
    return request.app.state.logger


def get_security_service(request: Request) -> SecurityService:
    return request.app.state.security_service


def get_event_dispatcher(request: Request) -> EventDispatcher:
    return request.app.state.event_dispatcher


def get_presence(request: Request) -> PresenceTracker:
    return request.app.state.presence


def get_realtime_bus(request: Request) -> RealtimeBus:
    return request.app.state.realtime_bus


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.database.session() as session:
        try:
            yield session
            await session.commit()  # Commit the transaction
        except Exception:
            await session.rollback()  # Rollback in case of error
            raise


async def get_uow(
    session: AsyncSession = Depends(get_session),
) -> AsyncGenerator[UnitOfWork, None]:
    async with UnitOfWork(session) as uow:
        yield uow


async def get_connection_interactor(
    uow: UnitOfWork = Depends(get_uow),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    return ConnectionInteractor(uow, event_dispatcher)


async def get_chat_interactor(
    uow: UnitOfWork = Depends(get_uow),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
    presence: PresenceTracker = Depends(get_presence),
    connection_interactor: ConnectionInteractor = Depends(get_connection_interactor),
):
    return ChatInteractor(uow, event_dispatcher, presence, connection_interactor)


async def get_notification_router(
    uow: UnitOfWork = Depends(get_uow),
    realtime_bus: RealtimeBus = Depends(get_realtime_bus),
    logger: logging.Logger = Depends(get_logger),
):
    return NotificationRouter(uow, realtime_bus, logger)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    security_service: SecurityService = Depends(get_security_service),
    uow: UnitOfWork = Depends(get_uow),
) -> schemas.User:
    identity = (
        security_service.decode_access_token(credentials.credentials)
        if credentials
        else None
    )
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await uow.users.upsert_identity(identity)
    await uow.commit()
    return schemas.User.model_validate(user)


def require_service_key(
    x_service_key: str | None = Header(None),
    config: AppConfig = Depends(get_config),
) -> None:
    if not config.SERVICE_API_KEY or not x_service_key:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid service key")
    if not secrets.compare_digest(x_service_key, config.SERVICE_API_KEY):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid service key")
