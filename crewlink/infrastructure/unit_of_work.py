# crewlink/infrastructure/unit_of_work.py
from abc import ABC, abstractmethod

from sqlalchemy.ext.asyncio import AsyncSession

from crewlink.gateways.chat_gateway import ChatGateway
from crewlink.gateways.connection_gateway import ConnectionGateway
from crewlink.gateways.interfaces import (
    IChatGateway,
    IConnectionGateway,
    IMessageGateway,
    INotificationGateway,
    IUserGateway,
)
from crewlink.gateways.message_gateway import MessageGateway
from crewlink.gateways.notification_gateway import NotificationGateway
from crewlink.gateways.user_gateway import UserGateway


class AbstractUnitOfWork(ABC):
    users: IUserGateway
    connections: IConnectionGateway
    rooms: IChatGateway
    messages: IMessageGateway
    notifications: INotificationGateway

    async def __aenter__(self):
        raise NotImplementedError

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        raise NotImplementedError

    @abstractmethod
    async def commit(self):
        raise NotImplementedError

    @abstractmethod
    async def rollback(self):
        raise NotImplementedError


class UnitOfWork(AbstractUnitOfWork):
    """One transaction over one session; gateways share it."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def __aenter__(self):
        self.users = UserGateway(self.session)
        self.connections = ConnectionGateway(self.session)
        self.rooms = ChatGateway(self.session)
        self.messages = MessageGateway(self.session)
        self.notifications = NotificationGateway(self.session)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            await self.rollback()
        else:
            await self.commit()

    async def commit(self):
        await self.session.commit()

    async def rollback(self):
        await self.session.rollback()
