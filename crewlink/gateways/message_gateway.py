# crewlink/gateways/message_gateway.py
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from crewlink.domain.entities import MessageStatus
from crewlink.gateways.interfaces import IMessageGateway
from crewlink.infrastructure import models


class MessageGateway(IMessageGateway):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_message(
        self, room_id: str, sender_id: str, receiver_id: str, content: str
    ) -> models.ChatMessage:
        message = models.ChatMessage(
            room_id=room_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            status=MessageStatus.SENT.value,
        )
        self.session.add(message)
        await self.session.flush()
        return message

    async def get_message(self, message_id: int) -> models.ChatMessage | None:
        stmt = (
            select(models.ChatMessage)
            .filter(models.ChatMessage.id == message_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_room_messages(self, room_id: str) -> list[models.ChatMessage]:
        stmt = (
            select(models.ChatMessage)
            .filter(models.ChatMessage.room_id == room_id)
            .order_by(models.ChatMessage.timestamp, models.ChatMessage.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def advance_status(
        self, message_id: int, status: MessageStatus, at: datetime
    ) -> bool:
        """Move a message forward to `status`; False if it is already there or past it."""
        values = {"status": status.value}
        if status == MessageStatus.DELIVERED:
            values["delivered_at"] = at
        elif status == MessageStatus.READ:
            values["read_at"] = at
            values["delivered_at"] = func.coalesce(
                models.ChatMessage.delivered_at, at
            )
        stmt = (
            update(models.ChatMessage)
            .where(
                models.ChatMessage.id == message_id,
                models.ChatMessage.status.in_(
                    [lower.value for lower in status.lower_statuses()]
                ),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def mark_room_read(
        self, room_id: str, user_id: str, at: datetime
    ) -> list[models.ChatMessage]:
        unread = select(models.ChatMessage).filter(
            models.ChatMessage.room_id == room_id,
            models.ChatMessage.receiver_id == user_id,
            models.ChatMessage.status != MessageStatus.READ.value,
        )
        result = await self.session.execute(unread)
        messages = list(result.scalars().all())
        advanced = []
        for message in messages:
            if await self.advance_status(message.id, MessageStatus.READ, at):
                advanced.append(message)
        return advanced

    async def unread_counts_by_room(self, user_id: str) -> dict[str, int]:
        stmt = (
            select(models.ChatMessage.room_id, func.count(models.ChatMessage.id))
            .filter(
                models.ChatMessage.receiver_id == user_id,
                models.ChatMessage.status != MessageStatus.READ.value,
            )
            .group_by(models.ChatMessage.room_id)
        )
        result = await self.session.execute(stmt)
        return {room_id: count for room_id, count in result.all()}

    async def unread_total(self, user_id: str) -> int:
        stmt = select(func.count(models.ChatMessage.id)).filter(
            models.ChatMessage.receiver_id == user_id,
            models.ChatMessage.status != MessageStatus.READ.value,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()
