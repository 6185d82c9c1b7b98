# crewlink/gateways/chat_gateway.py
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from crewlink.domain.entities import MessageStatus, room_id_for
from crewlink.gateways.interfaces import IChatGateway
from crewlink.infrastructure import models
from crewlink.infrastructure.models import utcnow


class ChatGateway(IChatGateway):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_room(self, room_id: str) -> models.ChatRoom | None:
        stmt = (
            select(models.ChatRoom)
            .filter(models.ChatRoom.room_id == room_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.unique().scalar_one_or_none()

    async def get_or_create_room(self, user_a: str, user_b: str) -> models.ChatRoom:
        room_id = room_id_for(user_a, user_b)
        room = await self.get_room(room_id)
        if room is not None:
            return room

        participant1_id, participant2_id = sorted((user_a, user_b))
        room = models.ChatRoom(
            room_id=room_id,
            participant1_id=participant1_id,
            participant2_id=participant2_id,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(room)
        except IntegrityError:
            # Both participants sent their first message at the same time.
            room = await self.get_room(room_id)
            if room is None:
                raise
        return room

    async def list_rooms(self, user_id: str) -> list[models.ChatRoom]:
        activity = func.coalesce(
            models.ChatRoom.last_message_at, models.ChatRoom.created_at
        )
        stmt = (
            select(models.ChatRoom)
            .filter(
                or_(
                    models.ChatRoom.participant1_id == user_id,
                    models.ChatRoom.participant2_id == user_id,
                )
            )
            .order_by(activity.desc(), models.ChatRoom.room_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.unique().scalars().all())

    async def advance_summary(self, message: models.ChatMessage) -> bool:
        """Point the room summary at `message` unless a newer one is already there."""
        room = models.ChatRoom
        stmt = (
            update(room)
            .where(
                room.room_id == message.room_id,
                or_(
                    room.last_message_at.is_(None),
                    room.last_message_at < message.timestamp,
                    and_(
                        room.last_message_at == message.timestamp,
                        room.last_message_id < message.id,
                    ),
                ),
            )
            .values(
                last_message_id=message.id,
                last_message_content=message.content,
                last_message_sender_id=message.sender_id,
                last_message_status=message.status,
                last_message_at=message.timestamp,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def sync_summary_status(
        self, room_id: str, message_id: int, status: MessageStatus
    ) -> None:
        stmt = (
            update(models.ChatRoom)
            .where(
                models.ChatRoom.room_id == room_id,
                models.ChatRoom.last_message_id == message_id,
            )
            .values(last_message_status=status.value)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
