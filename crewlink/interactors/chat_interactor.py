# crewlink/interactors/chat_interactor.py
from crewlink.domain.entities import MessageStatus, RelationshipStatus, room_id_for
from crewlink.domain.errors import (
    Forbidden,
    InvalidStatusTransition,
    NotConnected,
    NotFound,
)
from crewlink.domain.events import (
    ChatMessageData,
    MessageSent,
    MessageStatusChanged,
    PresenceUpdated,
    UserInfo,
)
from crewlink.infrastructure import models, schemas
from crewlink.infrastructure.event_dispatcher import EventDispatcher
from crewlink.infrastructure.models import utcnow
from crewlink.infrastructure.presence import PresenceTracker
from crewlink.infrastructure.unit_of_work import AbstractUnitOfWork
from crewlink.interactors.connection_interactor import ConnectionInteractor


class ChatInteractor:
    def __init__(
        self,
        uow: AbstractUnitOfWork,
        event_dispatcher: EventDispatcher,
        presence: PresenceTracker,
        connection_interactor: ConnectionInteractor | None = None,
    ):
        self.uow = uow
        self.event_dispatcher = event_dispatcher
        self.presence = presence
        self.connection_interactor = connection_interactor or ConnectionInteractor(
            uow, event_dispatcher
        )

    async def _participant_room(self, room_id: str, user_id: str) -> models.ChatRoom:
        room = await self.uow.rooms.get_room(room_id)
        # A missing room and a foreign room look the same to the caller.
        if room is None or not room.has_participant(user_id):
            raise Forbidden("You are not a participant of this chat")
        return room

    async def list_rooms(self, user_id: str) -> schemas.ChatRooms:
        rooms = await self.uow.rooms.list_rooms(user_id)
        unread_counts = await self.uow.messages.unread_counts_by_room(user_id)

        other_ids = [
            room.participant2_id if room.participant1_id == user_id else room.participant1_id
            for room in rooms
        ]
        others = await self.uow.users.get_many(other_ids)
        presence = await self.presence.get_many(other_ids)

        result = []
        for room, other_id in zip(rooms, other_ids):
            other = others.get(other_id)
            other_presence = presence.get(other_id)
            result.append(
                schemas.ChatRoom(
                    room_id=room.room_id,
                    participant1_id=room.participant1_id,
                    participant2_id=room.participant2_id,
                    other_user_id=other_id,
                    other_user_name=other.display_name if other else None,
                    other_user_avatar=other.avatar_url if other else None,
                    other_user_online=other_presence.is_online if other_presence else False,
                    other_user_last_seen=other_presence.last_seen_at if other_presence else None,
                    last_message_id=room.last_message_id,
                    last_message_content=room.last_message_content,
                    last_message_time=room.last_message_at,
                    last_message_status=room.last_message_status,
                    last_message_sender_id=room.last_message_sender_id,
                    unread_count=unread_counts.get(room.room_id, 0),
                    created_at=room.created_at,
                    updated_at=room.updated_at,
                )
            )
        return schemas.ChatRooms(rooms=result)

    async def list_messages(
        self, room_id: str, user_id: str
    ) -> list[schemas.ChatMessage]:
        await self._participant_room(room_id, user_id)
        messages = await self.uow.messages.list_room_messages(room_id)
        return [schemas.ChatMessage.model_validate(m) for m in messages]

    async def get_conversation(
        self, user_id: str, other_user_id: str
    ) -> schemas.Conversation:
        room_id = room_id_for(user_id, other_user_id)
        room = await self.uow.rooms.get_room(room_id)
        if room is None:
            return schemas.Conversation(room_id=room_id, messages=[])
        messages = await self.uow.messages.list_room_messages(room_id)
        return schemas.Conversation(
            room_id=room_id,
            messages=[schemas.ChatMessage.model_validate(m) for m in messages],
        )

    async def send_message(
        self, sender_id: str, receiver_id: str, content: str
    ) -> schemas.ChatMessage:
        status = await self.connection_interactor.get_status(sender_id, receiver_id)
        if status != RelationshipStatus.CONNECTED:
            raise NotConnected()

        room = await self.uow.rooms.get_or_create_room(sender_id, receiver_id)
        message = await self.uow.messages.create_message(
            room.room_id, sender_id, receiver_id, content
        )
        await self.uow.rooms.advance_summary(message)
        sender = await self.uow.users.get_user(sender_id)
        await self.uow.commit()

        await self.event_dispatcher.dispatch(
            MessageSent(
                message=ChatMessageData.model_validate(message),
                sender=UserInfo.model_validate(sender) if sender else UserInfo(id=sender_id),
            )
        )
        return schemas.ChatMessage.model_validate(message)

    async def update_status(
        self, message_id: int, user_id: str, new_status: MessageStatus
    ) -> schemas.ChatMessage:
        message = await self.uow.messages.get_message(message_id)
        if message is None:
            raise NotFound("Message not found")
        if message.receiver_id != user_id:
            raise Forbidden("Only the recipient can update the status of a message")

        current = MessageStatus(message.status)
        if new_status == current:
            return schemas.ChatMessage.model_validate(message)
        if new_status.rank < current.rank:
            raise InvalidStatusTransition(
                f"Message status cannot move from {current.value} to {new_status.value}"
            )

        if not await self.uow.messages.advance_status(message_id, new_status, utcnow()):
            # Another acknowledgement for this message landed first.
            message = await self.uow.messages.get_message(message_id)
            if MessageStatus(message.status) == new_status:
                return schemas.ChatMessage.model_validate(message)
            raise InvalidStatusTransition(
                f"Message status cannot move from {message.status} to {new_status.value}"
            )

        await self.uow.rooms.sync_summary_status(message.room_id, message_id, new_status)
        await self.uow.commit()
        message = await self.uow.messages.get_message(message_id)

        await self.event_dispatcher.dispatch(
            MessageStatusChanged(
                message_id=message.id,
                room_id=message.room_id,
                sender_id=message.sender_id,
                receiver_id=message.receiver_id,
                status=new_status,
            )
        )
        return schemas.ChatMessage.model_validate(message)

    async def mark_room_read(self, room_id: str, user_id: str) -> schemas.RoomReadResult:
        await self._participant_room(room_id, user_id)
        advanced = await self.uow.messages.mark_room_read(room_id, user_id, utcnow())
        for message in advanced:
            await self.uow.rooms.sync_summary_status(
                room_id, message.id, MessageStatus.READ
            )
        await self.uow.commit()

        for message in advanced:
            await self.event_dispatcher.dispatch(
                MessageStatusChanged(
                    message_id=message.id,
                    room_id=room_id,
                    sender_id=message.sender_id,
                    receiver_id=message.receiver_id,
                    status=MessageStatus.READ,
                )
            )
        return schemas.RoomReadResult(room_id=room_id, updated=len(advanced))

    async def unread_total(self, user_id: str) -> schemas.UnreadCount:
        count = await self.uow.messages.unread_total(user_id)
        return schemas.UnreadCount(unread_count=count)

    async def get_presence(self, user_id: str) -> schemas.UserOnlineStatus:
        state = await self.presence.get_presence(user_id)
        return schemas.UserOnlineStatus(
            user_id=user_id, is_online=state.is_online, last_seen=state.last_seen_at
        )

    async def update_online_status(
        self, user_id: str, is_online: bool
    ) -> schemas.UserOnlineStatus:
        state = await self.presence.update_online_status(user_id, is_online)
        await self.event_dispatcher.dispatch(
            PresenceUpdated(
                user_id=user_id,
                is_online=state.is_online,
                last_seen_at=state.last_seen_at,
            )
        )
        return schemas.UserOnlineStatus(
            user_id=user_id, is_online=state.is_online, last_seen=state.last_seen_at
        )
