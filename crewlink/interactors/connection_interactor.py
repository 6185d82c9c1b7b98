# crewlink/interactors/connection_interactor.py
from crewlink.domain.entities import (
    RelationshipStatus,
    RequestStatus,
    RespondAction,
    pair_key_for,
    room_id_for,
)
from crewlink.domain.errors import (
    AlreadyConnected,
    NotFound,
    RequestAlreadyPending,
    SelfRequest,
    Unauthorized,
    UserBlocked,
)
from crewlink.domain.events import (
    ConnectionAccepted,
    ConnectionDeclined,
    ConnectionRequested,
    UserInfo,
)
from crewlink.infrastructure import schemas
from crewlink.infrastructure.event_dispatcher import EventDispatcher
from crewlink.infrastructure.models import utcnow
from crewlink.infrastructure.unit_of_work import AbstractUnitOfWork


class ConnectionInteractor:
    """Pairwise relationship state and the connection-request lifecycle."""

    def __init__(self, uow: AbstractUnitOfWork, event_dispatcher: EventDispatcher):
        self.uow = uow
        self.event_dispatcher = event_dispatcher

    async def _user_info(self, user_id: str) -> UserInfo:
        user = await self.uow.users.get_user(user_id)
        return UserInfo.model_validate(user) if user else UserInfo(id=user_id)

    async def _ensure_no_active_request(self, pair_key: str) -> None:
        active = await self.uow.connections.get_active_request(pair_key)
        if active is None:
            return
        if active.status == RequestStatus.ACCEPTED.value:
            raise AlreadyConnected()
        raise RequestAlreadyPending()

    async def get_status(
        self, user_id: str, other_user_id: str
    ) -> RelationshipStatus:
        if user_id == other_user_id:
            return RelationshipStatus.NONE
        if await self.uow.connections.is_blocked(user_id, other_user_id):
            return RelationshipStatus.BLOCKED

        pair_key = pair_key_for(user_id, other_user_id)
        active = await self.uow.connections.get_active_request(pair_key)
        if active is not None:
            if active.status == RequestStatus.ACCEPTED.value:
                return RelationshipStatus.CONNECTED
            if active.sender_id == user_id:
                return RelationshipStatus.PENDING_OUTGOING
            return RelationshipStatus.PENDING_INCOMING

        latest = await self.uow.connections.get_latest_request(pair_key)
        if latest is not None and latest.status == RequestStatus.DECLINED.value:
            return RelationshipStatus.DECLINED
        return RelationshipStatus.NONE

    async def send_request(
        self, sender_id: str, receiver_id: str, message: str | None = None
    ) -> schemas.ConnectionRequest:
        if sender_id == receiver_id:
            raise SelfRequest()
        # Ids are trusted as given; the profile fills in on first sign-in.
        await self.uow.users.upsert_identity(schemas.Identity(user_id=receiver_id))
        if await self.uow.connections.is_blocked(sender_id, receiver_id):
            raise UserBlocked()

        pair_key = pair_key_for(sender_id, receiver_id)
        await self._ensure_no_active_request(pair_key)

        request = await self.uow.connections.create_request(
            sender_id, receiver_id, message
        )
        if request is None:
            # A racing request for the same pair won the unique index.
            await self._ensure_no_active_request(pair_key)
            raise RequestAlreadyPending()

        sender = await self._user_info(sender_id)
        await self.uow.commit()

        await self.event_dispatcher.dispatch(
            ConnectionRequested(
                request_id=request.id,
                sender_id=sender_id,
                receiver_id=receiver_id,
                message=message,
                created_at=request.created_at,
                sender=sender,
            )
        )
        return schemas.ConnectionRequest.model_validate(request)

    async def respond(
        self, request_id: int, responder_id: str, action: RespondAction
    ) -> schemas.RespondResult:
        request = await self.uow.connections.get_request(request_id)
        if request is None:
            raise NotFound("Connection request not found")
        if request.receiver_id != responder_id:
            raise Unauthorized("Only the recipient can respond to this request")
        if request.status != RequestStatus.PENDING.value:
            raise NotFound("Connection request has already been answered")

        new_status = (
            RequestStatus.ACCEPTED
            if action == RespondAction.ACCEPT
            else RequestStatus.DECLINED
        )
        responded_at = utcnow()
        if not await self.uow.connections.transition_request(
            request_id, new_status, responded_at
        ):
            raise NotFound("Connection request has already been answered")

        responder = await self._user_info(responder_id)
        await self.uow.commit()

        request = await self.uow.connections.get_request(request_id)
        room_id = None
        if new_status == RequestStatus.ACCEPTED:
            room_id = room_id_for(request.sender_id, request.receiver_id)
            event = ConnectionAccepted(
                request_id=request.id,
                sender_id=request.sender_id,
                receiver_id=request.receiver_id,
                room_id=room_id,
                responded_at=responded_at,
                responder=responder,
            )
        else:
            event = ConnectionDeclined(
                request_id=request.id,
                sender_id=request.sender_id,
                receiver_id=request.receiver_id,
                responded_at=responded_at,
                responder=responder,
            )
        await self.event_dispatcher.dispatch(event)

        return schemas.RespondResult(
            request=schemas.ConnectionRequest.model_validate(request),
            room_id=room_id,
        )

    async def list_pending(self, user_id: str) -> schemas.PendingRequests:
        requests = await self.uow.connections.list_incoming_pending(user_id)
        return schemas.PendingRequests(
            requests=[schemas.PendingRequest.model_validate(r) for r in requests]
        )

    async def list_sent(self, user_id: str) -> schemas.SentRequests:
        requests = await self.uow.connections.list_outgoing_pending(user_id)
        return schemas.SentRequests(
            requests=[schemas.SentRequest.model_validate(r) for r in requests]
        )

    async def block(self, blocker_id: str, blocked_id: str) -> schemas.ConnectionStatus:
        if blocker_id == blocked_id:
            raise SelfRequest("You cannot block yourself")
        await self.uow.users.upsert_identity(schemas.Identity(user_id=blocked_id))

        await self.uow.connections.create_block(blocker_id, blocked_id)
        await self.uow.connections.decline_pending(
            pair_key_for(blocker_id, blocked_id), utcnow()
        )
        await self.uow.commit()
        return schemas.ConnectionStatus(
            user_id=blocked_id, status=RelationshipStatus.BLOCKED
        )

    async def unblock(
        self, blocker_id: str, blocked_id: str
    ) -> schemas.ConnectionStatus:
        block = await self.uow.connections.get_block(blocker_id, blocked_id)
        if block is None:
            raise NotFound("You have not blocked this crew member")
        await self.uow.connections.delete_block(block)
        await self.uow.commit()
        return schemas.ConnectionStatus(
            user_id=blocked_id,
            status=await self.get_status(blocker_id, blocked_id),
        )
