# crewlink/api/realtime.py
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from crewlink.domain.entities import (
    RelationshipStatus,
    other_participant_of,
    room_id_for,
)
from crewlink.domain.events import PresenceUpdated
from crewlink.domain.realtime import (
    INBOUND_EVENTS,
    ErrorFrame,
    RealtimeEvent,
    TypingStart,
    TypingStop,
    parse_event,
)
from crewlink.infrastructure.database import Database
from crewlink.infrastructure.event_dispatcher import EventDispatcher
from crewlink.infrastructure.presence import PresenceTracker
from crewlink.infrastructure.realtime_bus import RealtimeBus
from crewlink.infrastructure.unit_of_work import UnitOfWork
from crewlink.interactors.connection_interactor import ConnectionInteractor

router = APIRouter()


class RealtimeSession:
    """One authenticated WebSocket connection of one user."""

    def __init__(
        self,
        websocket: WebSocket,
        user_id: str,
        realtime_bus: RealtimeBus,
        presence: PresenceTracker,
        event_dispatcher: EventDispatcher,
        database: Database,
        logger: logging.Logger,
    ):
        self.websocket = websocket
        self.user_id = user_id
        self.realtime_bus = realtime_bus
        self.presence = presence
        self.event_dispatcher = event_dispatcher
        self.database = database
        self.logger = logger

    async def send(self, event: RealtimeEvent) -> None:
        await self.websocket.send_text(event.model_dump_json())

    async def _is_connected_to(self, other_user_id: str) -> bool:
        async with self.database.session() as session:
            async with UnitOfWork(session) as uow:
                status = await ConnectionInteractor(
                    uow, self.event_dispatcher
                ).get_status(self.user_id, other_user_id)
        return status == RelationshipStatus.CONNECTED

    async def _announce_presence(self) -> None:
        state = await self.presence.get_presence(self.user_id)
        await self.event_dispatcher.dispatch(
            PresenceUpdated(
                user_id=self.user_id,
                is_online=state.is_online,
                last_seen_at=state.last_seen_at,
            )
        )

    async def open(self) -> None:
        if await self.presence.mark_online(self.user_id):
            await self._announce_presence()
        self.logger.info(f"Realtime session opened for user {self.user_id}")

    async def close(self) -> None:
        typing_room = await self.presence.mark_offline(self.user_id)
        if typing_room:
            receiver_id = other_participant_of(typing_room, self.user_id)
            if receiver_id:
                await self.realtime_bus.publish(
                    TypingStop(sender_id=self.user_id, receiver_id=receiver_id),
                    receiver_id,
                )
        state = await self.presence.get_presence(self.user_id)
        if not state.is_online:
            await self._announce_presence()
        self.logger.info(f"Realtime session closed for user {self.user_id}")

    async def handle_frame(self, raw: str) -> None:
        try:
            event = parse_event(raw)
        except ValidationError:
            await self.send(ErrorFrame(code="invalid_event", detail="Malformed realtime event"))
            return
        if not isinstance(event, INBOUND_EVENTS):
            await self.send(
                ErrorFrame(
                    code="unsupported_event",
                    detail=f"Clients cannot send {event.event} events",
                )
            )
            return
        if event.sender_id != self.user_id:
            await self.send(
                ErrorFrame(code="forbidden", detail="Typing events must be sent as yourself")
            )
            return

        if not await self._is_connected_to(event.receiver_id):
            await self.send(
                ErrorFrame(
                    code="not_connected",
                    detail="Typing events can only be sent to accepted connections",
                )
            )
            return

        room_id = room_id_for(event.sender_id, event.receiver_id)
        await self.presence.set_typing(self.user_id, room_id, isinstance(event, TypingStart))
        await self.realtime_bus.publish(event, event.receiver_id)

    async def run(self) -> None:
        async with await self.realtime_bus.subscribe(self.user_id, self.send):
            await self.open()
            try:
                while True:
                    raw = await self.websocket.receive_text()
                    await self.handle_frame(raw)
            except WebSocketDisconnect:
                pass
            finally:
                await self.close()


@router.websocket("/ws")
async def realtime_endpoint(websocket: WebSocket, token: str = Query("")):
    state = websocket.app.state
    identity = state.security_service.decode_access_token(token) if token else None
    if identity is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    session = RealtimeSession(
        websocket,
        identity.user_id,
        state.realtime_bus,
        state.presence,
        state.event_dispatcher,
        state.database,
        state.logger,
    )
    await session.run()
