# crewlink/gateways/connection_gateway.py
from datetime import datetime

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from crewlink.domain.entities import (
    ACTIVE_REQUEST_STATUSES,
    RequestStatus,
    pair_key_for,
)
from crewlink.gateways.interfaces import IConnectionGateway
from crewlink.infrastructure import models


class ConnectionGateway(IConnectionGateway):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_request(self, request_id: int) -> models.ConnectionRequest | None:
        stmt = (
            select(models.ConnectionRequest)
            .filter(models.ConnectionRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.unique().scalar_one_or_none()

    async def get_active_request(
        self, pair_key: str
    ) -> models.ConnectionRequest | None:
        stmt = select(models.ConnectionRequest).filter(
            models.ConnectionRequest.pair_key == pair_key,
            models.ConnectionRequest.status.in_(
                [status.value for status in ACTIVE_REQUEST_STATUSES]
            ),
        )
        result = await self.session.execute(
            stmt, execution_options={"populate_existing": True}
        )
        return result.unique().scalars().first()

    async def get_latest_request(
        self, pair_key: str
    ) -> models.ConnectionRequest | None:
        stmt = (
            select(models.ConnectionRequest)
            .filter(models.ConnectionRequest.pair_key == pair_key)
            .order_by(
                models.ConnectionRequest.created_at.desc(),
                models.ConnectionRequest.id.desc(),
            )
            .limit(1)
        )
        result = await self.session.execute(
            stmt, execution_options={"populate_existing": True}
        )
        return result.unique().scalars().first()

    async def create_request(
        self, sender_id: str, receiver_id: str, message: str | None
    ) -> models.ConnectionRequest | None:
        """Insert a pending request; None when the pair already has an active one."""
        request = models.ConnectionRequest(
            sender_id=sender_id,
            receiver_id=receiver_id,
            pair_key=pair_key_for(sender_id, receiver_id),
            message=message,
            status=RequestStatus.PENDING.value,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(request)
        except IntegrityError:
            return None
        return request

    async def transition_request(
        self, request_id: int, status: RequestStatus, responded_at: datetime
    ) -> bool:
        # Compare-and-set on status: of two racing responders only one matches.
        stmt = (
            update(models.ConnectionRequest)
            .where(
                models.ConnectionRequest.id == request_id,
                models.ConnectionRequest.status == RequestStatus.PENDING.value,
            )
            .values(status=status.value, responded_at=responded_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def decline_pending(self, pair_key: str, responded_at: datetime) -> int:
        stmt = (
            update(models.ConnectionRequest)
            .where(
                models.ConnectionRequest.pair_key == pair_key,
                models.ConnectionRequest.status == RequestStatus.PENDING.value,
            )
            .values(status=RequestStatus.DECLINED.value, responded_at=responded_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def list_incoming_pending(
        self, user_id: str
    ) -> list[models.ConnectionRequest]:
        stmt = (
            select(models.ConnectionRequest)
            .filter(
                models.ConnectionRequest.receiver_id == user_id,
                models.ConnectionRequest.status == RequestStatus.PENDING.value,
            )
            .order_by(models.ConnectionRequest.created_at.desc())
        )
        result = await self.session.execute(
            stmt, execution_options={"populate_existing": True}
        )
        return list(result.unique().scalars().all())

    async def list_outgoing_pending(
        self, user_id: str
    ) -> list[models.ConnectionRequest]:
        stmt = (
            select(models.ConnectionRequest)
            .filter(
                models.ConnectionRequest.sender_id == user_id,
                models.ConnectionRequest.status == RequestStatus.PENDING.value,
            )
            .order_by(models.ConnectionRequest.created_at.desc())
        )
        result = await self.session.execute(
            stmt, execution_options={"populate_existing": True}
        )
        return list(result.unique().scalars().all())

    async def is_blocked(self, user_a: str, user_b: str) -> bool:
        stmt = select(models.UserBlock).filter(
            or_(
                and_(
                    models.UserBlock.blocker_id == user_a,
                    models.UserBlock.blocked_id == user_b,
                ),
                and_(
                    models.UserBlock.blocker_id == user_b,
                    models.UserBlock.blocked_id == user_a,
                ),
            )
        )
        result = await self.session.execute(stmt)
        return result.scalars().first() is not None

    async def get_block(
        self, blocker_id: str, blocked_id: str
    ) -> models.UserBlock | None:
        return await self.session.get(models.UserBlock, (blocker_id, blocked_id))

    async def create_block(self, blocker_id: str, blocked_id: str) -> models.UserBlock:
        existing = await self.get_block(blocker_id, blocked_id)
        if existing is not None:
            return existing

        block = models.UserBlock(blocker_id=blocker_id, blocked_id=blocked_id)
        try:
            async with self.session.begin_nested():
                self.session.add(block)
        except IntegrityError:
            existing = await self.get_block(blocker_id, blocked_id)
            if existing is None:
                raise
            return existing
        return block

    async def delete_block(self, block: models.UserBlock) -> None:
        await self.session.delete(block)
        await self.session.flush()

    async def connected_user_ids(self, user_id: str) -> list[str]:
        stmt = select(
            models.ConnectionRequest.sender_id, models.ConnectionRequest.receiver_id
        ).filter(
            models.ConnectionRequest.status == RequestStatus.ACCEPTED.value,
            or_(
                models.ConnectionRequest.sender_id == user_id,
                models.ConnectionRequest.receiver_id == user_id,
            ),
        )
        result = await self.session.execute(stmt)
        peers = {
            receiver_id if sender_id == user_id else sender_id
            for sender_id, receiver_id in result.all()
        }

        blocks_stmt = select(
            models.UserBlock.blocker_id, models.UserBlock.blocked_id
        ).filter(
            or_(
                models.UserBlock.blocker_id == user_id,
                models.UserBlock.blocked_id == user_id,
            )
        )
        blocks = await self.session.execute(blocks_stmt)
        for blocker_id, blocked_id in blocks.all():
            peers.discard(blocked_id if blocker_id == user_id else blocker_id)
        return sorted(peers)
