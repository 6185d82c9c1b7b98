# crewlink/gateways/user_gateway.py
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from crewlink.gateways.interfaces import IUserGateway
from crewlink.infrastructure import models, schemas


class UserGateway(IUserGateway):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user(self, user_id: str) -> models.User | None:
        stmt = select(models.User).filter(models.User.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_many(self, user_ids: list[str]) -> dict[str, models.User]:
        if not user_ids:
            return {}
        stmt = select(models.User).filter(models.User.id.in_(user_ids))
        result = await self.session.execute(stmt)
        return {user.id: user for user in result.scalars().all()}

    async def upsert_identity(self, identity: schemas.Identity) -> models.User:
        user = await self.get_user(identity.user_id)
        if user is None:
            try:
                async with self.session.begin_nested():
                    user = models.User(
                        id=identity.user_id,
                        display_name=identity.display_name,
                        avatar_url=identity.avatar_url,
                    )
                    self.session.add(user)
            except IntegrityError:
                # Another request mirrored the same identity first.
                user = await self.get_user(identity.user_id)
                if user is None:
                    raise
            else:
                return user

        if identity.display_name and user.display_name != identity.display_name:
            user.display_name = identity.display_name
        if identity.avatar_url and user.avatar_url != identity.avatar_url:
            user.avatar_url = identity.avatar_url
        await self.session.flush()
        return user

    async def update_profile(
        self, user_id: str, profile: schemas.ProfileUpdate
    ) -> models.User:
        user = await self.get_user(user_id)
        if user is None:
            user = models.User(id=user_id)
            self.session.add(user)
        for key, value in profile.model_dump(exclude_unset=True).items():
            setattr(user, key, value)
        await self.session.flush()
        return user
