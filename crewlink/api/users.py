# crewlink/api/users.py
from fastapi import APIRouter, Depends

from crewlink.api.dependencies import (
    get_connection_interactor,
    get_current_user,
    get_uow,
)
from crewlink.domain.errors import NotFound
from crewlink.infrastructure import schemas
from crewlink.infrastructure.unit_of_work import UnitOfWork
from crewlink.interactors.connection_interactor import ConnectionInteractor

router = APIRouter()


@router.get("/me", response_model=schemas.User)
async def read_users_me(current_user: schemas.User = Depends(get_current_user)):
    return current_user


@router.put("/me/profile", response_model=schemas.User)
async def update_profile(
    profile: schemas.ProfileUpdate,
    uow: UnitOfWork = Depends(get_uow),
    current_user: schemas.User = Depends(get_current_user),
):
    user = await uow.users.update_profile(current_user.id, profile)
    await uow.commit()
    return schemas.User.model_validate(user)


@router.get("/{user_id}", response_model=schemas.UserProfile)
async def read_user(
    user_id: str,
    uow: UnitOfWork = Depends(get_uow),
    connection_interactor: ConnectionInteractor = Depends(get_connection_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    user = await uow.users.get_user(user_id)
    if user is None:
        raise NotFound("User not found")
    connection_status = await connection_interactor.get_status(current_user.id, user_id)
    return schemas.UserProfile(
        **schemas.User.model_validate(user).model_dump(),
        connection_status=connection_status,
    )
