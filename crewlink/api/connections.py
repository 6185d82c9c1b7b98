# crewlink/api/connections.py
from fastapi import APIRouter, Depends

from crewlink.api.dependencies import get_connection_interactor, get_current_user
from crewlink.infrastructure import schemas
from crewlink.interactors.connection_interactor import ConnectionInteractor

router = APIRouter()


@router.post("/request", response_model=schemas.ConnectionRequest, status_code=201)
async def send_connection_request(
    request: schemas.ConnectionRequestCreate,
    connection_interactor: ConnectionInteractor = Depends(get_connection_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await connection_interactor.send_request(
        current_user.id, request.receiver_id, request.message
    )


@router.put("/request/{request_id}", response_model=schemas.RespondResult)
async def respond_to_request(
    request_id: int,
    response: schemas.ConnectionRespond,
    connection_interactor: ConnectionInteractor = Depends(get_connection_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await connection_interactor.respond(
        request_id, current_user.id, response.action
    )


@router.get("/status/{user_id}", response_model=schemas.ConnectionStatus)
async def get_connection_status(
    user_id: str,
    connection_interactor: ConnectionInteractor = Depends(get_connection_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    connection_status = await connection_interactor.get_status(current_user.id, user_id)
    return schemas.ConnectionStatus(user_id=user_id, status=connection_status)


@router.get("/pending", response_model=schemas.PendingRequests)
async def list_pending_requests(
    connection_interactor: ConnectionInteractor = Depends(get_connection_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await connection_interactor.list_pending(current_user.id)


@router.get("/sent", response_model=schemas.SentRequests)
async def list_sent_requests(
    connection_interactor: ConnectionInteractor = Depends(get_connection_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await connection_interactor.list_sent(current_user.id)


@router.post("/block/{user_id}", response_model=schemas.ConnectionStatus)
async def block_user(
    user_id: str,
    connection_interactor: ConnectionInteractor = Depends(get_connection_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await connection_interactor.block(current_user.id, user_id)


@router.delete("/block/{user_id}", response_model=schemas.ConnectionStatus)
async def unblock_user(
    user_id: str,
    connection_interactor: ConnectionInteractor = Depends(get_connection_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await connection_interactor.unblock(current_user.id, user_id)
