# crewlink/api/chats.py
from fastapi import APIRouter, Depends

from crewlink.api.dependencies import get_chat_interactor, get_current_user
from crewlink.infrastructure import schemas
from crewlink.interactors.chat_interactor import ChatInteractor

router = APIRouter()


@router.get("/rooms", response_model=schemas.ChatRooms)
async def read_rooms(
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await chat_interactor.list_rooms(current_user.id)


@router.get("/rooms/{room_id}/messages", response_model=list[schemas.ChatMessage])
async def read_room_messages(
    room_id: str,
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await chat_interactor.list_messages(room_id, current_user.id)


@router.put("/rooms/{room_id}/read", response_model=schemas.RoomReadResult)
async def mark_room_read(
    room_id: str,
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await chat_interactor.mark_room_read(room_id, current_user.id)


@router.get("/messages/{other_user_id}", response_model=schemas.Conversation)
async def read_conversation(
    other_user_id: str,
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await chat_interactor.get_conversation(current_user.id, other_user_id)


@router.post("/send", response_model=schemas.ChatMessage, status_code=201)
async def send_message(
    message: schemas.MessageCreate,
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await chat_interactor.send_message(
        current_user.id, message.receiver_id, message.content
    )


@router.put("/message-status", response_model=schemas.ChatMessage)
async def update_message_status(
    status_update: schemas.MessageStatusUpdate,
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await chat_interactor.update_status(
        status_update.message_id, current_user.id, status_update.status
    )


@router.get("/unread-count", response_model=schemas.UnreadCount)
async def get_unread_count(
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await chat_interactor.unread_total(current_user.id)


@router.put("/online-status", response_model=schemas.UserOnlineStatus)
async def update_online_status(
    status_update: schemas.OnlineStatusUpdate,
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await chat_interactor.update_online_status(
        current_user.id, status_update.is_online
    )


@router.get("/user-status/{user_id}", response_model=schemas.UserOnlineStatus)
async def get_user_status(
    user_id: str,
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await chat_interactor.get_presence(user_id)
