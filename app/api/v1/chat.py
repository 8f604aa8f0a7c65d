"""
Chat endpoints

HTTP counterpart of the /chat namespace. Sending and marking read over HTTP
fan out to the live connections exactly like the socket path.
"""

from typing import Optional

from fastapi import APIRouter, Query

from app.core.deps import ChatServiceDep, ContextDep, CurrentUserDep
from app.schemas.chat import (
    ChatHeadsPage,
    ChatResponse,
    InitiateChatRequest,
    MarkReadRequest,
    MessageResponse,
    MessagesPage,
    SendMessageRequest,
)
from app.schemas.common import CountResponse, DefaultResponse

router = APIRouter()


@router.post("/initiate", response_model=DefaultResponse[ChatResponse])
async def initiate_chat(body: InitiateChatRequest, user_id: CurrentUserDep, service: ChatServiceDep):
    chat = await service.initiate_chat(body.product_id, body.user_b_id, user_id)
    return DefaultResponse(message="Chat initiated successfully", data=ChatResponse.model_validate(chat))


@router.get("/heads", response_model=DefaultResponse[ChatHeadsPage])
async def get_chat_heads(
    user_id: CurrentUserDep,
    service: ChatServiceDep,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
):
    result = await service.get_chat_heads(user_id, page, limit)
    data = ChatHeadsPage(
        chats=[ChatResponse.model_validate(chat) for chat in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )
    return DefaultResponse(message="Chat heads retrieved successfully", data=data)


@router.get("/unread-count", response_model=DefaultResponse[CountResponse])
async def get_unread_count(user_id: CurrentUserDep, service: ChatServiceDep):
    count = await service.get_unread_count(user_id)
    return DefaultResponse(message="Unread count retrieved successfully", data=CountResponse(count=count))


@router.post("/message", response_model=DefaultResponse[MessageResponse])
async def send_message(
    body: SendMessageRequest,
    user_id: CurrentUserDep,
    service: ChatServiceDep,
    context: ContextDep,
):
    message = await service.send_message(body.chat_id, user_id, body.content)
    data = MessageResponse.model_validate(message)

    await context.chat_gateway.broadcast_new_message(message.chat, user_id, data.to_wire())
    return DefaultResponse(message="Message sent successfully", data=data)


@router.patch("/mark-read", response_model=DefaultResponse[None])
async def mark_messages_as_read(
    body: MarkReadRequest,
    user_id: CurrentUserDep,
    service: ChatServiceDep,
    context: ContextDep,
):
    chat = await service.get_chat_by_id(body.chat_id, user_id)
    await service.mark_messages_as_read(chat.id, user_id)

    await context.chat_gateway.notify_messages_read(chat, user_id)
    return DefaultResponse(message="Messages marked as read", data=None)


@router.get("/{chat_id}", response_model=DefaultResponse[ChatResponse])
async def get_chat(chat_id: int, user_id: CurrentUserDep, service: ChatServiceDep):
    chat = await service.get_chat_by_id(chat_id, user_id)
    return DefaultResponse(message="Chat retrieved successfully", data=ChatResponse.model_validate(chat))


@router.get("/{chat_id}/messages", response_model=DefaultResponse[MessagesPage])
async def get_messages(
    chat_id: int,
    user_id: CurrentUserDep,
    service: ChatServiceDep,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
):
    result = await service.get_messages(chat_id, user_id, page, limit)
    data = MessagesPage(
        messages=[MessageResponse.model_validate(m) for m in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )
    return DefaultResponse(message="Messages retrieved successfully", data=data)
