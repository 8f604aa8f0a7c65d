"""
Chat gateway (/chat namespace)

Client events are validated against their schema, run through the chat
service on a fresh session, and answered with an ack. Business errors become
``{"success": False, "error": ...}`` acks plus an ``error`` event; they never
close the connection.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Optional, Tuple, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import AppError, AuthenticationError, BadRequestError
from app.core.logging import get_logger
from app.core.security import TokenVerifier
from app.core.time import to_iso
from app.models.chat import Chat
from app.realtime.gateway import AuthenticatedNamespace
from app.realtime.registry import ConnectionRegistry
from app.schemas.chat import MessageResponse
from app.schemas.events import (
    ChatRefEvent,
    ChatUpdatedEvent,
    CheckOnlineStatusEvent,
    MessagesReadEvent,
    OnlineStatusAck,
    SendMessageEvent,
    TypingEvent,
    UserTypingEvent,
)
from app.services.chat_service import PREVIEW_LENGTH, ChatService

logger = get_logger(__name__)

INTERNAL_ERROR = "Internal server error"


def chat_room(chat_id: int) -> str:
    return f"chat:{chat_id}"


class ChatGateway(AuthenticatedNamespace):
    connected_message = "Connected to chat server"

    # wire event -> (payload schema, handler, requires an identified connection)
    events: Dict[str, Tuple[Type[BaseModel], str, bool]] = {
        "sendMessage": (SendMessageEvent, "handle_send_message", True),
        "joinChat": (ChatRefEvent, "handle_join_chat", True),
        "leaveChat": (ChatRefEvent, "handle_leave_chat", False),
        "typing": (TypingEvent, "handle_typing", True),
        "markAsRead": (ChatRefEvent, "handle_mark_as_read", True),
        "checkOnlineStatus": (CheckOnlineStatusEvent, "handle_check_online_status", True),
    }

    def __init__(
        self,
        registry: ConnectionRegistry,
        verifier: TokenVerifier,
        session_factory: async_sessionmaker[AsyncSession],
        service_factory: Callable[[AsyncSession], ChatService],
        namespace: str = "/chat",
        preview_length: int = PREVIEW_LENGTH,
    ):
        super().__init__(namespace, registry, verifier)
        self.session_factory = session_factory
        self.service_factory = service_factory
        self.preview_length = preview_length

    @asynccontextmanager
    async def chat_service(self) -> AsyncIterator[ChatService]:
        async with self.session_factory() as session:
            yield self.service_factory(session)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    async def trigger_event(self, event: str, *args):
        route = self.events.get(event)
        if route is None:
            return await super().trigger_event(event, *args)

        sid = args[0]
        data = args[1] if len(args) > 1 else None
        schema, handler_name, requires_user = route
        try:
            user_id = self.registry.user_for(sid)
            if requires_user and user_id is None:
                raise AuthenticationError("User not authenticated")
            payload = self._parse(schema, data)
            return await getattr(self, handler_name)(sid, user_id, payload)
        except AppError as e:
            logger.error(f"Error handling {event} from {sid}: {e.message}")
            await self.emit_error(sid, e.message)
            return {"success": False, "error": e.message}
        except Exception as e:
            logger.error(f"Unexpected error handling {event} from {sid}: {e}", exc_info=e)
            await self.emit_error(sid, INTERNAL_ERROR)
            return {"success": False, "error": INTERNAL_ERROR}

    @staticmethod
    def _parse(schema: Type[BaseModel], data: Any) -> BaseModel:
        if not isinstance(data, dict):
            raise BadRequestError("Invalid payload")
        try:
            return schema.model_validate(data)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ()))
            raise BadRequestError(f"Invalid {field}: {first.get('msg')}" if field else "Invalid payload")

    # ------------------------------------------------------------------
    # Client events
    # ------------------------------------------------------------------
    async def handle_send_message(self, sid: str, user_id: int, payload: SendMessageEvent):
        async with self.chat_service() as service:
            message = await service.send_message(payload.chat_id, user_id, payload.content)

        message_data = MessageResponse.model_validate(message).to_wire()
        await self.broadcast_new_message(message.chat, user_id, message_data)
        return {"success": True, "message": message_data}

    async def handle_join_chat(self, sid: str, user_id: int, payload: ChatRefEvent):
        async with self.chat_service() as service:
            await service.get_chat_by_id(payload.chat_id, user_id)

        await self.enter_room(sid, chat_room(payload.chat_id))
        logger.info(f"User {user_id} joined chat {payload.chat_id}")
        return {"success": True, "chatId": payload.chat_id}

    async def handle_leave_chat(self, sid: str, user_id: Optional[int], payload: ChatRefEvent):
        await self.leave_room(sid, chat_room(payload.chat_id))
        return {"success": True, "chatId": payload.chat_id}

    async def handle_typing(self, sid: str, user_id: int, payload: TypingEvent):
        async with self.chat_service() as service:
            chat = await service.get_chat_by_id(payload.chat_id, user_id)

        await self.emit_to_user(
            chat.other_participant(user_id),
            "userTyping",
            UserTypingEvent(chat_id=chat.id, user_id=user_id, is_typing=payload.is_typing).to_wire(),
        )
        return {"success": True}

    async def handle_mark_as_read(self, sid: str, user_id: int, payload: ChatRefEvent):
        async with self.chat_service() as service:
            chat = await service.get_chat_by_id(payload.chat_id, user_id)
            await service.mark_messages_as_read(chat.id, user_id)

        await self.notify_messages_read(chat, user_id)
        return {"success": True}

    async def handle_check_online_status(
        self, sid: str, user_id: int, payload: CheckOnlineStatusEvent
    ):
        status = {uid: self.registry.is_online(uid) for uid in payload.user_ids}
        return OnlineStatusAck(online_status=status).to_wire()

    # ------------------------------------------------------------------
    # Fan-out helpers (also used by the HTTP routes)
    # ------------------------------------------------------------------
    async def broadcast_new_message(self, chat: Chat, sender_id: int, message_data: dict) -> None:
        """newMessage + chatUpdated to both participants, once per connection"""
        participants = (sender_id, chat.other_participant(sender_id))
        new_message = {"message": message_data, "chatId": chat.id}
        chat_updated = ChatUpdatedEvent(
            chat_id=chat.id,
            last_message=message_data["content"][: self.preview_length],
            last_message_at=to_iso(chat.last_message_at),
        ).to_wire()

        for participant in participants:
            await self.safe_emit_to_user(participant, "newMessage", new_message)
        for participant in participants:
            await self.safe_emit_to_user(participant, "chatUpdated", chat_updated)

    async def notify_messages_read(self, chat: Chat, reader_id: int) -> None:
        await self.safe_emit_to_user(
            chat.other_participant(reader_id),
            "messagesRead",
            MessagesReadEvent(chat_id=chat.id, read_by=reader_id).to_wire(),
        )
