"""
Socket.IO event payloads

Each client event has a closed schema; payloads are validated at the gateway
boundary before any service call.
"""

from typing import Dict, List

from pydantic import ConfigDict, Field

from app.schemas.common import CamelModel


# Client -> server ---------------------------------------------------
class ClientEvent(CamelModel):
    model_config = ConfigDict(extra="forbid")


class SendMessageEvent(ClientEvent):
    chat_id: int = Field(ge=1)
    content: str = Field(min_length=1, max_length=5000)


class ChatRefEvent(ClientEvent):
    """joinChat / leaveChat / markAsRead"""
    chat_id: int = Field(ge=1)


class TypingEvent(ClientEvent):
    chat_id: int = Field(ge=1)
    is_typing: bool


class CheckOnlineStatusEvent(ClientEvent):
    user_ids: List[int] = Field(max_length=500)


# Server -> client ---------------------------------------------------
class ConnectedEvent(CamelModel):
    user_id: int
    message: str


class ErrorEvent(CamelModel):
    message: str


class ChatUpdatedEvent(CamelModel):
    chat_id: int
    last_message: str
    last_message_at: str


class UserTypingEvent(CamelModel):
    chat_id: int
    user_id: int
    is_typing: bool


class MessagesReadEvent(CamelModel):
    chat_id: int
    read_by: int


class OnlineStatusAck(CamelModel):
    success: bool = True
    online_status: Dict[int, bool]
