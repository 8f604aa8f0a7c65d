"""
Chat Schemas
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app.schemas.common import CamelModel


class InitiateChatRequest(CamelModel):
    product_id: int = Field(ge=1)
    user_b_id: int = Field(ge=1)


class SendMessageRequest(CamelModel):
    chat_id: int = Field(ge=1)
    content: str = Field(min_length=1, max_length=5000)


class MarkReadRequest(CamelModel):
    chat_id: int = Field(ge=1)


# Responses ----------------------------------------------------------
class UserSummary(CamelModel):
    id: int
    first_name: str
    last_name: str
    image: Optional[str] = None


class ProductSummary(CamelModel):
    id: int
    name: str
    slug: Optional[str] = Field(default=None, validation_alias="name_slug")
    image: Optional[str] = None


class ChatResponse(CamelModel):
    id: int
    product_id: int
    user_a_id: int
    user_b_id: int
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    unread_count_user_a: int
    unread_count_user_b: int
    status: str
    created_at: datetime
    updated_at: datetime
    product: Optional[ProductSummary] = None
    user_a: Optional[UserSummary] = None
    user_b: Optional[UserSummary] = None


class MessageResponse(CamelModel):
    id: int
    chat_id: int
    sender_id: int
    content: str
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ChatHeadsPage(CamelModel):
    chats: List[ChatResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class MessagesPage(CamelModel):
    messages: List[MessageResponse]
    total: int
    page: int
    limit: int
    total_pages: int
