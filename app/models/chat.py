"""
Chat Models

One conversation between two users about one product, and its message log.
"""

import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin
from app.models.product import Product
from app.models.user import User


class ChatStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Chat(Base, TimestampMixin):
    """userA is the product owner, userB the other party"""

    __tablename__ = "chats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)
    user_a_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    user_b_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    last_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_message_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    unread_count_user_a: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    unread_count_user_b: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ChatStatus.ACTIVE.value, server_default=ChatStatus.ACTIVE.value
    )

    # Relationships
    product: Mapped["Product"] = relationship()
    user_a: Mapped["User"] = relationship(foreign_keys=[user_a_id])
    user_b: Mapped["User"] = relationship(foreign_keys=[user_b_id])
    messages: Mapped[List["Message"]] = relationship(back_populates="chat")

    __table_args__ = (
        UniqueConstraint("product_id", "user_a_id", "user_b_id", name="uq_chats_product_users"),
        CheckConstraint("user_a_id <> user_b_id", name="distinct_participants"),
        Index("idx_chats_user_a", "user_a_id"),
        Index("idx_chats_user_b", "user_b_id"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == ChatStatus.ACTIVE.value

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.user_a_id, self.user_b_id)

    def other_participant(self, user_id: int) -> int:
        return self.user_b_id if user_id == self.user_a_id else self.user_a_id


class Message(Base, TimestampMixin):
    """One chat utterance"""

    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chat_id: Mapped[int] = mapped_column(ForeignKey("chats.id"), nullable=False)
    sender_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    chat: Mapped["Chat"] = relationship(back_populates="messages")

    # Indexes for efficient queries
    __table_args__ = (
        Index("idx_messages_chat_created", "chat_id", "created_at"),
        Index("idx_messages_chat_unread", "chat_id", "is_read"),
    )
