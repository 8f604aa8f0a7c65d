"""
Notification Model - per-user in-app event log
"""

import enum
from typing import Any, Optional

from sqlalchemy import Boolean, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


class NotificationModule(str, enum.Enum):
    MESSAGE = "message"
    PRODUCT = "product"
    ORDER = "order"
    VIDEO = "video"
    GENERAL = "general"


class Notification(Base, TimestampMixin):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    module: Mapped[str] = mapped_column(String(20), nullable=False)
    resource_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    payload: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")

    __table_args__ = (
        Index("idx_notifications_user_created", "user_id", "created_at"),
        Index("idx_notifications_user_unread", "user_id", "is_read"),
    )

    @property
    def product_id(self) -> Optional[int]:
        """Product this notification points at, if any"""
        if self.module == NotificationModule.PRODUCT.value:
            return self.resource_id
        if self.module == NotificationModule.MESSAGE.value and self.payload:
            value = self.payload.get("productId")
            if isinstance(value, int):
                return value
        return None
