from typing import TYPE_CHECKING, Optional

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.user import User


class UserToken(Base, TimestampMixin):
    """
    Device push token

    A device may register before login, so user_id is nullable. One row per
    device id; tokens reported invalid by the push provider are deleted.
    """
    __tablename__ = "user_tokens"

    id: Mapped[int] = mapped_column(primary_key=True)
    device_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    fcm_token: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )

    __table_args__ = (
        Index("idx_user_tokens_user_id", "user_id"),
    )

    # Relationships
    user: Mapped[Optional["User"]] = relationship(back_populates="device_tokens")
