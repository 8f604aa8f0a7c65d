"""
Product Models

Catalog tables are owned by the catalog service. Chats reference products
and notifications carry a small product projection.
"""

import enum
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.user import User


class MediaType(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"


class Product(Base, TimestampMixin):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    name_slug: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    status: Mapped[int] = mapped_column(Integer, default=1)

    # Relationships
    owner: Mapped["User"] = relationship()
    media: Mapped[List["ProductMedia"]] = relationship(
        back_populates="product",
        order_by="ProductMedia.sequence",
        cascade="all, delete-orphan",
    )

    @property
    def image(self) -> Optional[str]:
        """First image by sequence, if any"""
        for item in self.media:
            if item.type == MediaType.IMAGE.value:
                return item.media_url
        return None


class ProductMedia(Base, TimestampMixin):
    __tablename__ = "product_media"

    id: Mapped[int] = mapped_column(primary_key=True)
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), index=True, nullable=False
    )
    media_url: Mapped[str] = mapped_column(String(500), nullable=False)
    type: Mapped[str] = mapped_column(String(10), default=MediaType.IMAGE.value)
    sequence: Mapped[int] = mapped_column(Integer, default=0)

    product: Mapped["Product"] = relationship(back_populates="media")
