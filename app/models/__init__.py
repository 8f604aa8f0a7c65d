from app.models.base import Base
from app.models.chat import Chat, ChatStatus, Message
from app.models.notification import Notification, NotificationModule
from app.models.product import MediaType, Product, ProductMedia
from app.models.token import UserToken
from app.models.user import User

__all__ = [
    "Base",
    "User",
    "Product",
    "ProductMedia",
    "MediaType",
    "Chat",
    "ChatStatus",
    "Message",
    "Notification",
    "NotificationModule",
    "UserToken",
]
