"""
Notification Schemas
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from app.models.notification import NotificationModule
from app.schemas.chat import ProductSummary
from app.schemas.common import CamelModel


class NotificationCreate(CamelModel):
    user_id: int
    title: str = Field(max_length=255)
    message: str
    module: NotificationModule = NotificationModule.GENERAL
    resource_id: Optional[int] = None
    payload: Optional[Dict[str, Any]] = None


class NotificationResponse(CamelModel):
    id: int
    user_id: int
    title: str
    message: str
    module: str
    resource_id: Optional[int] = None
    payload: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: datetime
    updated_at: datetime
    product: Optional[ProductSummary] = None


class NotificationsPage(CamelModel):
    notifications: List[NotificationResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class UnreadNotificationsResponse(CamelModel):
    unread_count: int


class UpdateFcmTokenRequest(CamelModel):
    fcm_token: str = Field(min_length=1)
    device_id: Optional[str] = Field(default=None, min_length=1, max_length=255)


class UpdateFcmTokenPublicRequest(CamelModel):
    device_id: str = Field(min_length=1, max_length=255)
    fcm_token: str = Field(min_length=1)
    user_id: Optional[int] = None


class DeviceTokenResponse(CamelModel):
    id: int
    device_id: str
    user_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
