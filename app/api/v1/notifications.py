"""
Notification endpoints
"""

from typing import Optional

from fastapi import APIRouter, Query

from app.core.deps import CurrentUserDep, NotificationServiceDep
from app.schemas.common import DefaultResponse
from app.schemas.notification import (
    DeviceTokenResponse,
    NotificationResponse,
    NotificationsPage,
    UnreadNotificationsResponse,
    UpdateFcmTokenPublicRequest,
    UpdateFcmTokenRequest,
)

router = APIRouter()


@router.get("", response_model=DefaultResponse[NotificationsPage])
async def get_notifications(
    user_id: CurrentUserDep,
    service: NotificationServiceDep,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
):
    result = await service.get_notifications_by_user_id(user_id, page, limit)
    data = NotificationsPage(
        notifications=result.items,
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )
    return DefaultResponse(message="Notifications retrieved successfully", data=data)


@router.get("/unread-count", response_model=DefaultResponse[UnreadNotificationsResponse])
async def get_unread_count(user_id: CurrentUserDep, service: NotificationServiceDep):
    count = await service.get_unread_count(user_id)
    return DefaultResponse(
        message="Unread count retrieved successfully",
        data=UnreadNotificationsResponse(unread_count=count),
    )


@router.put("/mark-all-read", response_model=DefaultResponse[None])
async def mark_all_as_read(user_id: CurrentUserDep, service: NotificationServiceDep):
    await service.mark_all_as_read(user_id)
    return DefaultResponse(message="All notifications marked as read", data=None)


@router.put("/fcm-token", response_model=DefaultResponse[DeviceTokenResponse])
async def update_fcm_token(
    body: UpdateFcmTokenRequest,
    user_id: CurrentUserDep,
    service: NotificationServiceDep,
):
    token = await service.update_fcm_token(user_id, body.fcm_token, body.device_id)
    return DefaultResponse(
        message="FCM token updated successfully",
        data=DeviceTokenResponse.model_validate(token),
    )


@router.delete("/fcm-token", response_model=DefaultResponse[None])
async def remove_fcm_token(
    user_id: CurrentUserDep,
    service: NotificationServiceDep,
    device_id: Optional[str] = Query(None, alias="deviceId"),
):
    await service.remove_fcm_token(user_id, device_id)
    return DefaultResponse(message="FCM token removed successfully", data=None)


@router.put("/fcm-token/public", response_model=DefaultResponse[DeviceTokenResponse])
async def register_device_token(body: UpdateFcmTokenPublicRequest, service: NotificationServiceDep):
    """Device registration before login; no bearer token required"""
    token = await service.register_device_token(body.device_id, body.fcm_token, body.user_id)
    return DefaultResponse(
        message="FCM token registered successfully",
        data=DeviceTokenResponse.model_validate(token),
    )


@router.put("/{notification_id}/read", response_model=DefaultResponse[NotificationResponse])
async def mark_as_read(notification_id: int, user_id: CurrentUserDep, service: NotificationServiceDep):
    notification = await service.mark_as_read(notification_id, user_id)
    return DefaultResponse(
        message="Notification marked as read",
        data=NotificationResponse.model_validate(notification),
    )
