"""
Notification gateway (/notifications namespace)

Server-to-client only: delivers notification lifecycle events to every live
connection of the addressed user.
"""

from app.core.security import TokenVerifier
from app.core.time import to_iso
from app.realtime.gateway import AuthenticatedNamespace
from app.realtime.registry import ConnectionRegistry


class NotificationGateway(AuthenticatedNamespace):
    connected_message = "Connected to notifications server"

    def __init__(
        self,
        registry: ConnectionRegistry,
        verifier: TokenVerifier,
        namespace: str = "/notifications",
    ):
        super().__init__(namespace, registry, verifier)

    async def emit_new_notification(self, user_id: int, notification: dict) -> None:
        await self.emit_to_user(
            user_id,
            "newNotification",
            {"notification": notification, "timestamp": to_iso()},
        )

    async def emit_notification_read(self, user_id: int, notification_id: int) -> None:
        await self.emit_to_user(
            user_id,
            "notificationRead",
            {"notificationId": notification_id, "timestamp": to_iso()},
        )

    async def emit_all_notifications_read(self, user_id: int) -> None:
        await self.emit_to_user(user_id, "allNotificationsRead", {"timestamp": to_iso()})
