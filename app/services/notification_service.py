"""
Notification Service

Durable per-user notification log plus best-effort real-time and push
fan-out, and the device token store push delivery reads from.
"""

import hashlib
from typing import TYPE_CHECKING, Callable, Dict, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.core.errors import NotFoundError
from app.core.logging import get_logger
from app.core.tasks import BestEffortRunner
from app.models.notification import Notification
from app.models.product import Product
from app.models.token import UserToken
from app.models.user import User
from app.schemas.chat import ProductSummary
from app.schemas.notification import NotificationCreate, NotificationResponse
from app.services.pagination import PageResult, page_window

if TYPE_CHECKING:
    from app.realtime.notification_gateway import NotificationGateway
    from app.services.push.fcm_client import FcmClient

logger = get_logger(__name__)

DEFAULT_NOTIFICATIONS_LIMIT = 10


class NotificationService:
    def __init__(
        self,
        session: AsyncSession,
        *,
        gateway: Optional["NotificationGateway"] = None,
        push: Optional["FcmClient"] = None,
        runner: Optional[BestEffortRunner] = None,
        default_limit: int = DEFAULT_NOTIFICATIONS_LIMIT,
    ):
        self.session = session
        self.gateway = gateway
        self.push = push
        self.runner = runner
        self.default_limit = default_limit

    # ------------------------------------------------------------------
    # Notification log
    # ------------------------------------------------------------------
    async def create_notification(self, data: NotificationCreate) -> Notification:
        """Persist, then announce on the notifications namespace and by push"""
        notification = Notification(
            user_id=data.user_id,
            title=data.title,
            message=data.message,
            module=data.module.value,
            resource_id=data.resource_id,
            payload=data.payload,
            is_read=False,
        )
        self.session.add(notification)
        await self.session.commit()
        logger.info(f"Notification {notification.id} ({notification.module}) created for user {notification.user_id}")

        await self._emit_new(notification)
        self._schedule_push(notification)
        return notification

    async def _emit_new(self, notification: Notification) -> None:
        if self.gateway is None:
            return
        try:
            await self.gateway.emit_new_notification(
                notification.user_id,
                NotificationResponse.model_validate(notification).to_wire(),
            )
        except Exception as e:
            logger.error(f"Failed to emit notification {notification.id}: {e}", exc_info=e)

    def _schedule_push(self, notification: Notification) -> None:
        if self.push is None or self.runner is None or not self.push.is_enabled:
            return
        data = {
            "notificationId": notification.id,
            "module": notification.module,
            "resourceId": notification.resource_id,
            **(notification.payload or {}),
        }
        self.runner.spawn(
            self.push.send_to_user(notification.user_id, notification.title, notification.message, data),
            name=f"push:notification:{notification.id}",
        )

    async def get_notifications_by_user_id(
        self, user_id: int, page: Optional[int] = None, limit: Optional[int] = None
    ) -> PageResult[NotificationResponse]:
        """Newest first, with one batched product lookup for the whole page"""
        page, limit, offset = page_window(page, limit, self.default_limit)

        total = await self.session.scalar(
            select(func.count(Notification.id)).where(Notification.user_id == user_id)
        )
        result = await self.session.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset)
            .limit(limit)
        )
        notifications = list(result.scalars().all())

        products = await self._product_summaries(
            {n.product_id for n in notifications if n.product_id is not None}
        )

        items = []
        for notification in notifications:
            item = NotificationResponse.model_validate(notification)
            if notification.product_id is not None:
                item.product = products.get(notification.product_id)
            items.append(item)
        return PageResult(items, total or 0, page, limit)

    async def _product_summaries(self, product_ids: set) -> Dict[int, ProductSummary]:
        if not product_ids:
            return {}
        result = await self.session.execute(
            select(Product)
            .where(Product.id.in_(product_ids))
            .options(selectinload(Product.media))
            .execution_options(populate_existing=True)
        )
        return {
            product.id: ProductSummary.model_validate(product)
            for product in result.scalars().all()
        }

    async def mark_as_read(self, notification_id: int, user_id: int) -> Notification:
        result = await self.session.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        notification = result.scalars().first()
        if notification is None:
            raise NotFoundError("Notification not found")

        notification.is_read = True
        await self.session.commit()

        if self.gateway is not None:
            try:
                await self.gateway.emit_notification_read(user_id, notification_id)
            except Exception as e:
                logger.error(f"Failed to emit notificationRead to user {user_id}: {e}", exc_info=e)
        return notification

    async def mark_all_as_read(self, user_id: int) -> int:
        result = await self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

        if self.gateway is not None:
            try:
                await self.gateway.emit_all_notifications_read(user_id)
            except Exception as e:
                logger.error(f"Failed to emit allNotificationsRead to user {user_id}: {e}", exc_info=e)
        return result.rowcount or 0

    async def get_unread_count(self, user_id: int) -> int:
        count = await self.session.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return int(count or 0)

    # ------------------------------------------------------------------
    # Device tokens
    # ------------------------------------------------------------------
    @staticmethod
    def device_key(fcm_token: str) -> str:
        """Stable device id for clients that do not send one"""
        return "fcm-" + hashlib.sha256(fcm_token.encode()).hexdigest()

    async def _upsert_device_token(
        self, device_id: str, fcm_token: str, user_id: Optional[int]
    ) -> UserToken:
        result = await self.session.execute(
            select(UserToken).where(UserToken.device_id == device_id)
        )
        token = result.scalars().first()
        if token is None:
            token = UserToken(device_id=device_id, fcm_token=fcm_token, user_id=user_id)
            self.session.add(token)
        else:
            token.fcm_token = fcm_token
            if user_id is not None:
                token.user_id = user_id
        await self.session.commit()
        return token

    async def _require_user(self, user_id: int) -> None:
        if await self.session.get(User, user_id) is None:
            raise NotFoundError("User not found")

    async def update_fcm_token(
        self, user_id: int, fcm_token: str, device_id: Optional[str] = None
    ) -> UserToken:
        await self._require_user(user_id)
        return await self._upsert_device_token(
            device_id or self.device_key(fcm_token), fcm_token, user_id
        )

    async def register_device_token(
        self, device_id: str, fcm_token: str, user_id: Optional[int] = None
    ) -> UserToken:
        """Pre-login registration; the device is bound to a user later"""
        if user_id is not None:
            await self._require_user(user_id)
        return await self._upsert_device_token(device_id, fcm_token, user_id)

    async def remove_fcm_token(self, user_id: int, device_id: Optional[str] = None) -> int:
        stmt = delete(UserToken).where(UserToken.user_id == user_id)
        if device_id is not None:
            stmt = stmt.where(UserToken.device_id == device_id)
        result = await self.session.execute(stmt.execution_options(synchronize_session=False))
        await self.session.commit()
        return result.rowcount or 0


class NotificationDispatcher:
    """
    Deposits notifications off the caller's request path.

    Each delivery runs as a detached task with its own session; failures go
    to the runner's failure callback and never reach the producer.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        runner: BestEffortRunner,
        service_factory: Callable[[AsyncSession], NotificationService],
    ):
        self.session_factory = session_factory
        self.runner = runner
        self.service_factory = service_factory

    def dispatch(self, data: NotificationCreate):
        return self.runner.spawn(
            self.deliver(data),
            name=f"notification:{data.module.value}:user:{data.user_id}",
        )

    async def deliver(self, data: NotificationCreate) -> Notification:
        async with self.session_factory() as session:
            return await self.service_factory(session).create_notification(data)
