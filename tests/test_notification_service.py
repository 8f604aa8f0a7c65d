"""
Notification Service Tests
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select

from app.core.errors import NotFoundError
from app.core.tasks import BestEffortRunner
from app.models.notification import Notification, NotificationModule
from app.models.token import UserToken
from app.schemas.notification import NotificationCreate
from app.services.notification_service import NotificationDispatcher, NotificationService


@pytest.fixture
def gateway():
    return AsyncMock()


@pytest.fixture
def service(test_session, gateway) -> NotificationService:
    return NotificationService(test_session, gateway=gateway)


def payload(user_id, **overrides) -> NotificationCreate:
    data = {"user_id": user_id, "title": "Hello", "message": "Something happened"}
    data.update(overrides)
    return NotificationCreate(**data)


# ----------------------------------------------------------------------
# Notification log
# ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_create_notification_persists_and_emits(service, gateway, seed):
    notification = await service.create_notification(payload(seed.alice))

    assert notification.id is not None
    assert notification.is_read is False
    assert notification.module == NotificationModule.GENERAL.value

    gateway.emit_new_notification.assert_awaited_once()
    user_id, data = gateway.emit_new_notification.await_args.args
    assert user_id == seed.alice
    assert data["id"] == notification.id
    assert data["isRead"] is False


@pytest.mark.asyncio
async def test_emit_failure_does_not_fail_create(test_session, seed):
    gateway = AsyncMock()
    gateway.emit_new_notification.side_effect = RuntimeError("socket layer down")
    service = NotificationService(test_session, gateway=gateway)

    notification = await service.create_notification(payload(seed.alice))
    assert notification.id is not None


@pytest.mark.asyncio
async def test_push_is_scheduled_after_create(test_session, seed):
    push = MagicMock()
    push.is_enabled = True
    push.send_to_user = AsyncMock()
    runner = BestEffortRunner()
    service = NotificationService(test_session, push=push, runner=runner)

    notification = await service.create_notification(
        payload(seed.alice, module=NotificationModule.MESSAGE, resource_id=seed.bob,
                payload={"chatId": 3})
    )
    await runner.drain()

    push.send_to_user.assert_awaited_once()
    user_id, title, body, data = push.send_to_user.await_args.args
    assert (user_id, title, body) == (seed.alice, "Hello", "Something happened")
    assert data["notificationId"] == notification.id
    assert data["module"] == "message"
    assert data["chatId"] == 3


@pytest.mark.asyncio
async def test_disabled_push_is_not_scheduled(test_session, seed):
    push = MagicMock()
    push.is_enabled = False
    runner = BestEffortRunner()
    service = NotificationService(test_session, push=push, runner=runner)

    await service.create_notification(payload(seed.alice))
    assert runner.pending == 0
    push.send_to_user.assert_not_called()


@pytest.mark.asyncio
async def test_list_attaches_product_projection(service, seed):
    await service.create_notification(payload(seed.alice, title="general"))
    await service.create_notification(
        payload(seed.alice, title="product", module=NotificationModule.PRODUCT, resource_id=seed.lamp)
    )
    await service.create_notification(
        payload(seed.alice, title="message", module=NotificationModule.MESSAGE,
                resource_id=seed.bob, payload={"productId": seed.bike})
    )
    await service.create_notification(payload(seed.bob, title="not mine"))

    page = await service.get_notifications_by_user_id(seed.alice)

    # Newest first
    assert [n.title for n in page.items] == ["message", "product", "general"]
    assert page.total == 3

    message, product, general = page.items
    assert message.product.name == "Road Bike"
    assert message.product.image is None
    assert product.product.id == seed.lamp
    assert product.product.slug == "vintage-lamp"
    assert product.product.image == "https://cdn.example.com/lamp.jpg"
    assert general.product is None


@pytest.mark.asyncio
async def test_list_default_page_size(service, seed):
    for i in range(12):
        await service.create_notification(payload(seed.alice, title=f"n{i}"))

    page = await service.get_notifications_by_user_id(seed.alice)
    assert len(page.items) == 10
    assert page.total == 12
    assert page.total_pages == 2

    page2 = await service.get_notifications_by_user_id(seed.alice, page=2)
    assert [n.title for n in page2.items] == ["n1", "n0"]


@pytest.mark.asyncio
async def test_mark_as_read_checks_ownership(service, gateway, seed):
    notification = await service.create_notification(payload(seed.alice))

    with pytest.raises(NotFoundError):
        await service.mark_as_read(notification.id, seed.bob)
    gateway.emit_notification_read.assert_not_awaited()

    updated = await service.mark_as_read(notification.id, seed.alice)
    assert updated.is_read is True
    gateway.emit_notification_read.assert_awaited_once_with(seed.alice, notification.id)
    assert await service.get_unread_count(seed.alice) == 0


@pytest.mark.asyncio
async def test_mark_all_as_read(service, gateway, seed):
    for _ in range(3):
        await service.create_notification(payload(seed.alice))
    await service.create_notification(payload(seed.bob))

    assert await service.get_unread_count(seed.alice) == 3
    assert await service.mark_all_as_read(seed.alice) == 3
    assert await service.get_unread_count(seed.alice) == 0
    assert await service.get_unread_count(seed.bob) == 1
    gateway.emit_all_notifications_read.assert_awaited_once_with(seed.alice)


# ----------------------------------------------------------------------
# Device tokens
# ----------------------------------------------------------------------
async def tokens_of(session, user_id):
    result = await session.execute(
        select(UserToken.device_id, UserToken.fcm_token).where(UserToken.user_id == user_id)
    )
    return sorted(tuple(row) for row in result.all())


@pytest.mark.asyncio
async def test_update_fcm_token_without_device_id(service, test_session, seed):
    first = await service.update_fcm_token(seed.alice, "token-a")
    again = await service.update_fcm_token(seed.alice, "token-a")

    assert first.id == again.id
    assert first.device_id == NotificationService.device_key("token-a")
    assert len(await tokens_of(test_session, seed.alice)) == 1


@pytest.mark.asyncio
async def test_update_fcm_token_rotates_per_device(service, test_session, seed):
    await service.update_fcm_token(seed.alice, "old-token", device_id="pixel")
    await service.update_fcm_token(seed.alice, "new-token", device_id="pixel")
    await service.update_fcm_token(seed.alice, "ipad-token", device_id="ipad")

    assert await tokens_of(test_session, seed.alice) == [
        ("ipad", "ipad-token"),
        ("pixel", "new-token"),
    ]


@pytest.mark.asyncio
async def test_update_fcm_token_unknown_user(service):
    with pytest.raises(NotFoundError):
        await service.update_fcm_token(999, "token")


@pytest.mark.asyncio
async def test_public_registration_binds_on_login(service, test_session, seed):
    anonymous = await service.register_device_token("tablet", "pre-login-token")
    assert anonymous.user_id is None

    bound = await service.update_fcm_token(seed.bob, "post-login-token", device_id="tablet")
    assert bound.id == anonymous.id
    assert await tokens_of(test_session, seed.bob) == [("tablet", "post-login-token")]

    with pytest.raises(NotFoundError):
        await service.register_device_token("watch", "t", user_id=999)


@pytest.mark.asyncio
async def test_remove_fcm_token(service, test_session, seed):
    await service.update_fcm_token(seed.alice, "t1", device_id="d1")
    await service.update_fcm_token(seed.alice, "t2", device_id="d2")
    await service.update_fcm_token(seed.bob, "t3", device_id="d3")

    assert await service.remove_fcm_token(seed.alice, device_id="d1") == 1
    assert await tokens_of(test_session, seed.alice) == [("d2", "t2")]

    assert await service.remove_fcm_token(seed.alice) == 1
    assert await tokens_of(test_session, seed.alice) == []
    assert await tokens_of(test_session, seed.bob) == [("d3", "t3")]


# ----------------------------------------------------------------------
# Dispatcher
# ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_dispatcher_creates_in_its_own_session(session_factory, test_session, gateway, seed):
    runner = BestEffortRunner()
    dispatcher = NotificationDispatcher(
        session_factory, runner, lambda session: NotificationService(session, gateway=gateway)
    )

    dispatcher.dispatch(payload(seed.alice, title="detached"))
    await runner.drain()

    titles = (await test_session.execute(select(Notification.title))).scalars().all()
    assert titles == ["detached"]
    gateway.emit_new_notification.assert_awaited_once()


@pytest.mark.asyncio
async def test_dispatcher_failure_goes_to_runner_callback(session_factory, seed):
    failures = []
    runner = BestEffortRunner(on_error=lambda name, exc: failures.append(name))

    def broken_factory(session):
        raise RuntimeError("database unavailable")

    dispatcher = NotificationDispatcher(session_factory, runner, broken_factory)
    dispatcher.dispatch(payload(seed.alice, module=NotificationModule.MESSAGE))
    await runner.drain()

    assert failures == [f"notification:message:user:{seed.alice}"]


@pytest.mark.asyncio
async def test_notifications_survive_for_offline_users(session_factory, test_session, seed):
    """No live connection: the log still holds the notification"""
    runner = BestEffortRunner()
    dispatcher = NotificationDispatcher(session_factory, runner, NotificationService)

    dispatcher.dispatch(payload(seed.carol))
    await runner.drain()

    count = await test_session.scalar(
        select(func.count(Notification.id)).where(Notification.user_id == seed.carol)
    )
    assert count == 1
