"""
Application context

Builds every long-lived collaborator once (engine, token verifier, Socket.IO
server and gateways, push client, background runner) and hands them out to
the HTTP layer and the gateways.
"""

from dataclasses import dataclass
from typing import Optional

import socketio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.config import Settings
from app.core.logging import get_logger
from app.core.security import TokenVerifier
from app.core.tasks import BestEffortRunner
from app.infra.db import create_engine, create_session_factory
from app.realtime.chat_gateway import ChatGateway
from app.realtime.notification_gateway import NotificationGateway
from app.realtime.registry import ConnectionRegistry
from app.services.chat_service import ChatService
from app.services.notification_service import NotificationDispatcher, NotificationService
from app.services.push.fcm_client import FcmClient

logger = get_logger(__name__)


@dataclass
class AppContext:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    verifier: TokenVerifier
    runner: BestEffortRunner
    push: FcmClient
    sio: socketio.AsyncServer
    chat_gateway: Optional[ChatGateway] = None
    notification_gateway: Optional[NotificationGateway] = None
    notifier: Optional[NotificationDispatcher] = None

    def notification_service(self, session: AsyncSession) -> NotificationService:
        return NotificationService(
            session,
            gateway=self.notification_gateway,
            push=self.push,
            runner=self.runner,
            default_limit=self.settings.notifications_page_size,
        )

    def chat_service(self, session: AsyncSession) -> ChatService:
        return ChatService(
            session,
            self.notifier,
            preview_length=self.settings.last_message_preview_length,
            max_message_length=self.settings.message_max_length,
            heads_limit=self.settings.chat_heads_page_size,
            messages_limit=self.settings.messages_page_size,
        )

    async def aclose(self) -> None:
        """Let pending side effects finish, then release the pool"""
        await self.runner.drain()
        await self.engine.dispose()
        logger.info("Application context closed")


def build_context(settings: Settings, engine: Optional[AsyncEngine] = None) -> AppContext:
    engine = engine or create_engine(settings)
    session_factory = create_session_factory(engine)
    verifier = TokenVerifier(settings.jwt_secret_key, settings.jwt_algorithm)

    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=settings.cors_origins,
        always_connect=True,
        logger=settings.debug,
        engineio_logger=False,
    )

    context = AppContext(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        verifier=verifier,
        runner=BestEffortRunner(),
        push=FcmClient.from_settings(settings, session_factory),
        sio=sio,
    )
    context.notifier = NotificationDispatcher(
        session_factory, context.runner, context.notification_service
    )
    context.notification_gateway = NotificationGateway(
        ConnectionRegistry("notifications"),
        verifier,
        namespace=settings.notifications_namespace,
    )
    context.chat_gateway = ChatGateway(
        ConnectionRegistry("chat"),
        verifier,
        session_factory,
        context.chat_service,
        namespace=settings.chat_namespace,
        preview_length=settings.last_message_preview_length,
    )
    sio.register_namespace(context.chat_gateway)
    sio.register_namespace(context.notification_gateway)
    return context
