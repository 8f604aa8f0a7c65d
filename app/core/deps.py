"""
Dependency Injection

FastAPI dependencies for routes.
"""

from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.context import AppContext
from app.infra.db import get_db
from app.services.chat_service import ChatService
from app.services.notification_service import NotificationService

bearer_scheme = HTTPBearer(auto_error=False)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


# Type aliases for common dependencies
SessionDep = Annotated[AsyncSession, Depends(get_db)]
ContextDep = Annotated[AppContext, Depends(get_context)]


async def get_current_user_id(
    context: ContextDep,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> int:
    """
    Validate token and return current user ID.
    Does not fetch full user object to save DB call.
    """
    token = credentials.credentials if credentials else None
    return context.verifier.verify(token)


CurrentUserDep = Annotated[int, Depends(get_current_user_id)]


def get_chat_service(context: ContextDep, session: SessionDep) -> ChatService:
    return context.chat_service(session)


def get_notification_service(context: ContextDep, session: SessionDep) -> NotificationService:
    return context.notification_service(session)


ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]
NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]
