"""
API Router configuration
"""

from fastapi import APIRouter

from app.api.v1 import chat, health, notifications

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(chat.router, prefix="/chat", tags=["chat"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
