"""
Authenticated Socket.IO namespace

Shared connect/disconnect lifecycle of the chat and notification gateways:
a connection is accepted only with a valid bearer token, tracked in the
namespace's registry and joined to its user's private room.
"""

from typing import Any, Optional

import socketio
from socketio import exceptions as sio_exceptions

from app.core.errors import AuthenticationError
from app.core.logging import get_logger
from app.core.security import TokenVerifier, extract_handshake_token
from app.realtime.registry import ConnectionRegistry
from app.schemas.events import ConnectedEvent, ErrorEvent

logger = get_logger(__name__)

AUTH_FAILED = "Authentication failed"


class AuthenticatedNamespace(socketio.AsyncNamespace):
    connected_message = "Connected"

    def __init__(self, namespace: str, registry: ConnectionRegistry, verifier: TokenVerifier):
        super().__init__(namespace)
        self.registry = registry
        self.verifier = verifier

    async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None):
        token = extract_handshake_token(auth, environ or {})
        if not token:
            logger.warning(f"Client {sid} connected to {self.namespace} without token")
            return False

        try:
            user_id = self.verifier.verify(token)
        except AuthenticationError as e:
            logger.error(f"{self.namespace} connection error for {sid}: {e.message}")
            await self.emit_error(sid, AUTH_FAILED)
            raise sio_exceptions.ConnectionRefusedError(AUTH_FAILED)

        room = await self.registry.register(user_id, sid)
        await self.enter_room(sid, room)
        await self.emit(
            "connected",
            ConnectedEvent(user_id=user_id, message=self.connected_message).to_wire(),
            to=sid,
        )
        return True

    async def on_disconnect(self, sid: str, reason: Any = None):
        user_id = await self.registry.unregister(sid)
        if user_id is None:
            logger.debug(f"Unknown client {sid} disconnected from {self.namespace}")

    async def emit_error(self, sid: str, message: str) -> None:
        try:
            await self.emit("error", ErrorEvent(message=message).to_wire(), to=sid)
        except Exception as e:
            logger.error(f"Failed to emit error to {sid}: {e}")

    async def emit_to_user(self, user_id: int, event: str, data: Any) -> None:
        """Deliver once to every live connection of the user"""
        await self.emit(event, data, room=self.registry.room_for(user_id))

    async def safe_emit_to_user(self, user_id: int, event: str, data: Any) -> bool:
        try:
            await self.emit_to_user(user_id, event, data)
            return True
        except Exception as e:
            logger.error(f"Failed to emit {event} to user {user_id}: {e}", exc_info=e)
            return False

    def is_user_online(self, user_id: int) -> bool:
        return self.registry.is_online(user_id)
