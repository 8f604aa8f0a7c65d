"""
Connection registry for the real-time namespaces

Tracks which users are reachable and the private room that addresses all of
a user's live connections. Process-local: a deployment with several
processes only reaches users connected to the process that emits.
"""

import asyncio
from typing import Dict, FrozenSet, Optional, Set

from app.core.logging import get_logger

logger = get_logger(__name__)


class ConnectionRegistry:
    """
    user_id -> set of connection ids (Socket.IO sids)
    Handles multiple concurrent connections per user
    """

    def __init__(self, name: str = "default"):
        self.name = name
        self._connections: Dict[int, Set[str]] = {}
        self._owners: Dict[str, int] = {}
        # Lock for mutations across event-loop turns
        self._lock = asyncio.Lock()

    @staticmethod
    def room_for(user_id: int) -> str:
        """Private room shared by every connection of one user"""
        return f"user:{user_id}"

    async def register(self, user_id: int, connection_id: str) -> str:
        """Track a connection and return the room it must join"""
        async with self._lock:
            self._connections.setdefault(user_id, set()).add(connection_id)
            self._owners[connection_id] = user_id
            total = len(self._connections[user_id])
        logger.info(f"[{self.name}] user {user_id} connected ({connection_id}). Total connections: {total}")
        return self.room_for(user_id)

    async def unregister(self, connection_id: str, user_id: Optional[int] = None) -> Optional[int]:
        """Forget a connection; returns the user it belonged to"""
        async with self._lock:
            owner = self._owners.pop(connection_id, None)
            if user_id is None:
                user_id = owner
            if user_id is None:
                return None

            sockets = self._connections.get(user_id)
            if sockets is not None:
                sockets.discard(connection_id)
                # Clean up empty sets
                if not sockets:
                    del self._connections[user_id]
        logger.info(f"[{self.name}] user {user_id} disconnected ({connection_id})")
        return user_id

    def user_for(self, connection_id: str) -> Optional[int]:
        return self._owners.get(connection_id)

    def is_online(self, user_id: int) -> bool:
        return bool(self._connections.get(user_id))

    def connections(self, user_id: int) -> FrozenSet[str]:
        return frozenset(self._connections.get(user_id, ()))

    def online_users(self) -> FrozenSet[int]:
        return frozenset(self._connections)
