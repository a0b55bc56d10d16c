"""In-memory map of live connections to (user, current room).

One registry instance is owned by one coordinator; nothing else writes to it.
State is lost on restart, as are the connections it describes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


class ClientConnection(Protocol):
    """Transport handle for one client channel."""

    connection_id: str

    @property
    def is_open(self) -> bool: ...

    async def send_json(self, payload: Dict[str, Any]) -> None: ...


@dataclass
class ConnectionEntry:
    connection: ClientConnection
    user_id: str
    room_id: Optional[str] = None

    @property
    def connection_id(self) -> str:
        return self.connection.connection_id

    @property
    def in_lobby(self) -> bool:
        return self.room_id is None


class ConnectionRegistry:
    def __init__(self) -> None:
        self._entries: Dict[str, ConnectionEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._entries

    def register(self, connection: ClientConnection, user_id: str) -> ConnectionEntry:
        """Insert or overwrite *connection* as lobby-present for *user_id*."""
        entry = ConnectionEntry(connection=connection, user_id=user_id)
        self._entries[connection.connection_id] = entry
        logger.debug("Registered connection %s for user %s", connection.connection_id, user_id)
        return entry

    def get(self, connection_id: str) -> Optional[ConnectionEntry]:
        return self._entries.get(connection_id)

    def set_room(self, connection_id: str, room_id: Optional[str]) -> bool:
        """Point an existing entry at *room_id* (``None`` = lobby).

        Returns ``False`` and changes nothing for an unknown connection.
        """
        entry = self._entries.get(connection_id)
        if entry is None:
            return False
        entry.room_id = room_id
        return True

    def remove(self, connection_id: str) -> Optional[ConnectionEntry]:
        """Delete and return the entry so the caller can clean up after it."""
        return self._entries.pop(connection_id, None)

    # Recipient lists are snapshots: callers await sends while iterating.

    def list_by_room(self, room_id: str) -> List[str]:
        return [cid for cid, e in self._entries.items() if e.room_id == room_id]

    def list_lobby(self) -> List[str]:
        return [cid for cid, e in self._entries.items() if e.room_id is None]


__all__ = ["ClientConnection", "ConnectionEntry", "ConnectionRegistry"]
