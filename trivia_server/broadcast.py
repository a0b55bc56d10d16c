"""Best-effort fan-out of outbound messages to connections in the registry."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from .registry import ClientConnection, ConnectionRegistry

logger = logging.getLogger(__name__)


class BroadcastRouter:
    """Delivers messages at most once; closed or failing transports are skipped."""

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    async def send(self, connection: ClientConnection, message: Dict[str, Any]) -> bool:
        """Send *message* to one connection. Returns ``True`` if it was written."""
        if not connection.is_open:
            return False
        try:
            await connection.send_json(message)
        except Exception:
            # Client went away mid-send; its close event will clean it up
            logger.debug(
                "Dropped %s for connection %s",
                message.get("type"),
                connection.connection_id,
                exc_info=True,
            )
            return False
        return True

    async def _fan_out(self, connection_ids: Iterable[str], message: Dict[str, Any]) -> int:
        delivered = 0
        for cid in connection_ids:
            entry = self.registry.get(cid)
            if entry is None:
                continue
            if await self.send(entry.connection, message):
                delivered += 1
        return delivered

    async def to_room(
        self,
        room_id: str,
        message: Dict[str, Any],
        exclude_connection_id: Optional[str] = None,
    ) -> int:
        """Send to every connection in *room_id* except *exclude_connection_id*."""
        recipients = [
            cid for cid in self.registry.list_by_room(room_id) if cid != exclude_connection_id
        ]
        return await self._fan_out(recipients, message)

    async def to_lobby(self, message: Dict[str, Any]) -> int:
        """Send to every registered connection that is not in a room."""
        return await self._fan_out(self.registry.list_lobby(), message)


__all__ = ["BroadcastRouter"]
