"""Lobby / room coordinator.

Every membership change goes through :class:`LobbyCoordinator`. A connection
moves ``Disconnected -> LobbyPresent -> InRoom -> LobbyPresent ... ->
Disconnected``; the coordinator validates each request against that state,
updates the repository and the connection registry, and sends the resulting
replies and broadcasts before it handles the next event.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set, Tuple, Union

from . import protocol
from .broadcast import BroadcastRouter
from .errors import PreconditionError, TriviaServerError
from .registry import ClientConnection, ConnectionEntry, ConnectionRegistry
from .storage import JsonRepository

logger = logging.getLogger(__name__)


class LobbyCoordinator:
    def __init__(
        self,
        repository: JsonRepository,
        registry: Optional[ConnectionRegistry] = None,
        router: Optional[BroadcastRouter] = None,
    ):
        self.repository = repository
        self.registry = registry if registry is not None else ConnectionRegistry()
        self.router = router if router is not None else BroadcastRouter(self.registry)
        # Serializes all transitions; broadcasts finish before the next event starts
        self._lock = asyncio.Lock()
        # (room_id, user_id) rows a failed disconnect could not remove
        self._orphaned: Set[Tuple[str, str]] = set()

    # ------------------------------------------------------------------
    # Transport events
    # ------------------------------------------------------------------

    async def handle_message(self, connection: ClientConnection, raw: Union[str, bytes]) -> None:
        """Validate one inbound frame and run the matching transition.

        Client-caused failures become an ``error`` reply to *connection* only.
        """
        try:
            message = protocol.parse_client_message(raw)
        except TriviaServerError as exc:
            await self.router.send(connection, protocol.error(exc.message))
            return

        async with self._lock:
            await self._retire_orphans()
            try:
                await self._dispatch(connection, message)
            except TriviaServerError as exc:
                logger.info(
                    "Rejected %s from connection %s: %s",
                    message.type,
                    connection.connection_id,
                    exc.message,
                )
                await self.router.send(connection, protocol.error(exc.message))

    async def disconnect(self, connection: ClientConnection) -> None:
        """Clean up after a closed transport. Repeated calls are no-ops."""
        async with self._lock:
            await self._retire_orphans()
            entry = self.registry.remove(connection.connection_id)
            if entry is None:
                return
            logger.info("Connection %s (user %s) closed", entry.connection_id, entry.user_id)
            if entry.room_id is not None:
                try:
                    await self._leave(entry, entry.room_id)
                    await self.router.to_lobby(protocol.room_list_updated())
                except TriviaServerError:
                    logger.exception(
                        "Could not remove user %s from room %s on disconnect; will retry",
                        entry.user_id,
                        entry.room_id,
                    )
                    self._orphaned.add((entry.room_id, entry.user_id))

    async def _retire_orphans(self) -> None:
        """Retry removals that failed on disconnect. Stops at the first storage error."""
        for room_id, user_id in sorted(self._orphaned):
            if any(self.registry.get(cid).user_id == user_id for cid in self.registry.list_by_room(room_id)):
                # Still seated through another live connection
                self._orphaned.discard((room_id, user_id))
                continue
            try:
                await self.repository.remove_participant(room_id, user_id)
            except TriviaServerError as exc:
                logger.warning("Still cannot remove user %s from room %s: %s", user_id, room_id, exc.message)
                return
            self._orphaned.discard((room_id, user_id))
            logger.info("Removed stale membership of user %s in room %s", user_id, room_id)
            await self.router.to_room(room_id, protocol.player_left(user_id))
            await self.router.to_lobby(protocol.room_list_updated())

    async def _dispatch(self, connection: ClientConnection, message: protocol.InboundMessage) -> None:
        if isinstance(message, protocol.JoinLobby):
            await self.join_lobby(connection, message)
        elif isinstance(message, protocol.CreateRoom):
            await self.create_room(connection, message)
        elif isinstance(message, protocol.JoinRoom):
            await self.join_room(connection, message)
        elif isinstance(message, protocol.LeaveRoom):
            await self.leave_room(connection, message)
        elif isinstance(message, protocol.GetRooms):
            await self.get_rooms(connection)
        else:  # pragma: no cover - the adapter only yields the types above
            raise TypeError(f"Unhandled message {message!r}")

    # ------------------------------------------------------------------
    # Transitions (call with the lock held)
    # ------------------------------------------------------------------

    async def join_lobby(self, connection: ClientConnection, message: protocol.JoinLobby) -> None:
        authenticated = getattr(connection, "authenticated_user_id", None)
        if authenticated is not None and authenticated != message.user_id:
            raise PreconditionError("userId does not match the authenticated user")

        entry = self.registry.get(connection.connection_id)
        if entry is not None:
            if entry.user_id != message.user_id:
                raise PreconditionError("Connection is already registered to another user")
            if entry.room_id is not None:
                raise PreconditionError("Leave your current room first")
        else:
            self.registry.register(connection, message.user_id)
            logger.info("User %s joined the lobby on %s", message.user_id, connection.connection_id)

        await self.router.send(connection, protocol.lobby_joined(message.user_id))

    async def create_room(self, connection: ClientConnection, message: protocol.CreateRoom) -> None:
        entry = self._lobby_entry(connection, message.user_id)
        room = await self.repository.create_room(
            name=message.room_name,
            host_id=entry.user_id,
            max_players=message.max_players,
            config=message.config,
        )
        self.registry.set_room(entry.connection_id, room.id)
        logger.info("User %s created room %s (%r, max %d)", entry.user_id, room.id, room.name, room.max_players)

        await self.router.send(connection, protocol.room_created(room))
        await self.router.to_lobby(protocol.room_list_updated())

    async def join_room(self, connection: ClientConnection, message: protocol.JoinRoom) -> None:
        entry = self._lobby_entry(connection, message.user_id)
        await self.repository.add_participant(message.room_id, entry.user_id)
        self.registry.set_room(entry.connection_id, message.room_id)
        room = await self.repository.get_room(message.room_id)
        logger.info("User %s joined room %s", entry.user_id, message.room_id)

        if room is not None:
            await self.router.send(connection, protocol.room_joined(room))
        await self.router.to_room(
            message.room_id,
            protocol.player_joined(entry.user_id),
            exclude_connection_id=entry.connection_id,
        )
        await self.router.to_lobby(protocol.room_list_updated())

    async def leave_room(self, connection: ClientConnection, message: protocol.LeaveRoom) -> None:
        entry = self._registered_entry(connection, message.user_id)
        if entry.room_id is None:
            raise PreconditionError("Not in a room")
        await self._leave(entry, entry.room_id)
        await self.router.send(connection, protocol.room_left())
        await self.router.to_lobby(protocol.room_list_updated())

    async def get_rooms(self, connection: ClientConnection) -> None:
        rooms = await self.repository.list_waiting_rooms()
        await self.router.send(connection, protocol.rooms_list(rooms))

    async def _leave(self, entry: ConnectionEntry, room_id: str) -> None:
        """Retire membership and tell the remaining occupants. Shared with disconnect."""
        await self.repository.remove_participant(room_id, entry.user_id)
        self.registry.set_room(entry.connection_id, None)
        logger.info("User %s left room %s", entry.user_id, room_id)

        await self.router.to_room(
            room_id,
            protocol.player_left(entry.user_id),
            exclude_connection_id=entry.connection_id,
        )

    # ------------------------------------------------------------------
    # Precondition helpers
    # ------------------------------------------------------------------

    def _registered_entry(self, connection: ClientConnection, user_id: str) -> ConnectionEntry:
        entry = self.registry.get(connection.connection_id)
        if entry is None:
            raise PreconditionError("Join the lobby first")
        if entry.user_id != user_id:
            raise PreconditionError("userId does not match this connection")
        return entry

    def _lobby_entry(self, connection: ClientConnection, user_id: str) -> ConnectionEntry:
        entry = self._registered_entry(connection, user_id)
        if entry.room_id is not None:
            raise PreconditionError("Already in a room")
        return entry


__all__ = ["LobbyCoordinator"]
