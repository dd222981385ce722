"""
quizmize.realtime.hub — Room Registry, Presence & Fan-out
==========================================================

Process-wide, in-memory.  A room is a group id; each room holds the open
websocket connections and which account each one belongs to.  Nothing here
is persisted: a restart empties every room.

Delivery is fire-and-forget.  A send that fails drops that connection and
is logged at DEBUG; the publisher never sees the failure.

Frames are JSON objects::

    {"event": "new-post", "data": {...}}
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)

# Event names
NEW_POST = "new-post"
NEW_COMMENT = "new-comment"
VOTE_UPDATE = "vote-update"
POST_DELETED = "post-deleted"
GROUP_XP_UPDATED = "group-xp-updated"
GROUP_LEVEL_UP = "group-level-up"
MEMBER_JOINED = "member-joined"
CHAT_MESSAGE = "chat-message"
USER_JOINED_CHAT = "user-joined-chat"
USER_LEFT_CHAT = "user-left-chat"
ONLINE_COUNT = "online-count"


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


class RealtimeHub:
    """Rooms of websocket connections keyed by group id."""

    def __init__(self) -> None:
        self._rooms: dict[str, dict[Connection, int]] = {}

    @staticmethod
    def _key(room: object) -> str:
        return str(room)

    # -----------------------------------------------------------------------
    # Membership of rooms
    # -----------------------------------------------------------------------
    def connect(self, room: object, connection: Connection, account_id: int) -> None:
        self._rooms.setdefault(self._key(room), {})[connection] = account_id
        logger.info("Realtime: account %s joined room %s", account_id, room)

    def disconnect(self, room: object, connection: Connection) -> int | None:
        """Forget *connection*; returns the account it belonged to."""
        key = self._key(room)
        members = self._rooms.get(key)
        if not members:
            return None
        account_id = members.pop(connection, None)
        if not members:
            del self._rooms[key]
        if account_id is not None:
            logger.info("Realtime: account %s left room %s", account_id, room)
        return account_id

    def online_count(self, room: object) -> int:
        """Distinct accounts currently connected to *room*."""
        return len(set(self._rooms.get(self._key(room), {}).values()))

    def connections(self, room: object) -> list[Connection]:
        return list(self._rooms.get(self._key(room), {}))

    # -----------------------------------------------------------------------
    # Fan-out
    # -----------------------------------------------------------------------
    async def publish(self, room: object, event: str, payload: dict) -> int:
        """Send *event* to every connection in *room*; returns deliveries."""
        frame = {"event": event, "data": payload}
        delivered = 0
        for connection in self.connections(room):
            try:
                await connection.send_json(frame)
                delivered += 1
            except Exception as exc:
                logger.debug("Realtime send to room %s failed (%s); dropping", room, exc)
                self.disconnect(room, connection)
        return delivered

    async def publish_online_count(self, room: object) -> None:
        await self.publish(room, ONLINE_COUNT, {
            "groupId": str(room),
            "count": self.online_count(room),
        })


_hub = RealtimeHub()


def get_hub() -> RealtimeHub:
    """The process-wide hub; a FastAPI dependency and test override point."""
    return _hub
