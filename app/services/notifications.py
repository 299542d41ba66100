# app/services/notifications.py
"""
Real-time notification fan-out.

Pieces:
  - ConnectionRegistry: user id -> live connection (one per user; a new
    session for the same user replaces the old mapping).
  - NotificationOutbox: per-request list of deliveries collected by the
    services while they mutate orders.
  - NotificationDispatcher: drains an outbox after the response has been
    sent (FastAPI BackgroundTasks). Delivery is best effort: a missing or
    broken connection drops the notification and is only logged.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Literal, Protocol

from fastapi.concurrency import run_in_threadpool

from app.schemas.notification import Notification

logger = logging.getLogger(__name__)


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


class ConnectionRegistry:
    """
    Process-wide mapping of user id -> active connection handle.

    Only touched from the event loop (WebSocket handlers and background
    tasks), so no locking is needed.
    """

    def __init__(self) -> None:
        self._connections: dict[uuid.UUID, Connection] = {}

    def register(self, user_id: uuid.UUID, connection: Connection) -> None:
        """
        Bind `connection` to `user_id`.

        A connection serves a single user: registering it under a new id
        drops its previous binding.
        """
        for uid in self.unregister(connection):
            if uid != user_id:
                logger.info("Connection re-registered from user %s to %s", uid, user_id)
        previous = self._connections.get(user_id)
        if previous is not None and previous is not connection:
            logger.info("User %s reconnected; replacing previous session", user_id)
        self._connections[user_id] = connection

    def lookup(self, user_id: uuid.UUID) -> Connection | None:
        return self._connections.get(user_id)

    def unregister(self, connection: Connection) -> list[uuid.UUID]:
        """
        Remove every mapping that points at this exact handle.

        A user who already reconnected under a new session keeps the new
        mapping. Returns the user ids that were removed.
        """
        removed = [uid for uid, conn in self._connections.items() if conn is connection]
        for uid in removed:
            del self._connections[uid]
        return removed

    @property
    def active_count(self) -> int:
        return len(self._connections)

    async def close_all(self) -> None:
        """Close and forget all connections (application shutdown)."""
        connections = list(self._connections.values())
        self._connections.clear()
        for conn in connections:
            close = getattr(conn, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception:
                logger.debug("Ignoring error while closing connection", exc_info=True)


TargetKind = Literal["user", "role", "users"]


@dataclass
class OutboxEntry:
    kind: TargetKind
    target: Any
    notification: Notification


@dataclass
class NotificationOutbox:
    """
    Notifications produced by one request.

    Services only append here; nothing is sent until the dispatcher
    drains the outbox, which happens after the transaction committed.
    """

    entries: list[OutboxEntry] = field(default_factory=list)

    def to_user(self, user_id: uuid.UUID, notification: Notification) -> None:
        self.entries.append(OutboxEntry("user", user_id, notification))

    def to_role(self, role: str, notification: Notification) -> None:
        self.entries.append(OutboxEntry("role", role, notification))

    def to_users(self, user_ids: Iterable[uuid.UUID], notification: Notification) -> None:
        self.entries.append(OutboxEntry("users", list(user_ids), notification))

    def clear(self) -> None:
        self.entries.clear()

    def __len__(self) -> int:
        return len(self.entries)


RoleLookup = Callable[[str], list[uuid.UUID]]


class NotificationDispatcher:
    """
    Pushes notifications to connected sessions.

    `role_lookup` resolves a role to user ids; it is synchronous (DB
    access) and therefore run in the threadpool.
    """

    def __init__(self, registry: ConnectionRegistry, role_lookup: RoleLookup):
        self.registry = registry
        self.role_lookup = role_lookup

    async def notify_user(self, user_id: uuid.UUID, notification: Notification) -> bool:
        """
        Deliver to one user. Returns False if they are not connected or
        the send failed; never raises.
        """
        connection = self.registry.lookup(user_id)
        if connection is None:
            logger.debug("User %s not connected; dropping '%s'", user_id, notification.title)
            return False

        payload = {"type": "notification", "data": notification.model_dump(mode="json")}
        try:
            await connection.send_json(payload)
        except Exception:
            logger.warning("Failed to deliver notification to %s", user_id, exc_info=True)
            self.registry.unregister(connection)
            return False
        return True

    async def notify_multiple(
        self,
        user_ids: Iterable[uuid.UUID],
        notification: Notification,
    ) -> int:
        """Deliver to each id independently; returns how many got it."""
        delivered = 0
        for user_id in user_ids:
            if await self.notify_user(user_id, notification):
                delivered += 1
        return delivered

    async def notify_role(self, role: str, notification: Notification) -> int:
        user_ids = await run_in_threadpool(self.role_lookup, role)
        return await self.notify_multiple(user_ids, notification)

    async def deliver(self, outbox: NotificationOutbox) -> None:
        """
        Drain `outbox`. Each entry is independent: a failure is logged
        and the remaining entries are still attempted.
        """
        entries = list(outbox.entries)
        outbox.clear()
        for entry in entries:
            try:
                if entry.kind == "user":
                    await self.notify_user(entry.target, entry.notification)
                elif entry.kind == "role":
                    await self.notify_role(entry.target, entry.notification)
                else:
                    await self.notify_multiple(entry.target, entry.notification)
            except Exception:
                logger.exception(
                    "Notification fan-out failed (%s -> %s)", entry.kind, entry.target
                )
