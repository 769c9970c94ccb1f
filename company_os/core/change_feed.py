"""Per-user change signals for the notifications table.

Mutations publish a small JSON message on a Redis pub/sub channel owned by
the affected user. Signals may be duplicated or lost; consumers re-fetch the
unread count from the store instead of applying payload deltas.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

import redis.asyncio as redis
from redis.exceptions import RedisError

from company_os.core.config import settings

logger = logging.getLogger(__name__)

ChangeEvent = Literal["INSERT", "UPDATE", "DELETE"]
ChangeCallback = Callable[["NotificationChange"], Awaitable[None] | None]


@dataclass(slots=True)
class NotificationChange:
    event: ChangeEvent
    user_id: str
    notification_id: str | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_json(self) -> str:
        return json.dumps(
            {
                "event": self.event,
                "user_id": self.user_id,
                "notification_id": self.notification_id,
                "occurred_at": self.occurred_at.isoformat(),
            }
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> NotificationChange:
        data = json.loads(raw)
        return cls(
            event=data["event"],
            user_id=data["user_id"],
            notification_id=data.get("notification_id"),
            occurred_at=datetime.fromisoformat(data["occurred_at"]),
        )


def channel_for(user_id: str) -> str:
    return f"{settings.notification_change_channel_prefix}:{user_id}"


class ChangeSubscription:
    def __init__(self, task: asyncio.Task[None]) -> None:
        self._task = task

    @property
    def active(self) -> bool:
        return not self._task.done()

    async def close(self) -> None:
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task


class ChangeFeed:
    def __init__(self, redis_url: str | None = None) -> None:
        self._redis_url = redis_url or settings.redis_url

    def _client(self) -> redis.Redis:
        return redis.from_url(self._redis_url, decode_responses=True)

    async def publish(self, change: NotificationChange) -> None:
        client = self._client()
        try:
            await client.publish(channel_for(change.user_id), change.to_json())
        except RedisError:
            # The row is already committed; periodic refresh on the consumer side picks it up.
            logger.warning(
                "Failed to publish notification change event=%s user_id=%s",
                change.event,
                change.user_id,
                exc_info=True,
            )
        finally:
            await client.aclose()

    async def listen(self, user_id: str) -> AsyncIterator[NotificationChange]:
        channel = channel_for(user_id)
        client = self._client()
        pubsub = client.pubsub()
        try:
            await pubsub.subscribe(channel)
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    yield NotificationChange.from_json(message["data"])
                except (KeyError, TypeError, ValueError):
                    logger.warning("Malformed change payload on channel=%s", channel)
                    yield NotificationChange(event="UPDATE", user_id=user_id)
        finally:
            try:
                await pubsub.unsubscribe(channel)
                await pubsub.aclose()
            except RedisError:
                logger.debug("Could not unsubscribe channel=%s", channel, exc_info=True)
            await client.aclose()

    def subscribe(self, user_id: str, callback: ChangeCallback) -> ChangeSubscription:
        async def _consume() -> None:
            async for change in self.listen(user_id):
                result = callback(change)
                if inspect.isawaitable(result):
                    await result

        return ChangeSubscription(asyncio.create_task(_consume()))


class UnreadCountWatcher:
    """Keep an unread count live from a stream of change signals.

    Every signal restarts the debounce timer; when it fires the count is
    fetched from the store and handed to ``on_count``. A periodic refresh
    runs alongside so that dropped signals are eventually reconciled.
    """

    def __init__(
        self,
        fetch_count: Callable[[], Awaitable[int]],
        on_count: Callable[[int], Awaitable[None]],
        *,
        debounce_seconds: float | None = None,
        refresh_seconds: float | None = None,
    ) -> None:
        self._fetch_count = fetch_count
        self._on_count = on_count
        self.debounce_seconds = (
            settings.notification_count_debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self.refresh_seconds = (
            settings.notification_count_refresh_seconds if refresh_seconds is None else refresh_seconds
        )
        self._pending: asyncio.Task[None] | None = None
        self._periodic: asyncio.Task[None] | None = None

    async def refresh(self) -> int:
        try:
            count = await self._fetch_count()
        except Exception:
            logger.exception("Failed to refresh unread notification count")
            count = 0
        await self._on_count(count)
        return count

    def signal(self, _change: NotificationChange | None = None) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.create_task(self._debounced_refresh())

    async def _refresh_logged(self) -> None:
        try:
            await self.refresh()
        except Exception:
            logger.warning("Failed to deliver unread notification count", exc_info=True)

    async def _debounced_refresh(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        await self._refresh_logged()

    async def _refresh_periodically(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_seconds)
            await self._refresh_logged()

    async def run(self, changes: AsyncIterator[NotificationChange]) -> None:
        await self.refresh()
        self._periodic = asyncio.create_task(self._refresh_periodically())
        try:
            try:
                async for change in changes:
                    self.signal(change)
            except RedisError:
                # Signals are gone until the caller reconnects; keep reconciling on the timer.
                logger.warning("Change feed failed, falling back to periodic refresh", exc_info=True)
                await self._periodic
        finally:
            await self.close()

    async def close(self) -> None:
        for task in (self._pending, self._periodic):
            if task is None or task.done():
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._pending = None
        self._periodic = None


change_feed = ChangeFeed()
