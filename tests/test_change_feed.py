from __future__ import annotations

import asyncio
import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from company_os.core.change_feed import ChangeFeed, NotificationChange, UnreadCountWatcher, channel_for
from company_os.core.errors import StoreFailureError


class _FakePubSub:
    def __init__(self, messages: list[dict]) -> None:
        self.messages = messages
        self.subscribed: list[str] = []
        self.unsubscribed: list[str] = []
        self.closed = False

    async def subscribe(self, channel: str) -> None:
        self.subscribed.append(channel)

    async def unsubscribe(self, channel: str) -> None:
        self.unsubscribed.append(channel)

    async def listen(self):
        for message in self.messages:
            yield message

    async def aclose(self) -> None:
        self.closed = True


class _FakeRedis:
    def __init__(self, pubsub: _FakePubSub | None = None, fail: bool = False) -> None:
        self._pubsub = pubsub
        self.fail = fail
        self.published: list[tuple[str, str]] = []
        self.closed = False

    async def publish(self, channel: str, payload: str) -> int:
        if self.fail:
            raise RedisConnectionError("redis down")
        self.published.append((channel, payload))
        return 1

    def pubsub(self) -> _FakePubSub:
        assert self._pubsub is not None
        return self._pubsub

    async def aclose(self) -> None:
        self.closed = True


def test_change_round_trips_through_json() -> None:
    change = NotificationChange(event="DELETE", user_id="user_a", notification_id="n-1")
    restored = NotificationChange.from_json(change.to_json())

    assert restored == change
    assert channel_for("user_a") == "notifications:changes:user_a"


@pytest.mark.asyncio
async def test_publish_targets_user_channel(monkeypatch: pytest.MonkeyPatch) -> None:
    client = _FakeRedis()
    feed = ChangeFeed("redis://test")
    monkeypatch.setattr(feed, "_client", lambda: client)

    await feed.publish(NotificationChange(event="INSERT", user_id="user_a", notification_id="n-1"))

    channel, payload = client.published[0]
    assert channel == "notifications:changes:user_a"
    assert json.loads(payload)["event"] == "INSERT"
    assert client.closed is True


@pytest.mark.asyncio
async def test_publish_swallows_redis_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    client = _FakeRedis(fail=True)
    feed = ChangeFeed("redis://test")
    monkeypatch.setattr(feed, "_client", lambda: client)

    await feed.publish(NotificationChange(event="UPDATE", user_id="user_a"))

    assert client.published == []
    assert client.closed is True


@pytest.mark.asyncio
async def test_listen_yields_changes_and_cleans_up(monkeypatch: pytest.MonkeyPatch) -> None:
    change = NotificationChange(event="INSERT", user_id="user_a", notification_id="n-1")
    pubsub = _FakePubSub(
        [
            {"type": "subscribe", "data": 1},
            {"type": "message", "data": change.to_json()},
            {"type": "message", "data": "{not json"},
        ]
    )
    client = _FakeRedis(pubsub)
    feed = ChangeFeed("redis://test")
    monkeypatch.setattr(feed, "_client", lambda: client)

    received = [item async for item in feed.listen("user_a")]

    assert [item.event for item in received] == ["INSERT", "UPDATE"]
    assert received[0].notification_id == "n-1"
    assert received[1].user_id == "user_a"
    assert pubsub.subscribed == pubsub.unsubscribed == ["notifications:changes:user_a"]
    assert pubsub.closed is True
    assert client.closed is True


@pytest.mark.asyncio
async def test_subscribe_invokes_callback_until_closed(monkeypatch: pytest.MonkeyPatch) -> None:
    feed = ChangeFeed("redis://test")
    seen: list[str] = []
    release = asyncio.Event()

    async def _listen(user_id: str):
        yield NotificationChange(event="INSERT", user_id=user_id)
        await release.wait()

    monkeypatch.setattr(feed, "listen", _listen)

    subscription = feed.subscribe("user_a", lambda change: seen.append(change.event))
    await asyncio.sleep(0.01)

    assert seen == ["INSERT"]
    assert subscription.active is True
    await subscription.close()
    assert subscription.active is False


@pytest.mark.asyncio
async def test_watcher_coalesces_burst_into_one_fetch() -> None:
    fetches = {"count": 0}
    counts: list[int] = []

    async def _fetch() -> int:
        fetches["count"] += 1
        return 7

    async def _on_count(count: int) -> None:
        counts.append(count)

    watcher = UnreadCountWatcher(_fetch, _on_count, debounce_seconds=0.05, refresh_seconds=60)
    for _ in range(5):
        watcher.signal()
        await asyncio.sleep(0.005)
    await asyncio.sleep(0.15)
    await watcher.close()

    assert fetches["count"] == 1
    assert counts == [7]


@pytest.mark.asyncio
async def test_watcher_run_refreshes_on_start_and_after_changes() -> None:
    counts: list[int] = []
    values = iter([3, 2])

    async def _fetch() -> int:
        return next(values)

    async def _on_count(count: int) -> None:
        counts.append(count)

    async def _changes():
        yield NotificationChange(event="UPDATE", user_id="user_a")
        yield NotificationChange(event="UPDATE", user_id="user_a")
        await asyncio.sleep(0.1)

    watcher = UnreadCountWatcher(_fetch, _on_count, debounce_seconds=0.01, refresh_seconds=60)
    await watcher.run(_changes())

    assert counts == [3, 2]


@pytest.mark.asyncio
async def test_watcher_reports_zero_when_store_fails() -> None:
    counts: list[int] = []

    async def _fetch() -> int:
        raise StoreFailureError("Failed to get unread count")

    async def _on_count(count: int) -> None:
        counts.append(count)

    watcher = UnreadCountWatcher(_fetch, _on_count, debounce_seconds=0, refresh_seconds=60)
    assert await watcher.refresh() == 0
    assert counts == [0]


@pytest.mark.asyncio
async def test_watcher_keeps_refreshing_after_feed_failure() -> None:
    counts: list[int] = []

    async def _fetch() -> int:
        return 4

    async def _on_count(count: int) -> None:
        counts.append(count)

    async def _changes():
        raise RedisConnectionError("redis down")
        yield  # pragma: no cover

    watcher = UnreadCountWatcher(_fetch, _on_count, debounce_seconds=0, refresh_seconds=0.02)
    task = asyncio.create_task(watcher.run(_changes()))
    await asyncio.sleep(0.15)

    assert task.done() is False
    assert len(counts) >= 3
    assert set(counts) == {4}

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert watcher._periodic is None


@pytest.mark.asyncio
async def test_watcher_recovers_after_transient_fetch_error() -> None:
    counts: list[int] = []
    calls = {"count": 0}

    async def _fetch() -> int:
        calls["count"] += 1
        if calls["count"] == 2:
            raise ConnectionRefusedError(111, "Connect call failed")
        return calls["count"]

    async def _on_count(count: int) -> None:
        counts.append(count)

    async def _changes():
        await asyncio.sleep(0.15)
        yield NotificationChange(event="UPDATE", user_id="user_a")

    watcher = UnreadCountWatcher(_fetch, _on_count, debounce_seconds=60, refresh_seconds=0.02)
    task = asyncio.create_task(watcher.run(_changes()))
    await asyncio.sleep(0.1)

    assert watcher._periodic is not None
    assert watcher._periodic.done() is False
    assert counts[:3] == [1, 0, 3]

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_debounced_refresh_logs_delivery_failure() -> None:
    async def _fetch() -> int:
        return 2

    async def _on_count(_count: int) -> None:
        raise RuntimeError("socket closed")

    watcher = UnreadCountWatcher(_fetch, _on_count, debounce_seconds=0.01, refresh_seconds=60)
    watcher.signal()
    await asyncio.sleep(0.05)

    pending = watcher._pending
    assert pending is not None
    assert pending.done() is True
    assert pending.exception() is None
    await watcher.close()


@pytest.mark.asyncio
async def test_listen_closes_client_when_subscribe_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    class _DownPubSub(_FakePubSub):
        async def subscribe(self, channel: str) -> None:
            raise RedisConnectionError("redis down")

        async def unsubscribe(self, channel: str) -> None:
            raise RedisConnectionError("redis down")

    client = _FakeRedis(_DownPubSub([]))
    feed = ChangeFeed("redis://test")
    monkeypatch.setattr(feed, "_client", lambda: client)

    with pytest.raises(RedisConnectionError):
        async for _ in feed.listen("user_a"):
            pass

    assert client.closed is True
