from __future__ import annotations

import json

import pytest

from company_os.core.notification_types import EntityType, NotificationType
from company_os.core.triggers import build_trigger_event, trigger_notification


class _FakeRedis:
    def __init__(self) -> None:
        self.keys: dict[str, str] = {}
        self.expiries: dict[str, int] = {}
        self.entries: list[tuple[str, dict[str, str]]] = []
        self.closed = 0

    async def set(self, key: str, value: str, nx: bool = False, ex: int | None = None) -> bool | None:
        if nx and key in self.keys:
            return None
        self.keys[key] = value
        if ex is not None:
            self.expiries[key] = ex
        return True

    async def xadd(self, stream: str, fields: dict[str, str]) -> str:
        self.entries.append((stream, fields))
        return f"{len(self.entries)}-0"

    async def aclose(self) -> None:
        self.closed += 1


def test_build_trigger_event_flattens_fields() -> None:
    fields = build_trigger_event(
        EntityType.TASK,
        "t-1",
        "assigned",
        NotificationType.TASK_ASSIGNED,
        actor_id="user_actor",
        recipients=["user_a", "user_b"],
        metadata={"priority": "high"},
    )

    assert all(isinstance(value, str) for value in fields.values())
    assert json.loads(fields["recipients"]) == ["user_a", "user_b"]
    assert json.loads(fields["metadata"]) == {"priority": "high"}
    assert fields["exclude_user_id"] == ""


@pytest.mark.asyncio
async def test_trigger_notification_drops_duplicates(monkeypatch: pytest.MonkeyPatch) -> None:
    from company_os.core import triggers

    client = _FakeRedis()
    monkeypatch.setattr(triggers.redis, "from_url", lambda *a, **k: client)

    first = await trigger_notification(
        EntityType.TASK,
        "t-1",
        "assigned",
        NotificationType.TASK_ASSIGNED,
        actor_id="user_actor",
        recipients=["user_a"],
    )
    second = await trigger_notification(
        EntityType.TASK,
        "t-1",
        "assigned",
        NotificationType.TASK_ASSIGNED,
        actor_id="user_actor",
        recipients=["user_a"],
    )
    other_action = await trigger_notification(
        EntityType.TASK,
        "t-1",
        "commented",
        NotificationType.TASK_COMMENTED,
        actor_id="user_actor",
        recipients=["user_a"],
    )

    assert (first, second, other_action) == (True, False, True)
    assert [stream for stream, _ in client.entries] == ["notification_events", "notification_events"]
    assert set(client.expiries.values()) == {triggers.settings.notification_trigger_dedupe_seconds}
    assert client.closed == 3
