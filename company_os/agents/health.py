from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class AgentHealth:
    """Liveness, readiness and event counters reported by a background agent.

    ``ready`` flips on at the first successful loop and stays on; ``healthy``
    tracks the most recent loop only.
    """

    name: str
    healthy: bool = False
    ready: bool = False
    last_error: str | None = None
    last_success_at: datetime | None = None
    last_run_at: datetime | None = None
    started_at: datetime = field(default_factory=_now)
    metrics: Counter[str] = field(default_factory=Counter)

    def mark_run(self) -> None:
        self.last_run_at = _now()

    def mark_success(self) -> None:
        self.healthy = self.ready = True
        self.last_error = None
        self.last_success_at = _now()

    def mark_error(self, error: Exception) -> None:
        self.healthy = False
        self.last_error = str(error) or type(error).__name__

    def increment(self, metric: str, amount: int = 1) -> None:
        self.metrics[metric] += amount

    def payload(self) -> dict[str, object]:
        timestamps = {
            "started_at": self.started_at,
            "last_success_at": self.last_success_at,
            "last_run_at": self.last_run_at,
        }
        return {
            "name": self.name,
            "healthy": self.healthy,
            "ready": self.ready,
            "last_error": self.last_error,
            **{key: value.isoformat() if value else None for key, value in timestamps.items()},
            "metrics": dict(self.metrics),
        }
