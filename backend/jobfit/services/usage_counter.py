"""Local daily counter of successful job analyses.

The counter is scoped to a calendar date: any read or write on a new day
starts again from zero. Read-then-write is not locked.
"""

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


def today_iso() -> str:
    """Current UTC date as an ISO string (YYYY-MM-DD)."""
    return datetime.now(timezone.utc).date().isoformat()


@dataclass
class UsageCounter:
    """Count of analyses performed on ``date``."""

    date: str
    count: int = 0

    def for_day(self, today: str) -> "UsageCounter":
        if self.date != today:
            return UsageCounter(date=today, count=0)
        return self


class UsageCounterStore(Protocol):
    def get(self, today: str) -> UsageCounter: ...

    def increment(self, today: str) -> UsageCounter: ...

    def reset(self, today: str) -> UsageCounter: ...


class InMemoryUsageCounterStore:
    """Process-local counter."""

    def __init__(self, counter: UsageCounter | None = None):
        self._counter = counter or UsageCounter(date=today_iso())

    def get(self, today: str) -> UsageCounter:
        self._counter = self._counter.for_day(today)
        return self._counter

    def increment(self, today: str) -> UsageCounter:
        counter = self.get(today)
        self._counter = UsageCounter(date=today, count=counter.count + 1)
        return self._counter

    def reset(self, today: str) -> UsageCounter:
        self._counter = UsageCounter(date=today, count=0)
        return self._counter


class JsonFileUsageCounterStore:
    """Counter persisted as ``{"date": ..., "count": ...}`` in a local JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self, today: str) -> UsageCounter:
        if not self.path.exists():
            return UsageCounter(date=today)
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return UsageCounter(date=str(data["date"]), count=int(data["count"]))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"[USAGE] Unreadable usage counter at {self.path}, starting over: {e}")
            return UsageCounter(date=today)

    def _save(self, counter: UsageCounter) -> UsageCounter:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(asdict(counter)), encoding="utf-8")
        return counter

    def get(self, today: str) -> UsageCounter:
        counter = self._load(today)
        fresh = counter.for_day(today)
        if fresh is not counter:
            self._save(fresh)
        return fresh

    def increment(self, today: str) -> UsageCounter:
        counter = self._load(today).for_day(today)
        return self._save(UsageCounter(date=today, count=counter.count + 1))

    def reset(self, today: str) -> UsageCounter:
        return self._save(UsageCounter(date=today, count=0))
