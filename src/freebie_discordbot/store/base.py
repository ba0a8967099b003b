from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta


@dataclass(frozen=True, slots=True)
class NotifiedRecord:
    notified_at: datetime


@dataclass(slots=True)
class NotifiedState:
    notified_keys: dict[str, NotifiedRecord] = field(default_factory=dict)

    def __contains__(self, key: object) -> bool:
        return key in self.notified_keys

    def __len__(self) -> int:
        return len(self.notified_keys)

    def record(self, key: str, notified_at: datetime) -> bool:
        """Add a record unless the key is already known. Returns True when added."""
        if key in self.notified_keys:
            return False
        self.notified_keys[key] = NotifiedRecord(notified_at=notified_at)
        return True

    def pruned(self, *, max_age: timedelta, now: datetime) -> NotifiedState:
        cutoff = now - max_age
        return NotifiedState(
            notified_keys={
                key: record
                for key, record in self.notified_keys.items()
                if record.notified_at >= cutoff
            }
        )


class StateStore(ABC):
    @abstractmethod
    def load(self) -> NotifiedState:
        """Return the persisted state, or an empty state when it cannot be read."""

    @abstractmethod
    def save(self, state: NotifiedState) -> bool:
        """Persist the state. Returns False when the write failed."""
