from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class DeliveryError(RuntimeError):
    """Raised when a batch could not be delivered."""

    def __init__(self, message: str, *, delivered: int = 0) -> None:
        super().__init__(message)
        self.delivered = delivered


class Notifier(ABC):
    @abstractmethod
    def deliver(self, messages: list[dict[str, Any]]) -> int:
        """Send messages to a destination and return how many were delivered."""
