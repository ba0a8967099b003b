"""Store implementations."""

from .base import NotifiedRecord, NotifiedState, StateStore
from .json_store import JsonStateStore

__all__ = ["JsonStateStore", "NotifiedRecord", "NotifiedState", "StateStore"]
