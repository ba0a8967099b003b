from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from freebie_discordbot.utils.datetime_utils import format_iso, parse_datetime_utc, utc_now

from .base import NotifiedRecord, NotifiedState, StateStore

logger = logging.getLogger(__name__)


class JsonStateStore(StateStore):
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> NotifiedState:
        if not self.path.exists():
            return NotifiedState()

        try:
            with self.path.open("r", encoding="utf-8") as handle:
                parsed = json.load(handle)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return NotifiedState()

        return state_from_json(parsed, source=str(self.path))

    def save(self, state: NotifiedState) -> bool:
        payload = state_to_json(state)
        directory = self.path.parent
        tmp_name: str | None = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=directory,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                json.dump(payload, handle, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            logger.error("Failed to persist state to %s: %s", self.path, exc)
            if tmp_name is not None:
                _remove_quietly(tmp_name)
            return False
        return True


def state_to_json(state: NotifiedState) -> dict[str, Any]:
    return {
        "notified_keys": {
            key: {"notified_at": format_iso(record.notified_at)}
            for key, record in state.notified_keys.items()
        }
    }


def state_from_json(parsed: Any, *, source: str = "state") -> NotifiedState:
    if not isinstance(parsed, dict) or not isinstance(parsed.get("notified_keys"), dict):
        logger.warning("State in %s has no notified_keys mapping; starting empty", source)
        return NotifiedState()

    loaded_at = utc_now()
    state = NotifiedState()
    for key, raw_record in parsed["notified_keys"].items():
        if not raw_record:
            continue
        raw_notified_at = raw_record.get("notified_at") if isinstance(raw_record, dict) else None
        notified_at = parse_datetime_utc(raw_notified_at) or loaded_at
        state.notified_keys[str(key)] = NotifiedRecord(notified_at=notified_at)
    return state


def _remove_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except OSError:
        logger.debug("Could not remove temporary state file %s", path, exc_info=True)
