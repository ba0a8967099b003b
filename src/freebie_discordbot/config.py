from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

DEFAULT_INTERVAL_HOURS = 6.0
MIN_INTERVAL_HOURS = 1.0
MAX_RETENTION_DAYS = 36_500


class ConfigError(ValueError):
    """Raised when configuration is invalid."""


@dataclass(slots=True)
class SourceSettings:
    id: str
    type: str
    url: str | None = None
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class DiscordSettings:
    webhook_env_var: str = "DISCORD_WEBHOOK_URL"
    role_env_var: str = "NOTIFY_ROLE"
    timeout_seconds: int = 15


@dataclass(slots=True)
class ScheduleSettings:
    interval_env_var: str = "CHECK_INTERVAL_HOURS"
    interval_hours: float = DEFAULT_INTERVAL_HOURS


@dataclass(slots=True)
class StorageSettings:
    path: str = "notified.json"
    retention_days: int | None = None


def _default_sources() -> list[SourceSettings]:
    return [
        SourceSettings(id="epic", type="epic_free_games"),
        SourceSettings(id="steam", type="steam_specials"),
    ]


@dataclass(slots=True)
class AppConfig:
    sources: list[SourceSettings] = field(default_factory=_default_sources)
    discord: DiscordSettings = field(default_factory=DiscordSettings)
    schedule: ScheduleSettings = field(default_factory=ScheduleSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    log_level: str = "INFO"


@dataclass(slots=True)
class RuntimeSettings:
    webhook_url: str
    mention_role_id: str | None
    interval_hours: float


def _as_int(
    value: Any,
    *,
    field_name: str,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be an integer")

    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be an integer") from exc

    if minimum is not None and parsed < minimum:
        raise ConfigError(f"{field_name} must be >= {minimum}")
    if maximum is not None and parsed > maximum:
        raise ConfigError(f"{field_name} must be <= {maximum}")
    return parsed


def _as_float(value: Any, *, field_name: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be a number")

    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be a number") from exc


def _as_mapping(value: Any, *, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{field_name} must be a mapping")
    return value


def _env_var_name(raw: Mapping[str, Any], key: str, default: str) -> str:
    return str(raw.get(key, default)).strip() or default


def _parse_sources(raw_sources: Any) -> list[SourceSettings]:
    if raw_sources is None:
        return _default_sources()
    if not isinstance(raw_sources, list) or not raw_sources:
        raise ConfigError("sources must be a non-empty list")

    sources: list[SourceSettings] = []
    for index, source in enumerate(raw_sources, start=1):
        if not isinstance(source, dict):
            raise ConfigError(f"Source entry #{index} must be a mapping")

        source_id = str(source.get("id", "")).strip()
        source_type = str(source.get("type", "")).strip()
        if not source_id or not source_type:
            raise ConfigError(f"Source entry #{index} missing one of: id, type")

        source_url = str(source.get("url") or "").strip() or None
        options = {
            key: value
            for key, value in source.items()
            if key not in {"id", "type", "url"}
        }
        sources.append(
            SourceSettings(
                id=source_id,
                type=source_type,
                url=source_url,
                options=options,
            )
        )
    return sources


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load the YAML config file, falling back to defaults when it does not exist."""
    if path is None:
        return AppConfig()

    config_path = Path(path).expanduser()
    if not config_path.exists():
        return AppConfig()

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            parsed = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file is not valid YAML: {exc}") from exc

    if not isinstance(parsed, dict):
        raise ConfigError("Config root must be a mapping")

    sources = _parse_sources(parsed.get("sources"))

    raw_discord = _as_mapping(parsed.get("discord"), field_name="discord")
    discord_settings = DiscordSettings(
        webhook_env_var=_env_var_name(raw_discord, "webhook_env_var", "DISCORD_WEBHOOK_URL"),
        role_env_var=_env_var_name(raw_discord, "role_env_var", "NOTIFY_ROLE"),
        timeout_seconds=_as_int(
            raw_discord.get("timeout_seconds", 15),
            field_name="discord.timeout_seconds",
            minimum=1,
        ),
    )

    raw_schedule = _as_mapping(parsed.get("schedule"), field_name="schedule")
    schedule_settings = ScheduleSettings(
        interval_env_var=_env_var_name(raw_schedule, "interval_env_var", "CHECK_INTERVAL_HOURS"),
        interval_hours=_as_float(
            raw_schedule.get("interval_hours", DEFAULT_INTERVAL_HOURS),
            field_name="schedule.interval_hours",
        ),
    )

    raw_storage = _as_mapping(parsed.get("storage"), field_name="storage")
    retention_raw = raw_storage.get("retention_days")
    storage_settings = StorageSettings(
        path=str(raw_storage.get("path", "notified.json")).strip() or "notified.json",
        retention_days=(
            _as_int(
                retention_raw,
                field_name="storage.retention_days",
                minimum=1,
                maximum=MAX_RETENTION_DAYS,
            )
            if retention_raw is not None
            else None
        ),
    )

    return AppConfig(
        sources=sources,
        discord=discord_settings,
        schedule=schedule_settings,
        storage=storage_settings,
        log_level=str(parsed.get("log_level", "INFO")).upper(),
    )


def parse_interval_hours(raw: str | None, default: float = DEFAULT_INTERVAL_HOURS) -> float:
    value = default
    if raw is not None and raw.strip():
        try:
            value = float(raw)
        except ValueError:
            value = default
    if not math.isfinite(value):
        value = default
    return max(MIN_INTERVAL_HOURS, value)


def resolve_runtime_settings(
    app_config: AppConfig,
    environ: Mapping[str, str] | None = None,
) -> RuntimeSettings:
    env = os.environ if environ is None else environ

    webhook_url = env.get(app_config.discord.webhook_env_var, "").strip()
    if not webhook_url:
        raise ConfigError(
            f"{app_config.discord.webhook_env_var} is not set. Create a .env file with "
            f"{app_config.discord.webhook_env_var}=your_webhook_url"
        )

    mention_role_id = env.get(app_config.discord.role_env_var, "").strip() or None
    interval_hours = parse_interval_hours(
        env.get(app_config.schedule.interval_env_var),
        default=app_config.schedule.interval_hours,
    )

    return RuntimeSettings(
        webhook_url=webhook_url,
        mention_role_id=mention_role_id,
        interval_hours=interval_hours,
    )
