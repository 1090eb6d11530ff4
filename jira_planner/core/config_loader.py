"""Load connections, team members and sync settings from a YAML file."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml

from .config import (
    DEFAULT_DAYS_PER_ITEM,
    DEFAULT_ENABLED_TYPES,
    HIERARCHY_MODES,
    ITEM_TYPES,
    STATUS_FILTERS,
    SprintCalendarSettings,
    SyncSettings,
)
from .models import Connection, Sprint, TeamMember


class ConfigError(ValueError):
    """Invalid or incomplete configuration file."""


@dataclass(slots=True)
class AppConfig:
    settings: SyncSettings = field(default_factory=SyncSettings)
    sprint_calendar: SprintCalendarSettings = field(default_factory=SprintCalendarSettings)
    sprints: list[Sprint] = field(default_factory=list)
    team_members: list[TeamMember] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)
    state_path: str | None = None
    log_level: str = "INFO"


def _section(data: dict[str, Any], name: str, kind: type) -> Any:
    value = data.get(name)
    if value is None:
        return kind()
    if not isinstance(value, kind):
        raise ConfigError(f"'{name}' must be a {kind.__name__}")
    return value


def validate_base_url(url: str) -> str:
    parsed = urlparse((url or "").strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"Invalid Jira base URL: {url!r}")
    return url.strip().rstrip("/")


def _parse_settings(raw: dict[str, Any]) -> SyncSettings:
    settings = SyncSettings()
    if "story_points_to_days" in raw:
        try:
            settings.story_points_to_days = float(raw["story_points_to_days"])
        except (TypeError, ValueError) as exc:
            raise ConfigError("story_points_to_days must be a number") from exc
        if settings.story_points_to_days <= 0:
            raise ConfigError("story_points_to_days must be positive")
    settings.refresh_stale = bool(raw.get("refresh_stale", settings.refresh_stale))
    settings.import_team_members = bool(raw.get("import_team_members", settings.import_team_members))
    settings.sync_history_limit = int(raw.get("sync_history_limit", settings.sync_history_limit))
    settings.timezone = str(raw.get("timezone", settings.timezone))
    return settings


def _parse_calendar(raw: dict[str, Any]) -> SprintCalendarSettings:
    calendar = SprintCalendarSettings()
    try:
        calendar.duration_weeks = int(raw.get("duration_weeks", calendar.duration_weeks))
        calendar.sprints_per_year = int(raw.get("sprints_per_year", calendar.sprints_per_year))
        calendar.bye_weeks_after = tuple(int(n) for n in raw.get("bye_weeks_after", calendar.bye_weeks_after))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid sprint_calendar: {exc}") from exc
    if raw.get("start_date"):
        calendar.start_date = str(raw["start_date"])
    if calendar.duration_weeks < 1 or calendar.sprints_per_year < 1:
        raise ConfigError("sprint_calendar durations must be positive")
    return calendar


def _parse_connection(raw: dict[str, Any], index: int) -> Connection:
    where = f"connections[{index}]"
    for key in ("id", "base_url", "user_email", "project_key"):
        if not raw.get(key):
            raise ConfigError(f"{where}: '{key}' is required")

    token = raw.get("api_token")
    env_name = raw.get("api_token_env")
    if not token and env_name:
        token = os.environ.get(str(env_name))
        if not token:
            raise ConfigError(f"{where}: environment variable {env_name} is not set")
    if not token:
        raise ConfigError(f"{where}: 'api_token' or 'api_token_env' is required")

    enabled = list(raw.get("enabled_types") or DEFAULT_ENABLED_TYPES)
    unknown = [t for t in enabled if t not in ITEM_TYPES]
    if unknown:
        raise ConfigError(f"{where}: unknown item type(s) {unknown}")

    status_filters = dict(raw.get("status_filters") or {})
    for item_type, status_filter in status_filters.items():
        if item_type not in ITEM_TYPES or status_filter not in STATUS_FILTERS:
            raise ConfigError(f"{where}: invalid status filter {item_type}={status_filter}")

    mode = raw.get("hierarchy_mode") or "auto"
    if mode not in HIERARCHY_MODES:
        raise ConfigError(f"{where}: hierarchy_mode must be one of {', '.join(HIERARCHY_MODES)}")

    return Connection(
        id=str(raw["id"]),
        name=str(raw.get("name") or raw["project_key"]),
        base_url=validate_base_url(str(raw["base_url"])),
        user_email=str(raw["user_email"]),
        api_token=str(token),
        project_key=str(raw["project_key"]),
        project_name=raw.get("project_name"),
        is_active=bool(raw.get("is_active", True)),
        enabled_types=enabled,
        status_filters=status_filters,
        hierarchy_mode=mode,
        auto_create_projects=bool(raw.get("auto_create_projects", True)),
        auto_create_assignments=bool(raw.get("auto_create_assignments", True)),
        default_days_per_item=float(raw.get("default_days_per_item", DEFAULT_DAYS_PER_ITEM)),
        jql_filter=raw.get("jql_filter") or None,
    )


def _parse_member(raw: dict[str, Any], index: int) -> TeamMember:
    if not raw.get("id") or not raw.get("name"):
        raise ConfigError(f"team_members[{index}]: 'id' and 'name' are required")
    return TeamMember.from_dict(raw)


def parse_config(data: dict[str, Any]) -> AppConfig:
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")
    config = AppConfig(
        settings=_parse_settings(_section(data, "settings", dict)),
        sprint_calendar=_parse_calendar(_section(data, "sprint_calendar", dict)),
        state_path=data.get("state_path"),
        log_level=str(data.get("log_level") or "INFO").upper(),
    )
    try:
        config.sprints = [Sprint.from_dict(s) for s in _section(data, "sprints", list)]
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid sprints entry: {exc}") from exc
    config.team_members = [_parse_member(m, n) for n, m in enumerate(_section(data, "team_members", list))]
    config.connections = [_parse_connection(c, n) for n, c in enumerate(_section(data, "connections", list))]

    ids = [c.id for c in config.connections]
    if len(ids) != len(set(ids)):
        raise ConfigError("Connection ids must be unique")
    return config


def load_config(path: str | Path) -> AppConfig:
    yaml_path = Path(path)
    if not yaml_path.exists():
        raise ConfigError(f"Config file not found: {yaml_path}")
    try:
        data = yaml.safe_load(yaml_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {yaml_path}: {exc}") from exc
    return parse_config(data)
