"""Domain data models for synced Jira work items and local planning entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .config import (
    DEFAULT_DAYS_PER_ITEM,
    DEFAULT_ENABLED_TYPES,
    DEFAULT_PROJECT_PRIORITY,
    DEFAULT_PROJECT_STATUS,
)

# WorkItem attributes owned by local logic; the mapper never sets them
LOCAL_ONLY_FIELDS: tuple[str, ...] = (
    "mapped_project_id",
    "mapped_phase_id",
    "mapped_member_id",
    "stale_from_jira",
)


def _parse_iso(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(slots=True)
class SyncHistoryEntry:
    timestamp: str
    status: str
    items_synced: int = 0
    items_created: int = 0
    items_updated: int = 0
    items_removed: int = 0
    mappings_preserved: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "status": self.status,
            "items_synced": self.items_synced,
            "items_created": self.items_created,
            "items_updated": self.items_updated,
            "items_removed": self.items_removed,
            "mappings_preserved": self.mappings_preserved,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncHistoryEntry:
        return cls(
            timestamp=data.get("timestamp", ""),
            status=data.get("status", "success"),
            items_synced=int(data.get("items_synced") or 0),
            items_created=int(data.get("items_created") or 0),
            items_updated=int(data.get("items_updated") or 0),
            items_removed=int(data.get("items_removed") or 0),
            mappings_preserved=int(data.get("mappings_preserved") or 0),
            error=data.get("error"),
        )


@dataclass(slots=True)
class Connection:
    """One Jira project the planner syncs from, plus its import behaviour."""

    id: str
    name: str
    base_url: str
    user_email: str
    api_token: str
    project_key: str
    project_name: str | None = None
    is_active: bool = True
    enabled_types: list[str] = field(default_factory=lambda: list(DEFAULT_ENABLED_TYPES))
    status_filters: dict[str, str] = field(default_factory=dict)
    hierarchy_mode: str = "auto"
    auto_create_projects: bool = True
    auto_create_assignments: bool = True
    default_days_per_item: float = DEFAULT_DAYS_PER_ITEM
    jql_filter: str | None = None
    story_points_field: str | None = None
    # Sync state (written by the sync flow only)
    last_sync_at: str | None = None
    last_sync_status: str = "idle"
    last_sync_error: str | None = None
    sync_history: list[SyncHistoryEntry] = field(default_factory=list)

    def status_filter_for(self, item_type: str) -> str:
        return self.status_filters.get(item_type, "all")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "base_url": self.base_url,
            "user_email": self.user_email,
            "api_token": self.api_token,
            "project_key": self.project_key,
            "project_name": self.project_name,
            "is_active": self.is_active,
            "enabled_types": list(self.enabled_types),
            "status_filters": dict(self.status_filters),
            "hierarchy_mode": self.hierarchy_mode,
            "auto_create_projects": self.auto_create_projects,
            "auto_create_assignments": self.auto_create_assignments,
            "default_days_per_item": self.default_days_per_item,
            "jql_filter": self.jql_filter,
            "story_points_field": self.story_points_field,
            "last_sync_at": self.last_sync_at,
            "last_sync_status": self.last_sync_status,
            "last_sync_error": self.last_sync_error,
            "sync_history": [h.to_dict() for h in self.sync_history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Connection:
        return cls(
            id=str(data["id"]),
            name=data.get("name") or str(data["id"]),
            base_url=data.get("base_url", ""),
            user_email=data.get("user_email", ""),
            api_token=data.get("api_token", ""),
            project_key=data.get("project_key", ""),
            project_name=data.get("project_name"),
            is_active=bool(data.get("is_active", True)),
            enabled_types=list(data.get("enabled_types") or DEFAULT_ENABLED_TYPES),
            status_filters=dict(data.get("status_filters") or {}),
            hierarchy_mode=data.get("hierarchy_mode") or "auto",
            auto_create_projects=bool(data.get("auto_create_projects", True)),
            auto_create_assignments=bool(data.get("auto_create_assignments", True)),
            default_days_per_item=float(data.get("default_days_per_item", DEFAULT_DAYS_PER_ITEM)),
            jql_filter=data.get("jql_filter"),
            story_points_field=data.get("story_points_field"),
            last_sync_at=data.get("last_sync_at"),
            last_sync_status=data.get("last_sync_status") or "idle",
            last_sync_error=data.get("last_sync_error"),
            sync_history=[SyncHistoryEntry.from_dict(h) for h in data.get("sync_history") or []],
        )


@dataclass(slots=True)
class WorkItem:
    jira_key: str
    jira_id: str
    connection_id: str
    summary: str
    type: str
    type_name: str
    status: str
    status_category: str
    id: str | None = None
    description: str | None = None
    priority: str | None = None
    story_points: float | None = None
    original_estimate: float | None = None
    time_spent: float | None = None
    remaining_estimate: float | None = None
    assignee_email: str | None = None
    assignee_account_id: str | None = None
    assignee_name: str | None = None
    reporter_email: str | None = None
    reporter_name: str | None = None
    parent_key: str | None = None
    parent_id: str | None = None
    sprint_id: str | None = None
    sprint_name: str | None = None
    sprint_start_date: str | None = None
    sprint_end_date: str | None = None
    labels: list[str] = field(default_factory=list)
    components: list[str] = field(default_factory=list)
    created: datetime | None = None
    updated: datetime | None = None
    start_date: str | None = None
    due_date: str | None = None

    # Local-only (populated by merge / projector, never by the mapper)
    mapped_project_id: str | None = None
    mapped_phase_id: str | None = None
    mapped_member_id: str | None = None
    stale_from_jira: bool = False

    @property
    def has_mapping(self) -> bool:
        return bool(self.mapped_project_id or self.mapped_phase_id or self.mapped_member_id)

    @property
    def assignee_identity(self) -> str | None:
        return self.assignee_email or self.assignee_account_id

    def to_dict(self) -> dict[str, Any]:
        data = {name: getattr(self, name) for name in self.__slots__}
        data["created"] = _iso(self.created)
        data["updated"] = _iso(self.updated)
        data["labels"] = list(self.labels)
        data["components"] = list(self.components)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkItem:
        known = {name: data[name] for name in cls.__slots__ if name in data}
        known["created"] = _parse_iso(known.get("created"))
        known["updated"] = _parse_iso(known.get("updated"))
        known["labels"] = list(known.get("labels") or [])
        known["components"] = list(known.get("components") or [])
        known["stale_from_jira"] = bool(known.get("stale_from_jira", False))
        return cls(**known)


@dataclass(slots=True)
class Assignment:
    member_id: str
    quarter: str
    days: float
    # True = system-maintained; False/None = user-authored
    jira_synced: bool | None = None
    sprint: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "member_id": self.member_id,
            "quarter": self.quarter,
            "days": self.days,
            "jira_synced": self.jira_synced,
            "sprint": self.sprint,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Assignment:
        return cls(
            member_id=str(data["member_id"]),
            quarter=data["quarter"],
            days=float(data.get("days") or 0),
            jira_synced=data.get("jira_synced"),
            sprint=data.get("sprint"),
        )


@dataclass(slots=True)
class Phase:
    id: str
    name: str
    start_quarter: str
    end_quarter: str
    assignments: list[Assignment] = field(default_factory=list)
    required_skill_ids: list[str] = field(default_factory=list)
    predecessor_phase_id: str | None = None
    jira_source_key: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "start_quarter": self.start_quarter,
            "end_quarter": self.end_quarter,
            "assignments": [a.to_dict() for a in self.assignments],
            "required_skill_ids": list(self.required_skill_ids),
            "predecessor_phase_id": self.predecessor_phase_id,
            "jira_source_key": self.jira_source_key,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Phase:
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            start_quarter=data.get("start_quarter", ""),
            end_quarter=data.get("end_quarter", ""),
            assignments=[Assignment.from_dict(a) for a in data.get("assignments") or []],
            required_skill_ids=list(data.get("required_skill_ids") or []),
            predecessor_phase_id=data.get("predecessor_phase_id"),
            jira_source_key=data.get("jira_source_key"),
        )


@dataclass(slots=True)
class Project:
    id: str
    name: str
    priority: str = DEFAULT_PROJECT_PRIORITY
    status: str = DEFAULT_PROJECT_STATUS
    phases: list[Phase] = field(default_factory=list)
    system_ids: list[str] = field(default_factory=list)
    description: str | None = None
    jira_source_key: str | None = None
    synced_from_jira: bool = False
    jira_connection_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "priority": self.priority,
            "status": self.status,
            "phases": [p.to_dict() for p in self.phases],
            "system_ids": list(self.system_ids),
            "description": self.description,
            "jira_source_key": self.jira_source_key,
            "synced_from_jira": self.synced_from_jira,
            "jira_connection_id": self.jira_connection_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Project:
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            priority=data.get("priority") or DEFAULT_PROJECT_PRIORITY,
            status=data.get("status") or DEFAULT_PROJECT_STATUS,
            phases=[Phase.from_dict(p) for p in data.get("phases") or []],
            system_ids=list(data.get("system_ids") or []),
            description=data.get("description"),
            jira_source_key=data.get("jira_source_key"),
            synced_from_jira=bool(data.get("synced_from_jira", False)),
            jira_connection_id=data.get("jira_connection_id"),
        )


@dataclass(slots=True)
class TeamMember:
    id: str
    name: str
    email: str | None = None
    jira_account_id: str | None = None
    role: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "jira_account_id": self.jira_account_id,
            "role": self.role,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TeamMember:
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            email=data.get("email"),
            jira_account_id=data.get("jira_account_id"),
            role=data.get("role") or "",
        )


@dataclass(slots=True)
class Sprint:
    id: str
    name: str
    number: int
    year: int
    start_date: str
    end_date: str
    quarter: str
    is_bye_week: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "number": self.number,
            "year": self.year,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "quarter": self.quarter,
            "is_bye_week": self.is_bye_week,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Sprint:
        return cls(
            id=str(data.get("id") or data["name"]),
            name=data["name"],
            number=int(data.get("number") or 0),
            year=int(data.get("year") or 0),
            start_date=str(data.get("start_date") or ""),
            end_date=str(data.get("end_date") or ""),
            quarter=data["quarter"],
            is_bye_week=bool(data.get("is_bye_week", False)),
        )


@dataclass(slots=True)
class SyncDiff:
    """Preview of what applying a fetch would change. Never persisted."""

    connection_id: str
    to_add: list[WorkItem] = field(default_factory=list)
    to_update: list[WorkItem] = field(default_factory=list)
    to_remove: list[WorkItem] = field(default_factory=list)
    to_keep_stale: list[WorkItem] = field(default_factory=list)
    mappings_to_preserve: int = 0
    fetched_items: list[WorkItem] = field(default_factory=list)
    # Keys of update candidates whose stored copy carries a mapping
    preserved_keys: set[str] = field(default_factory=set)

    @property
    def has_changes(self) -> bool:
        return bool(self.to_add or self.to_update or self.to_remove or self.to_keep_stale)


@dataclass(slots=True)
class SyncResult:
    connection_id: str | None = None
    success: bool = False
    items_synced: int = 0
    items_created: int = 0
    items_updated: int = 0
    items_removed: int = 0
    items_stale: int = 0
    mappings_preserved: int = 0
    projects_created: int = 0
    projects_updated: int = 0
    phases_created: int = 0
    assignments_created: int = 0
    assignments_updated: int = 0
    members_imported: int = 0
    errors: list[str] = field(default_factory=list)
    timestamp: str = ""
    hierarchy_mode: str | None = None
    items: list[WorkItem] | None = None

    def summary(self) -> str:
        if not self.success:
            prefix = f"[{self.connection_id}] " if self.connection_id else ""
            return f"{prefix}Sync failed: {', '.join(self.errors) or 'unknown error'}"
        message = (
            f"Synced {self.items_synced} items "
            f"({self.items_created} new, {self.items_updated} updated"
        )
        if self.items_removed:
            message += f", {self.items_removed} removed"
        if self.items_stale:
            message += f", {self.items_stale} kept as stale"
        message += ")"
        if self.projects_created:
            message += f" · {self.projects_created} project(s) created"
        if self.projects_updated:
            message += f", {self.projects_updated} updated"
        if self.assignments_created:
            message += f" · {self.assignments_created} assignment(s) suggested"
        if self.members_imported:
            message += f" · {self.members_imported} team member(s) imported"
        return message
