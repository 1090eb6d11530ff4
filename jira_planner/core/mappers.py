"""Mapping raw Jira issue JSON into WorkItem instances."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import pandas as pd

from .config import (
    DEFAULT_ITEM_TYPE,
    FIELD_IDS,
    ITEM_TYPE_PATTERNS,
    STATUS_CATEGORIES,
    STORY_POINT_FIELD_IDS,
)
from .models import WorkItem
from .status import map_status_category

StoryPointResolver = Callable[[dict[str, Any]], float | None]


def round_one_decimal(value: float) -> float:
    """Round half-up to one decimal (``0.25 -> 0.3``), unlike ``round()``."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def seconds_to_hours(seconds: Any) -> float | None:
    if seconds is None or isinstance(seconds, bool):
        return None
    try:
        return round_one_decimal(float(seconds) / 3600)
    except (TypeError, ValueError):
        return None


def map_item_type(type_name: str | None) -> str:
    lower = (type_name or "").lower()
    for needle, item_type in ITEM_TYPE_PATTERNS:
        if needle in lower:
            return item_type
    return DEFAULT_ITEM_TYPE


def extract_link_key(value: Any) -> str | None:
    """Epic link fields hold either a bare key or an object carrying ``key``."""
    if not value:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        key = value.get("key")
        return str(key) if key else None
    return None


def resolve_parent_key(fields: dict[str, Any]) -> str | None:
    parent = fields.get("parent")
    if isinstance(parent, dict) and parent.get("key"):
        return str(parent["key"])
    for field_id in (FIELD_IDS["epic_link"], FIELD_IDS["epic_link_alt"]):
        key = extract_link_key(fields.get(field_id))
        if key:
            return key
    return None


def select_sprint(fields: dict[str, Any]) -> dict[str, Any] | None:
    """Prefer the active sprint, else the most recently listed one."""
    sprints = fields.get(FIELD_IDS["sprint"])
    if not isinstance(sprints, list):
        return None
    sprints = [s for s in sprints if isinstance(s, dict)]
    if not sprints:
        return None
    for sprint in sprints:
        if str(sprint.get("state") or "").lower() == "active":
            return sprint
    return sprints[-1]


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _field_resolver(field_id: str) -> StoryPointResolver:
    def resolve(fields: dict[str, Any]) -> float | None:
        return _number(fields.get(field_id))

    resolve.__name__ = f"resolve_{field_id}"
    return resolve


# Legacy story point fields in priority order; customfield_10020 holds sprint
# objects on most instances, so it only resolves when it is a plain number.
STORY_POINT_RESOLVERS: Sequence[StoryPointResolver] = tuple(
    _field_resolver(field_id) for field_id in STORY_POINT_FIELD_IDS
)


def resolve_story_points(fields: dict[str, Any], discovered_field: str | None = None) -> float | None:
    if discovered_field:
        value = _number(fields.get(discovered_field))
        if value is not None and value > 0:
            return value
    for resolver in STORY_POINT_RESOLVERS:
        value = resolver(fields)
        if value:
            return value
    return None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _name(obj: Any, key: str = "name") -> str | None:
    if isinstance(obj, dict):
        value = obj.get(key)
        return str(value) if value is not None else None
    return None


def map_issue(raw: dict[str, Any], connection_id: str, story_points_field: str | None = None) -> WorkItem:
    fields = _as_dict(raw.get("fields"))

    def parse_dt(val):
        if not val:
            return None
        ts = pd.to_datetime(val, utc=True, errors="coerce")
        if ts is None or pd.isna(ts):
            return None
        return ts.to_pydatetime()

    issuetype = _as_dict(fields.get("issuetype"))
    status = _as_dict(fields.get("status"))
    assignee = _as_dict(fields.get("assignee"))
    reporter = _as_dict(fields.get("reporter"))
    parent = _as_dict(fields.get("parent"))
    sprint = select_sprint(fields)
    description = fields.get("description")
    type_name = _name(issuetype) or "Task"

    return WorkItem(
        jira_key=str(raw.get("key") or ""),
        jira_id=str(raw.get("id") or raw.get("key") or ""),
        connection_id=connection_id,
        summary=str(fields.get("summary") or ""),
        description=description if isinstance(description, str) else None,
        type=map_item_type(type_name),
        type_name=type_name,
        status=_name(status) or "Unknown",
        status_category=map_status_category(_name(status.get("statusCategory"), "key")),
        priority=_name(fields.get("priority")),
        story_points=resolve_story_points(fields, story_points_field),
        original_estimate=seconds_to_hours(fields.get("timeoriginalestimate")),
        time_spent=seconds_to_hours(fields.get("timespent")),
        remaining_estimate=seconds_to_hours(fields.get("timeestimate")),
        assignee_email=_name(assignee, "emailAddress"),
        assignee_account_id=_name(assignee, "accountId"),
        assignee_name=_name(assignee, "displayName"),
        reporter_email=_name(reporter, "emailAddress"),
        reporter_name=_name(reporter, "displayName"),
        parent_key=resolve_parent_key(fields),
        parent_id=_name(parent, "id"),
        sprint_id=_name(sprint, "id"),
        sprint_name=_name(sprint),
        sprint_start_date=_name(sprint, "startDate"),
        sprint_end_date=_name(sprint, "endDate"),
        labels=[str(label) for label in fields.get("labels") or []],
        components=[c["name"] for c in fields.get("components") or [] if isinstance(c, dict) and c.get("name")],
        created=parse_dt(fields.get("created")),
        updated=parse_dt(fields.get("updated")),
        start_date=fields.get(FIELD_IDS["start_date"]) or None,
        due_date=fields.get("duedate") or None,
    )


ITEM_COLUMNS = [
    "key",
    "summary",
    "type",
    "status",
    "status_category",
    "story_points",
    "assignee",
    "parent_key",
    "sprint",
    "mapped_project_id",
    "mapped_phase_id",
    "stale",
    "updated",
]


def items_to_dataframe(items: Iterable[WorkItem]) -> pd.DataFrame:
    rows = []
    for i in items:
        rows.append(
            {
                "key": i.jira_key,
                "summary": i.summary,
                "type": i.type,
                "status": i.status,
                "status_category": i.status_category,
                "story_points": i.story_points,
                "assignee": i.assignee_name or i.assignee_email or "Unassigned",
                "parent_key": i.parent_key,
                "sprint": i.sprint_name,
                "mapped_project_id": i.mapped_project_id,
                "mapped_phase_id": i.mapped_phase_id,
                "stale": i.stale_from_jira,
                "updated": i.updated,
            }
        )
    df = pd.DataFrame(rows, columns=ITEM_COLUMNS)
    df["status_category"] = pd.Categorical(df["status_category"], categories=list(STATUS_CATEGORIES))
    return df


def status_breakdown(items: Iterable[WorkItem]) -> pd.DataFrame:
    """Count items per type and status category, every category as a column."""
    df = items_to_dataframe(items)
    if df.empty:
        return pd.DataFrame(columns=list(STATUS_CATEGORIES))
    counts = pd.crosstab(df["type"], df["status_category"], dropna=False)
    return counts.reindex(columns=list(STATUS_CATEGORIES), fill_value=0)
