"""Central configuration, constants, enumerations, and sync tuning knobs."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

# =============================================================================
# Jira Connection Settings
# =============================================================================
JIRA_REST_PREFIX = "/rest/api/3"
TIMEZONE = "UTC"
REQUEST_TIMEOUT_SECONDS = 60

# =============================================================================
# Work Item Types
# =============================================================================
# Canonical order used by the query builder and hierarchy projector
ITEM_TYPES: Sequence[str] = ("epic", "feature", "story", "task", "bug")

# Jira issue type names used in JQL for each internal type
ITEM_TYPE_JQL_NAMES: dict[str, str] = {
    "epic": "Epic",
    "feature": "Feature",
    "story": "Story",
    "task": "Task",
    "bug": "Bug",
}

# Substring checks applied (in order) to raw issue type names; anything else is a task
ITEM_TYPE_PATTERNS: Sequence[tuple[str, str]] = (
    ("epic", "epic"),
    ("feature", "feature"),
    ("story", "story"),
    ("bug", "bug"),
)
DEFAULT_ITEM_TYPE = "task"
DEFAULT_ENABLED_TYPES: Sequence[str] = ("epic", "feature", "story")

# =============================================================================
# Status Configuration
# =============================================================================
STATUS_CATEGORIES: Sequence[str] = ("todo", "in_progress", "done")

# Jira statusCategory.key -> internal category
STATUS_CATEGORY_KEYS: dict[str, str] = {
    "done": "done",
    "indeterminate": "in_progress",
}

STATUS_FILTERS: Sequence[str] = ("all", "exclude_done", "active_only", "todo_only")

# JQL fragment per status filter ("all" adds nothing)
STATUS_FILTER_CLAUSES: dict[str, str] = {
    "all": "",
    "exclude_done": 'statusCategory != "Done"',
    "active_only": 'statusCategory in ("To Do", "In Progress")',
    "todo_only": 'statusCategory = "To Do"',
}

STATUS_FILTER_LABELS: dict[str, str] = {
    "all": "All",
    "exclude_done": "Exclude Done",
    "active_only": "Active only",
    "todo_only": "To Do only",
}

# =============================================================================
# Hierarchy Modes
# =============================================================================
HIERARCHY_MODES: Sequence[str] = ("auto", "epic_as_project", "feature_as_project")
RESOLVED_HIERARCHY_MODES: Sequence[str] = ("epic_as_project", "feature_as_project", "flat")

SYNC_STATUSES: Sequence[str] = ("idle", "syncing", "success", "error")

# =============================================================================
# Jira Custom Field IDs
# =============================================================================
FIELD_IDS = {
    "epic_link": "customfield_10014",
    "epic_link_alt": "customfield_10008",
    "start_date": "customfield_10015",
    "sprint": "customfield_10020",
}

# Legacy story point fields, tried in this order after the discovered field.
# customfield_10020 only counts when the instance stores a number there.
STORY_POINT_FIELD_IDS: Sequence[str] = (
    "customfield_10016",
    "customfield_10028",
    "customfield_10020",
    "customfield_10026",
)

# Display names matching this pattern identify the story points field
STORY_POINTS_FIELD_PATTERN = r"^story\s*point(s| estimate)?$"

# Canonical field list for Jira fetches
JIRA_FETCH_BASE_FIELDS = [
    "summary",
    "description",
    "issuetype",
    "status",
    "priority",
    "assignee",
    "reporter",
    "parent",
    "labels",
    "components",
    "created",
    "updated",
    "duedate",
    "timeoriginalestimate",
    "timespent",
    "timeestimate",
    STORY_POINT_FIELD_IDS[0],
    STORY_POINT_FIELD_IDS[3],
    STORY_POINT_FIELD_IDS[1],
    FIELD_IDS["sprint"],
    FIELD_IDS["start_date"],
    FIELD_IDS["epic_link"],
    FIELD_IDS["epic_link_alt"],
]

# Fields needed to explain why a single key is or is not synced
JIRA_DIAGNOSE_FIELDS = [
    "summary",
    "issuetype",
    "status",
    "parent",
    FIELD_IDS["epic_link"],
    FIELD_IDS["epic_link_alt"],
]

# =============================================================================
# Fetch Tuning
# =============================================================================
SEARCH_PAGE_SIZE = 100
PARENT_BATCH_SIZE = 50
# Backfill rounds: story -> feature -> epic needs at most this many hops
MAX_PARENT_DEPTH = 3

# =============================================================================
# Local Model Defaults
# =============================================================================
DEFAULT_PROJECT_PRIORITY = "Medium"
DEFAULT_PROJECT_STATUS = "Active"
DEFAULT_STORY_POINTS_TO_DAYS = 0.5
DEFAULT_DAYS_PER_ITEM = 1.0
SYNC_HISTORY_LIMIT = 20


@dataclass(slots=True)
class SyncSettings:
    story_points_to_days: float = DEFAULT_STORY_POINTS_TO_DAYS
    refresh_stale: bool = True
    import_team_members: bool = True
    sync_history_limit: int = SYNC_HISTORY_LIMIT
    timezone: str = TIMEZONE


@dataclass(slots=True)
class SprintCalendarSettings:
    duration_weeks: int = 3
    sprints_per_year: int = 16
    start_date: str | None = None  # YYYY-MM-DD; month/day reused for every year
    bye_weeks_after: tuple[int, ...] = (8, 12)
