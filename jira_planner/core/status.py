"""Status category normalization and status-filter evaluation.

Jira reports a ``statusCategory.key`` of ``new``, ``indeterminate`` or
``done`` (occasionally ``undefined``). The planner only needs three buckets,
and the sync settings filter items per type on those same categories.
"""

from __future__ import annotations

from .config import STATUS_CATEGORY_KEYS, STATUS_FILTER_LABELS


def map_status_category(category_key: str | None) -> str:
    """Map a Jira status category key onto ``todo``/``in_progress``/``done``.

    Parameters
    ----------
    category_key : str | None
        ``fields.status.statusCategory.key`` from the raw issue.

    Returns
    -------
    str
        ``done`` or ``in_progress`` for the matching keys, ``todo`` otherwise.

    Examples
    --------
    >>> map_status_category("indeterminate")
    'in_progress'
    >>> map_status_category(None)
    'todo'
    """
    if not category_key:
        return "todo"
    return STATUS_CATEGORY_KEYS.get(str(category_key).strip().lower(), "todo")


def passes_status_filter(category_key: str | None, status_filter: str) -> bool:
    """Return True if an item in ``category_key`` would be kept by ``status_filter``.

    Mirrors the JQL clauses emitted by the query builder so a single issue can
    be checked locally without another search.
    """
    key = (category_key or "").strip().lower()
    if status_filter == "exclude_done":
        return key != "done"
    if status_filter == "active_only":
        return key in {"new", "indeterminate"}
    if status_filter == "todo_only":
        return key == "new"
    return True


def explain_status_exclusion(status_name: str, category_key: str | None, status_filter: str) -> str | None:
    """Human readable reason an item is filtered out, or None when it passes."""
    if passes_status_filter(category_key, status_filter):
        return None
    label = STATUS_FILTER_LABELS.get(status_filter, status_filter)
    if status_filter == "exclude_done":
        return f'Status "{status_name}" is "Done" and excluded by the "{label}" filter'
    if status_filter == "active_only":
        return f'Status "{status_name}" is not "To Do" or "In Progress" and excluded by the "{label}" filter'
    return f'Status "{status_name}" is not "To Do" and excluded by the "{label}" filter'
