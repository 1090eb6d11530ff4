"""Paginated retrieval of a connection's work items plus parent backfill."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from .config import (
    JIRA_FETCH_BASE_FIELDS,
    MAX_PARENT_DEPTH,
    PARENT_BATCH_SIZE,
    SEARCH_PAGE_SIZE,
)
from .mappers import map_issue
from .models import Connection, WorkItem
from .query import build_jql, build_keys_jql
from .schema import discover_story_points_field

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int | None, int | None], None]


class SyncConfigurationError(ValueError):
    """Raised when a connection cannot produce a query (nothing enabled)."""


@dataclass(slots=True)
class FetchResult:
    items: list[WorkItem] = field(default_factory=list)
    jql: str = ""
    story_points_field: str | None = None
    pages: int = 0
    parents_backfilled: int = 0


def build_fields(story_points_field: str | None = None) -> list[str]:
    fields = list(JIRA_FETCH_BASE_FIELDS)
    if story_points_field and story_points_field not in fields:
        fields.append(story_points_field)
    return fields


def _chunks(keys: list[str], size: int) -> Iterable[list[str]]:
    for offset in range(0, len(keys), size):
        yield keys[offset : offset + size]


def fetch_items_by_keys(
    api,
    keys: Iterable[str],
    connection_id: str,
    fields: list[str],
    story_points_field: str | None = None,
    *,
    batch_size: int = PARENT_BATCH_SIZE,
) -> list[WorkItem]:
    """Fetch exact keys, ignoring status filters, in batches of ``batch_size``.

    A failed batch is logged and skipped; the affected keys simply stay
    unresolved for this sync.
    """
    wanted = list(dict.fromkeys(k for k in keys if k))
    out: list[WorkItem] = []
    for batch in _chunks(wanted, batch_size):
        try:
            data = api.search_page(build_keys_jql(batch), fields, len(batch))
        except Exception as exc:
            logger.warning("Lookup of %s key(s) failed: %s", len(batch), exc)
            continue
        for raw in data.get("issues") or []:
            out.append(map_issue(raw, connection_id, story_points_field))
    return out


def _paginate(
    api,
    jql: str,
    fields: list[str],
    connection_id: str,
    story_points_field: str | None,
    progress: ProgressCallback | None,
) -> tuple[list[WorkItem], int]:
    items: list[WorkItem] = []
    seen: set[str] = set()
    token: str | None = None
    start_at = 0
    known_total: int | None = None
    page = 0
    while True:
        page += 1
        if progress:
            progress(f"Fetching page {page}", len(items), known_total)
        data = api.search_page(
            jql,
            fields,
            SEARCH_PAGE_SIZE,
            next_page_token=token,
            start_at=start_at,
        )
        issues = data.get("issues") or []
        if not issues:
            break

        new_count = 0
        for raw in issues:
            item = map_issue(raw, connection_id, story_points_field)
            if item.jira_key in seen:
                continue
            seen.add(item.jira_key)
            items.append(item)
            new_count += 1
        logger.debug("Page %s returned %s issue(s), %s new", page, len(issues), new_count)

        if isinstance(data.get("total"), int):
            known_total = data["total"]
        token = data.get("nextPageToken") or None
        start_at += len(issues)

        if new_count == 0:
            # Backend keeps returning what we already have
            logger.warning("Stopping pagination: page %s added no new items", page)
            break
        if data.get("isLast") is True:
            break
        if token:
            continue
        if known_total is None or len(items) >= known_total:
            break
    return items, page


def backfill_parents(
    api,
    items: list[WorkItem],
    connection_id: str,
    fields: list[str],
    story_points_field: str | None = None,
    *,
    max_depth: int = MAX_PARENT_DEPTH,
    progress: ProgressCallback | None = None,
) -> int:
    """Append structural parents that the status filters excluded (in place).

    Parents are fetched unconditionally so every child has a reachable root.
    Each round only looks at parents referenced by the previous round.
    """
    fetched = {i.jira_key for i in items}
    frontier = items
    added = 0
    for _ in range(max_depth):
        missing = [k for k in dict.fromkeys(i.parent_key for i in frontier) if k and k not in fetched]
        if not missing:
            break
        if progress:
            progress(f"Fetching {len(missing)} missing parent item(s)", None, None)
        found = [
            item
            for item in fetch_items_by_keys(api, missing, connection_id, fields, story_points_field)
            if item.jira_key not in fetched
        ]
        for item in found:
            fetched.add(item.jira_key)
        items.extend(found)
        added += len(found)
        frontier = found
    return added


def fetch_work_items(
    api,
    connection: Connection,
    *,
    progress: ProgressCallback | None = None,
) -> FetchResult:
    """Fetch every item matching the connection's query.

    Raises ``SyncConfigurationError`` before any network call when no type is
    enabled. Transport errors from a page propagate and abort the fetch.
    """
    jql = build_jql(connection)
    if not jql:
        raise SyncConfigurationError("No issue types selected")

    if progress:
        progress("Detecting story points field", None, None)
    story_points_field = discover_story_points_field(api)
    fields = build_fields(story_points_field)

    logger.info("Fetching %s with JQL: %s", connection.project_key, jql)
    items, pages = _paginate(api, jql, fields, connection.id, story_points_field, progress)
    backfilled = backfill_parents(
        api, items, connection.id, fields, story_points_field, progress=progress
    )
    logger.info(
        "Fetched %s item(s) in %s page(s), %s parent(s) backfilled",
        len(items),
        pages,
        backfilled,
    )
    return FetchResult(
        items=items,
        jql=jql,
        story_points_field=story_points_field,
        pages=pages,
        parents_backfilled=backfilled,
    )
