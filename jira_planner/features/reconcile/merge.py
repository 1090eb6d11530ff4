"""Apply a confirmed fetch to the stored work items of one connection."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace

from jira_planner.core.models import LOCAL_ONLY_FIELDS, WorkItem
from jira_planner.core.store import StateStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MergeResult:
    items: list[WorkItem]
    created: int = 0
    updated: int = 0
    removed: int = 0
    stale: int = 0
    mappings_preserved: int = 0


def work_item_id(connection_id: str, jira_id: str) -> str:
    return f"jira-{connection_id}-{jira_id}"


def merge_work_items(
    store: StateStore,
    connection_id: str,
    fetched: Iterable[WorkItem],
    keep_stale: Iterable[WorkItem] = (),
    persist: bool = True,
) -> MergeResult:
    """Merge fetched items into storage, keeping local ids and mappings.

    Tracker fields always come from the fresh item. Stored items missing
    from ``fetched`` survive only when listed in ``keep_stale``; they are
    flagged ``stale_from_jira``. Everything else absent is dropped.
    With ``persist=False`` the store is left untouched.
    """
    stored = {i.jira_key: i for i in store.get_work_items(connection_id)}
    result = MergeResult(items=[])
    seen: set[str] = set()

    for fresh in fetched:
        if fresh.jira_key in seen:
            continue
        seen.add(fresh.jira_key)
        previous = stored.get(fresh.jira_key)
        if previous is None:
            merged = replace(
                fresh,
                id=work_item_id(connection_id, fresh.jira_id),
                connection_id=connection_id,
                mapped_project_id=None,
                mapped_phase_id=None,
                mapped_member_id=None,
                stale_from_jira=False,
            )
            result.created += 1
        else:
            local = {name: getattr(previous, name) for name in LOCAL_ONLY_FIELDS}
            local["stale_from_jira"] = False
            merged = replace(
                fresh,
                id=previous.id or work_item_id(connection_id, fresh.jira_id),
                connection_id=connection_id,
                **local,
            )
            result.updated += 1
            if previous.has_mapping:
                result.mappings_preserved += 1
        result.items.append(merged)

    retained = {i.jira_key for i in keep_stale}
    for key, previous in stored.items():
        if key in seen:
            continue
        if key in retained:
            result.items.append(replace(previous, stale_from_jira=True))
            result.stale += 1
        else:
            result.removed += 1

    if persist:
        store.replace_work_items(connection_id, result.items)
    logger.info(
        "Merged %s: %s created, %s updated, %s removed, %s stale",
        connection_id,
        result.created,
        result.updated,
        result.removed,
        result.stale,
    )
    return result
