"""Preview of what a fetched item set would change in local storage."""

from __future__ import annotations

import logging
from collections.abc import Iterable

import pandas as pd

from jira_planner.core.fetcher import build_fields, fetch_items_by_keys
from jira_planner.core.models import Connection, SyncDiff, WorkItem
from jira_planner.core.store import StateStore

logger = logging.getLogger(__name__)

DIFF_COLUMNS = ["key", "summary", "type", "status", "action", "mapped"]


def compute_sync_diff(store: StateStore, connection_id: str, fetched: Iterable[WorkItem]) -> SyncDiff:
    """Classify stored and fetched items by external key.

    Parameters
    ----------
    store : StateStore
        Read only; nothing is written.
    connection_id : str
        Only items stored under this connection are compared.
    fetched : iterable of WorkItem
        Fresh items from the tracker.

    Returns
    -------
    SyncDiff
        ``to_add`` and ``to_update`` hold fetched items; ``to_remove`` and
        ``to_keep_stale`` hold the stored items missing from the fetch,
        split by whether they carry a local mapping.
    """
    fetched_items = list(fetched)
    stored = {i.jira_key: i for i in store.get_work_items(connection_id)}
    fetched_keys = {i.jira_key for i in fetched_items}

    diff = SyncDiff(connection_id=connection_id, fetched_items=fetched_items)
    for item in fetched_items:
        previous = stored.get(item.jira_key)
        if previous is None:
            diff.to_add.append(item)
            continue
        diff.to_update.append(item)
        if previous.has_mapping:
            diff.mappings_to_preserve += 1
            diff.preserved_keys.add(item.jira_key)

    for key, item in stored.items():
        if key in fetched_keys:
            continue
        if item.has_mapping:
            diff.to_keep_stale.append(item)
        else:
            diff.to_remove.append(item)
    return diff


def refresh_stale_items(api, connection: Connection, store: StateStore, diff: SyncDiff) -> SyncDiff:
    """Re-fetch the stale keys once and recompute the diff with whatever came back.

    Keys the tracker still does not return stay in ``to_keep_stale``; there is
    no second attempt.
    """
    if not diff.to_keep_stale:
        return diff
    keys = [i.jira_key for i in diff.to_keep_stale]
    logger.info("Refreshing %s stale item(s) for %s", len(keys), connection.project_key)
    fields = build_fields(connection.story_points_field)
    refreshed = fetch_items_by_keys(api, keys, connection.id, fields, connection.story_points_field)

    known = {i.jira_key for i in diff.fetched_items}
    enriched = list(diff.fetched_items) + [i for i in refreshed if i.jira_key not in known]
    logger.debug("Stale refresh recovered %s of %s item(s)", len(enriched) - len(known), len(keys))
    return compute_sync_diff(store, connection.id, enriched)


def diff_to_dataframe(diff: SyncDiff) -> pd.DataFrame:
    rows = []
    buckets = (
        ("add", diff.to_add),
        ("update", diff.to_update),
        ("remove", diff.to_remove),
        ("keep_stale", diff.to_keep_stale),
    )
    for action, items in buckets:
        for i in items:
            rows.append(
                {
                    "key": i.jira_key,
                    "summary": i.summary,
                    "type": i.type,
                    "status": i.status,
                    "action": action,
                    "mapped": i.has_mapping or i.jira_key in diff.preserved_keys,
                }
            )
    return pd.DataFrame(rows, columns=DIFF_COLUMNS)
