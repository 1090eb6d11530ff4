"""Reconciliation of fetched Jira items against stored state."""

from jira_planner.features.reconcile.diff import compute_sync_diff, diff_to_dataframe, refresh_stale_items
from jira_planner.features.reconcile.merge import MergeResult, merge_work_items, work_item_id

__all__ = [
    "MergeResult",
    "compute_sync_diff",
    "diff_to_dataframe",
    "merge_work_items",
    "refresh_stale_items",
    "work_item_id",
]
