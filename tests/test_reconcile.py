from factories import DummyAPI, connection, raw_issue, work_item

from jira_planner.core.store import MemoryStore
from jira_planner.features.reconcile import (
    compute_sync_diff,
    diff_to_dataframe,
    merge_work_items,
    refresh_stale_items,
    work_item_id,
)


def _stored():
    return MemoryStore(
        work_items=[
            work_item("A-1", id="local-1", mapped_project_id="p1"),
            work_item("A-2", id="local-2"),
            work_item("A-3", id="local-3", mapped_phase_id="ph1"),
            work_item("A-4", id="local-4"),
            work_item("Z-1", connection_id="other", id="other-1"),
        ]
    )


def test_diff_partitions_by_key():
    store = _stored()
    fetched = [work_item("A-1", summary="Renamed"), work_item("A-2"), work_item("A-5")]
    diff = compute_sync_diff(store, "c1", fetched)
    assert [i.jira_key for i in diff.to_add] == ["A-5"]
    assert [i.jira_key for i in diff.to_update] == ["A-1", "A-2"]
    assert [i.jira_key for i in diff.to_keep_stale] == ["A-3"]
    assert [i.jira_key for i in diff.to_remove] == ["A-4"]
    assert diff.mappings_to_preserve == 1
    assert diff.has_changes
    # read only
    assert len(store.get_work_items("c1")) == 4


def test_diff_ignores_other_connections():
    diff = compute_sync_diff(_stored(), "c1", [])
    assert "Z-1" not in {i.jira_key for i in diff.to_remove + diff.to_keep_stale}


def test_merge_preserves_mappings_and_ids():
    store = _stored()
    fetched = [work_item("A-1", summary="Renamed", status="Done"), work_item("A-5")]
    diff = compute_sync_diff(store, "c1", fetched)
    result = merge_work_items(store, "c1", diff.fetched_items, keep_stale=diff.to_keep_stale)

    by_key = {i.jira_key: i for i in store.get_work_items("c1")}
    assert by_key["A-1"].id == "local-1"
    assert by_key["A-1"].mapped_project_id == "p1"
    assert by_key["A-1"].summary == "Renamed"
    assert by_key["A-1"].status == "Done"
    assert by_key["A-5"].id == work_item_id("c1", "id-A-5")
    assert by_key["A-3"].stale_from_jira is True
    assert by_key["A-3"].mapped_phase_id == "ph1"
    assert "A-2" not in by_key and "A-4" not in by_key
    assert (result.created, result.updated, result.removed, result.stale) == (1, 1, 2, 1)
    assert result.mappings_preserved == 1
    assert store.get_work_items("other")[0].jira_key == "Z-1"


def test_merge_is_idempotent():
    store = _stored()
    fetched = [work_item("A-1"), work_item("A-2"), work_item("A-3")]
    merge_work_items(store, "c1", fetched)
    first = {i.jira_key: (i.id, i.mapped_project_id, i.mapped_phase_id) for i in store.get_work_items("c1")}
    second_result = merge_work_items(store, "c1", fetched)
    second = {i.jira_key: (i.id, i.mapped_project_id, i.mapped_phase_id) for i in store.get_work_items("c1")}
    assert first == second
    assert second_result.updated == 3
    assert second_result.created == 0


def test_stale_flag_cleared_when_item_returns():
    store = MemoryStore(work_items=[work_item("A-1", mapped_project_id="p1", stale_from_jira=True)])
    merge_work_items(store, "c1", [work_item("A-1")])
    assert store.get_work_items("c1")[0].stale_from_jira is False


def test_merge_without_persist_leaves_store_alone():
    store = MemoryStore(work_items=[work_item("A-1", mapped_project_id="p1")])
    result = merge_work_items(store, "c1", [work_item("A-2")], persist=False)
    assert [i.jira_key for i in result.items] == ["A-2"]
    assert [i.jira_key for i in store.get_work_items("c1")] == ["A-1"]


def test_refresh_recovers_stale_items_once():
    store = _stored()
    api = DummyAPI(by_key=[raw_issue("A-3", status="Done")])
    diff = compute_sync_diff(store, "c1", [work_item("A-1")])
    refreshed = refresh_stale_items(api, connection(), store, diff)
    assert api.key_lookups == [["A-3"]]
    assert "A-3" in {i.jira_key for i in refreshed.to_update}
    assert refreshed.to_keep_stale == []
    assert refreshed.mappings_to_preserve == 2


def test_refresh_keeps_unrecovered_items_stale():
    store = _stored()
    api = DummyAPI()
    diff = compute_sync_diff(store, "c1", [work_item("A-1")])
    refreshed = refresh_stale_items(api, connection(), store, diff)
    assert [i.jira_key for i in refreshed.to_keep_stale] == ["A-3"]
    assert len(api.key_lookups) == 1


def test_diff_preview_table():
    store = _stored()
    diff = compute_sync_diff(store, "c1", [work_item("A-1"), work_item("A-9")])
    df = diff_to_dataframe(diff)
    assert list(df.columns) == ["key", "summary", "type", "status", "action", "mapped"]
    rows = {r.key: (r.action, r.mapped) for r in df.itertuples()}
    assert rows["A-9"] == ("add", False)
    assert rows["A-1"] == ("update", True)
    assert rows["A-3"] == ("keep_stale", True)
    assert rows["A-4"][0] == "remove"
