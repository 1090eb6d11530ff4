import pytest
from factories import DummyAPI, connection, raw_issue

from jira_planner.core.fetcher import (
    SyncConfigurationError,
    backfill_parents,
    build_fields,
    fetch_items_by_keys,
    fetch_work_items,
)
from jira_planner.core.jira_client import JiraAPIError
from jira_planner.core.mappers import map_issue


def test_token_pagination_until_last_page():
    api = DummyAPI(
        pages=[
            {"issues": [raw_issue("S-1"), raw_issue("S-2")], "nextPageToken": "t1"},
            {"issues": [raw_issue("S-3")], "isLast": True},
        ]
    )
    result = fetch_work_items(api, connection())
    assert [i.jira_key for i in result.items] == ["S-1", "S-2", "S-3"]
    assert result.pages == 2
    assert api.search_calls[1]["token"] == "t1"


def test_offset_fallback_when_total_reported():
    api = DummyAPI(
        pages=[
            {"issues": [raw_issue("S-1"), raw_issue("S-2")], "total": 3},
            {"issues": [raw_issue("S-3")], "total": 3},
        ]
    )
    result = fetch_work_items(api, connection())
    assert len(result.items) == 3
    assert api.search_calls[1]["start_at"] == 2
    assert len(api.search_calls) == 2


def test_stops_without_token_or_total():
    api = DummyAPI(pages=[{"issues": [raw_issue("S-1")]}, {"issues": [raw_issue("S-2")]}])
    result = fetch_work_items(api, connection())
    assert [i.jira_key for i in result.items] == ["S-1"]
    assert len(api.search_calls) == 1


def test_zero_progress_page_terminates():
    repeated = {"issues": [raw_issue("S-1")], "nextPageToken": "same"}
    api = DummyAPI(pages=[dict(repeated), dict(repeated), dict(repeated)])
    result = fetch_work_items(api, connection())
    assert [i.jira_key for i in result.items] == ["S-1"]
    assert len(api.search_calls) == 2


def test_empty_first_page():
    result = fetch_work_items(DummyAPI(pages=[{"issues": []}]), connection())
    assert result.items == []


def test_no_types_enabled_raises_before_network():
    api = DummyAPI()
    with pytest.raises(SyncConfigurationError, match="No issue types selected"):
        fetch_work_items(api, connection(enabled_types=[]))
    assert api.search_calls == []


def test_page_error_propagates():
    api = DummyAPI(page_error=JiraAPIError("Invalid credentials", 401))
    with pytest.raises(JiraAPIError):
        fetch_work_items(api, connection())


def test_missing_parents_are_backfilled_across_levels():
    api = DummyAPI(
        pages=[{"issues": [raw_issue("S-1", parent="F-1")], "isLast": True}],
        by_key=[raw_issue("F-1", "Feature", status="Done", parent="E-1"), raw_issue("E-1", "Epic", status="Done")],
    )
    result = fetch_work_items(api, connection())
    assert [i.jira_key for i in result.items] == ["S-1", "F-1", "E-1"]
    assert result.parents_backfilled == 2
    assert api.key_lookups == [["F-1"], ["E-1"]]


def test_backfill_skips_parents_already_fetched():
    items = [map_issue(raw_issue("F-1", "Feature"), "c1"), map_issue(raw_issue("S-1", parent="F-1"), "c1")]
    api = DummyAPI()
    assert backfill_parents(api, items, "c1", build_fields()) == 0
    assert api.key_lookups == []


def test_key_lookup_batches_and_tolerates_failures():
    class FlakyAPI(DummyAPI):
        def search_page(self, jql, fields, max_results, **kwargs):
            if "K-0" in jql:
                raise JiraAPIError("Jira returned 500", 500)
            return super().search_page(jql, fields, max_results, **kwargs)

    keys = [f"K-{n}" for n in range(120)]
    api = FlakyAPI(by_key=[raw_issue(k) for k in keys])
    items = fetch_items_by_keys(api, keys, "c1", build_fields(), batch_size=50)
    # first batch (K-0..K-49) failed, remaining two batches succeed
    assert len(items) == 70
    assert [len(batch) for batch in api.key_lookups] == [50, 20]


def test_discovered_field_is_requested_and_used():
    api = DummyAPI(
        pages=[{"issues": [raw_issue("S-1", customfield_12000=8)], "isLast": True}],
        fields=[{"id": "customfield_12000", "name": "Story Points", "custom": True}],
    )
    result = fetch_work_items(api, connection())
    assert result.story_points_field == "customfield_12000"
    assert result.items[0].story_points == 8
    assert "customfield_12000" in build_fields("customfield_12000")
