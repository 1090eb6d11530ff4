from factories import connection

from jira_planner.core.query import build_jql, build_keys_jql, enabled_type_filters


def test_single_filter_builds_flat_clause():
    conn = connection(enabled_types=["feature", "epic"], status_filters={"epic": "exclude_done", "feature": "exclude_done"})
    assert build_jql(conn) == (
        'project = "SHOP" AND issuetype IN (Epic, Feature) AND statusCategory != "Done" ORDER BY created DESC'
    )


def test_all_filter_adds_no_status_clause():
    conn = connection(enabled_types=["story"])
    assert build_jql(conn) == 'project = "SHOP" AND issuetype IN (Story) ORDER BY created DESC'


def test_mixed_filters_build_compound_clause():
    conn = connection(
        enabled_types=["epic", "story", "task"],
        status_filters={"story": "exclude_done", "task": "exclude_done"},
    )
    assert build_jql(conn) == (
        'project = "SHOP" AND ((issuetype = "Epic") OR '
        '(issuetype IN (Story, Task) AND statusCategory != "Done")) ORDER BY created DESC'
    )


def test_extra_clause_is_parenthesized():
    conn = connection(enabled_types=["epic"], jql_filter=' labels = "q1" OR labels = "q2" ')
    jql = build_jql(conn)
    assert jql.endswith('AND (labels = "q1" OR labels = "q2") ORDER BY created DESC')


def test_no_enabled_types_returns_none():
    assert build_jql(connection(enabled_types=[])) is None


def test_enabled_types_follow_canonical_order():
    conn = connection(enabled_types=["bug", "epic"], status_filters={"bug": "todo_only"})
    assert enabled_type_filters(conn) == [("epic", "all"), ("bug", "todo_only")]


def test_query_is_deterministic():
    conn = connection(enabled_types=["story", "epic", "feature"], status_filters={"story": "active_only"})
    assert build_jql(conn) == build_jql(conn)


def test_keys_query():
    assert build_keys_jql(["A-1", "B-2"]) == 'key IN ("A-1", "B-2")'
