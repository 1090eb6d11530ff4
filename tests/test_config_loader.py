import pytest

from jira_planner.core.config_loader import ConfigError, load_config, parse_config

VALID = """
log_level: debug
settings:
  story_points_to_days: 0.75
  refresh_stale: false
sprint_calendar:
  duration_weeks: 2
  bye_weeks_after: [4]
team_members:
  - id: m1
    name: Alice
    email: a@x.com
connections:
  - id: shop
    base_url: https://example.atlassian.net/
    user_email: me@example.com
    api_token_env: PLANNER_TEST_TOKEN
    project_key: SHOP
    enabled_types: [epic, story]
    status_filters:
      story: exclude_done
"""


def _connection(**overrides):
    data = {
        "id": "shop",
        "base_url": "https://example.atlassian.net",
        "user_email": "me@example.com",
        "api_token": "secret",
        "project_key": "SHOP",
    }
    data.update(overrides)
    return {"connections": [data]}


def test_load_valid_config(tmp_path, monkeypatch):
    monkeypatch.setenv("PLANNER_TEST_TOKEN", "from-env")
    path = tmp_path / "planner.yaml"
    path.write_text(VALID)
    config = load_config(path)
    assert config.log_level == "DEBUG"
    assert config.settings.story_points_to_days == 0.75
    assert config.settings.refresh_stale is False
    assert config.sprint_calendar.duration_weeks == 2
    assert config.sprint_calendar.bye_weeks_after == (4,)
    assert config.team_members[0].email == "a@x.com"
    conn = config.connections[0]
    assert conn.api_token == "from-env"
    assert conn.base_url == "https://example.atlassian.net"
    assert conn.name == "SHOP"
    assert conn.status_filter_for("story") == "exclude_done"
    assert conn.status_filter_for("epic") == "all"


def test_missing_env_token(monkeypatch):
    monkeypatch.delenv("PLANNER_MISSING", raising=False)
    data = _connection(api_token=None, api_token_env="PLANNER_MISSING")
    with pytest.raises(ConfigError, match="PLANNER_MISSING"):
        parse_config(data)


@pytest.mark.parametrize(
    "overrides,match",
    [
        ({"base_url": "example.atlassian.net"}, "base URL"),
        ({"enabled_types": ["epic", "saga"]}, "unknown item type"),
        ({"status_filters": {"story": "open_only"}}, "invalid status filter"),
        ({"hierarchy_mode": "flat"}, "hierarchy_mode"),
        ({"project_key": ""}, "project_key"),
    ],
)
def test_invalid_connections(overrides, match):
    with pytest.raises(ConfigError, match=match):
        parse_config(_connection(**overrides))


def test_duplicate_connection_ids():
    data = _connection()
    data["connections"].append(dict(data["connections"][0]))
    with pytest.raises(ConfigError, match="unique"):
        parse_config(data)


def test_missing_file_and_bad_yaml(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "nope.yaml")
    bad = tmp_path / "bad.yaml"
    bad.write_text("connections: [\n")
    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(bad)


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    config = load_config(path)
    assert config.connections == []
    assert config.settings.story_points_to_days == 0.5
