from factories import work_item

from jira_planner.core.models import Assignment, Phase, Project, Sprint, TeamMember
from jira_planner.features.assignments import import_team_members, item_days, member_id_for, suggest_assignments

SPRINTS = [
    Sprint(id="s3", name="Sprint 3", number=3, year=2026, start_date="2026-01-26", end_date="2026-02-15", quarter="Q1 2026"),
    Sprint(id="s13", name="Sprint 13", number=13, year=2026, start_date="2026-09-28", end_date="2026-10-18", quarter="Q4 2026"),
]
MEMBERS = [
    TeamMember(id="m1", name="Alice", email="A@X.com"),
    TeamMember(id="m2", name="Bob", jira_account_id="acc-bob"),
]


def _projects(assignments=None):
    phase = Phase(id="ph1", name="Payment API", start_quarter="Q1 2026", end_quarter="Q1 2026", assignments=list(assignments or []))
    return [Project(id="p1", name="Checkout Revamp", phases=[phase], synced_from_jira=True, jira_source_key="E-1")]


def _item(key, points, **kwargs):
    defaults = {
        "story_points": points,
        "sprint_name": "Sprint 3",
        "assignee_email": "a@x.com",
        "mapped_project_id": "p1",
        "mapped_phase_id": "ph1",
    }
    defaults.update(kwargs)
    return work_item(key, **defaults)


def _assignments(result):
    return result.projects[0].phases[0].assignments


def test_accumulates_into_one_synced_assignment():
    result = suggest_assignments([_item("S-1", 3), _item("S-2", 5)], MEMBERS, _projects(), SPRINTS, 0.5)
    assert _assignments(result) == [Assignment(member_id="m1", quarter="Q1 2026", days=4.0, jira_synced=True)]
    assert (result.assignments_created, result.assignments_updated) == (1, 1)


def test_user_authored_assignment_is_never_touched():
    manual = Assignment(member_id="m1", quarter="Q1 2026", days=10.0, jira_synced=False)
    projects = _projects([manual])
    result = suggest_assignments([_item("S-1", 3)], MEMBERS, projects, SPRINTS, 0.5)
    assert _assignments(result) == [manual]
    assert result.skipped_manual == 1
    assert result.assignments_created == 0


def test_unmarked_assignment_is_taken_over():
    legacy = Assignment(member_id="m1", quarter="Q1 2026", days=2.0)
    result = suggest_assignments([_item("S-1", 3)], MEMBERS, _projects([legacy]), SPRINTS, 0.5)
    assert _assignments(result) == [Assignment(member_id="m1", quarter="Q1 2026", days=3.5, jira_synced=True)]


def test_inputs_are_not_mutated():
    projects = _projects()
    suggest_assignments([_item("S-1", 3)], MEMBERS, projects, SPRINTS, 0.5)
    assert projects[0].phases[0].assignments == []


def test_member_lookup_by_account_id_and_sprint_quarter():
    items = [_item("S-1", 2, assignee_email=None, assignee_account_id="acc-bob", sprint_name="Team Sprint 13")]
    result = suggest_assignments(items, MEMBERS, _projects(), SPRINTS, 0.5)
    assert _assignments(result) == [Assignment(member_id="m2", quarter="Q4 2026", days=1.0, jira_synced=True)]


def test_items_missing_prerequisites_are_skipped():
    items = [
        _item("S-1", None),
        _item("S-2", 0),
        _item("S-3", 3, mapped_phase_id=None),
        _item("S-4", 3, sprint_name=None),
        _item("S-5", 3, assignee_email="stranger@x.com"),
        _item("S-6", 3, sprint_name="Backlog"),
        _item("S-7", 3, mapped_phase_id="missing"),
    ]
    result = suggest_assignments(items, MEMBERS, _projects(), SPRINTS, 0.5)
    assert _assignments(result) == []
    assert result.assignments_created == 0


def test_item_days_rounds_half_up():
    assert item_days(work_item("S-1", story_points=0.5), 0.5) == 0.3
    assert item_days(work_item("S-1"), 0.5) == 0.0


def test_import_team_members_from_assignees():
    items = [
        work_item("S-1", assignee_email="a@x.com", assignee_name="Alice"),
        work_item("S-2", assignee_email="new@x.com", assignee_name="Newcomer"),
        work_item("S-3", assignee_email="NEW@x.com", assignee_name="Newcomer"),
        work_item("S-4", assignee_account_id="acc-9"),
        work_item("S-5"),
    ]
    members, added = import_team_members(items, MEMBERS)
    assert added == 2
    assert members[:2] == MEMBERS
    newcomer, account_only = members[2:]
    assert newcomer.id == member_id_for("new@x.com")
    assert newcomer.name == "Newcomer"
    assert account_only.jira_account_id == "acc-9"
    assert account_only.name == "acc-9"
