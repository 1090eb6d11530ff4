"""Assignment suggestions and team-member import from synced items."""

from jira_planner.features.assignments.members import import_team_members, member_id_for
from jira_planner.features.assignments.suggester import (
    AssignmentBuildResult,
    MemberDirectory,
    item_days,
    suggest_assignments,
)

__all__ = [
    "AssignmentBuildResult",
    "MemberDirectory",
    "import_team_members",
    "item_days",
    "member_id_for",
    "suggest_assignments",
]
