"""Effort suggestions per (phase, member, quarter) derived from story points."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace

from jira_planner.core.mappers import round_one_decimal
from jira_planner.core.models import Assignment, Phase, Project, Sprint, TeamMember, WorkItem
from jira_planner.core.sprints import quarter_for_sprint_name

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AssignmentBuildResult:
    projects: list[Project]
    assignments_created: int = 0
    assignments_updated: int = 0
    skipped_manual: int = 0


class MemberDirectory:
    """Team member lookup by email (case-insensitive), then Jira account id."""

    def __init__(self, members: Sequence[TeamMember]):
        self.by_email = {m.email.lower(): m for m in members if m.email}
        self.by_account = {m.jira_account_id: m for m in members if m.jira_account_id}

    def find(self, email: str | None, account_id: str | None = None) -> TeamMember | None:
        if email:
            member = self.by_email.get(email.lower()) or self.by_account.get(email)
            if member:
                return member
        if account_id:
            return self.by_account.get(account_id)
        return None


def item_days(item: WorkItem, points_to_days: float) -> float:
    if not item.story_points:
        return 0.0
    return round_one_decimal(item.story_points * points_to_days)


def suggest_assignments(
    items: Sequence[WorkItem],
    members: Sequence[TeamMember],
    projects: Sequence[Project],
    sprints: Sequence[Sprint],
    points_to_days: float,
) -> AssignmentBuildResult:
    """Accumulate each mapped item's effort into its phase's assignments.

    Assignments with ``jira_synced is False`` are user-authored and left
    alone. Every call adds on top of what is stored, so run it once per sync.
    """
    directory = MemberDirectory(members)
    out = [replace(p, phases=[replace(ph, assignments=list(ph.assignments)) for ph in p.phases]) for p in projects]
    phases: dict[tuple[str, str], Phase] = {(p.id, ph.id): ph for p in out for ph in p.phases}
    result = AssignmentBuildResult(projects=out)

    for item in items:
        if not item.assignee_identity or not item.sprint_name:
            continue
        if not item.mapped_project_id or not item.mapped_phase_id:
            continue
        member = directory.find(item.assignee_email, item.assignee_account_id)
        if member is None:
            continue
        quarter = quarter_for_sprint_name(item.sprint_name, sprints, item.sprint_start_date)
        if not quarter:
            logger.debug("No calendar quarter for sprint %r (%s)", item.sprint_name, item.jira_key)
            continue
        days = item_days(item, points_to_days)
        if days <= 0:
            continue
        phase = phases.get((item.mapped_project_id, item.mapped_phase_id))
        if phase is None:
            continue

        existing = next(
            (a for a in phase.assignments if a.member_id == member.id and a.quarter == quarter),
            None,
        )
        if existing is None:
            phase.assignments.append(Assignment(member_id=member.id, quarter=quarter, days=days, jira_synced=True))
            result.assignments_created += 1
        elif existing.jira_synced is False:
            result.skipped_manual += 1
        else:
            index = phase.assignments.index(existing)
            phase.assignments[index] = replace(
                existing,
                days=round_one_decimal(existing.days + days),
                jira_synced=True,
            )
            result.assignments_updated += 1

    logger.info(
        "Assignments: %s created, %s updated, %s manual skipped",
        result.assignments_created,
        result.assignments_updated,
        result.skipped_manual,
    )
    return result
