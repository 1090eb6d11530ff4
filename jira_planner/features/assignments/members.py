"""Team members discovered from Jira assignees."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Sequence

from jira_planner.core.models import TeamMember, WorkItem
from jira_planner.features.assignments.suggester import MemberDirectory

logger = logging.getLogger(__name__)


def member_id_for(identity: str) -> str:
    return "member-" + hashlib.sha1(identity.lower().encode()).hexdigest()[:12]


def import_team_members(items: Sequence[WorkItem], members: Sequence[TeamMember]) -> tuple[list[TeamMember], int]:
    """Append a member for every assignee not already known.

    Returns the full member list and how many were added.
    """
    directory = MemberDirectory(members)
    out = list(members)
    added = 0
    for item in items:
        identity = item.assignee_identity
        if not identity or directory.find(item.assignee_email, item.assignee_account_id):
            continue
        member = TeamMember(
            id=member_id_for(identity),
            name=item.assignee_name or identity,
            email=item.assignee_email,
            jira_account_id=item.assignee_account_id,
        )
        out.append(member)
        if member.email:
            directory.by_email[member.email.lower()] = member
        if member.jira_account_id:
            directory.by_account[member.jira_account_id] = member
        added += 1
    if added:
        logger.info("Imported %s team member(s) from Jira assignees", added)
    return out, added
