"""Hierarchy projection of Jira items onto local Projects and Phases."""

from jira_planner.features.hierarchy.projector import (
    ProjectBuildResult,
    build_projects,
    resolve_hierarchy_mode,
    stable_id,
)

__all__ = ["ProjectBuildResult", "build_projects", "resolve_hierarchy_mode", "stable_id"]
