"""Project the flat list of synced items onto local Projects and Phases."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import date

from jira_planner.core.config import DEFAULT_PROJECT_PRIORITY, DEFAULT_PROJECT_STATUS
from jira_planner.core.models import Connection, Phase, Project, Sprint, WorkItem
from jira_planner.core.sprints import current_quarter, quarter_for_date, quarter_for_sprint_name

logger = logging.getLogger(__name__)

LEAF_TYPES = ("story", "task", "bug")


@dataclass(slots=True)
class ProjectBuildResult:
    projects: list[Project]
    items: list[WorkItem]
    mode: str
    projects_created: int = 0
    projects_updated: int = 0
    phases_created: int = 0


def resolve_hierarchy_mode(items: Sequence[WorkItem], connection: Connection) -> str:
    if connection.hierarchy_mode != "auto":
        return connection.hierarchy_mode
    types = {i.type for i in items}
    if "epic" in types:
        return "epic_as_project"
    if "feature" in types:
        return "feature_as_project"
    return "flat"


def stable_id(prefix: str, connection_id: str, key: str) -> str:
    digest = hashlib.sha1(f"{connection_id}:{key}".encode()).hexdigest()[:12]
    return f"{prefix}-{digest}"


def flat_source_key(connection: Connection) -> str:
    return f"flat-{connection.id}"


def _copy_project(project: Project) -> Project:
    phases = [replace(ph, assignments=list(ph.assignments)) for ph in project.phases]
    return replace(project, phases=phases)


class _Builder:
    """Upserts projects and phases through one key index per entity kind."""

    def __init__(self, connection: Connection, projects: Sequence[Project], sprints: Sequence[Sprint], fallback_quarter: str):
        self.connection = connection
        self.sprints = sprints
        self.fallback_quarter = fallback_quarter
        self.by_key: dict[str, Project] = {
            p.jira_source_key: p
            for p in projects
            if p.synced_from_jira and p.jira_source_key and p.jira_connection_id in (None, connection.id)
        }
        self.touched: dict[str, Project] = {}
        self.created_keys: list[str] = []
        self.phases: dict[str, dict[str, Phase]] = {}
        self.projects_created = 0
        self.projects_updated = 0
        self.phases_created = 0

    def project(self, key: str, name: str) -> Project:
        if key in self.touched:
            return self.touched[key]
        existing = self.by_key.get(key)
        if existing is not None:
            project = _copy_project(existing)
            project.jira_connection_id = self.connection.id
            if project.name != name:
                logger.debug("Renaming project %s: %r -> %r", key, project.name, name)
                project.name = name
                self.projects_updated += 1
        else:
            project = Project(
                id=stable_id("project", self.connection.id, key),
                name=name,
                priority=DEFAULT_PROJECT_PRIORITY,
                status=DEFAULT_PROJECT_STATUS,
                jira_source_key=key,
                synced_from_jira=True,
                jira_connection_id=self.connection.id,
            )
            self.created_keys.append(key)
            self.projects_created += 1
        self.touched[key] = project
        self.phases[key] = {ph.jira_source_key: ph for ph in project.phases if ph.jira_source_key}
        return project

    def phase(self, project_key: str, item: WorkItem) -> Phase:
        project = self.touched[project_key]
        index = self.phases[project_key]
        existing = index.get(item.jira_key)
        if existing is not None:
            existing.name = item.summary
            return existing
        quarter = (
            quarter_for_sprint_name(item.sprint_name, self.sprints, item.sprint_start_date)
            or self.fallback_quarter
        )
        phase = Phase(
            id=stable_id("phase", self.connection.id, f"{project_key}:{item.jira_key}"),
            name=item.summary,
            start_quarter=quarter,
            end_quarter=quarter,
            jira_source_key=item.jira_key,
        )
        project.phases.append(phase)
        index[item.jira_key] = phase
        self.phases_created += 1
        return phase

    def assemble(self, projects: Sequence[Project]) -> list[Project]:
        out: list[Project] = []
        for p in projects:
            touched = self.touched.get(p.jira_source_key) if p.synced_from_jira and p.jira_source_key else None
            if touched is not None and self.by_key.get(p.jira_source_key) is p:
                out.append(touched)
            else:
                out.append(p)
        out.extend(self.touched[key] for key in self.created_keys)
        return out


def _by_key(items: Sequence[WorkItem], item_type: str) -> list[WorkItem]:
    return sorted((i for i in items if i.type == item_type), key=lambda i: i.jira_key)


def _epic_as_project(builder: _Builder, items: Sequence[WorkItem]) -> dict[str, tuple[str, str | None]]:
    resolved: dict[str, tuple[str, str | None]] = {}
    epic_keys = set()
    for epic in _by_key(items, "epic"):
        epic_keys.add(epic.jira_key)
        resolved[epic.jira_key] = (builder.project(epic.jira_key, epic.summary).id, None)

    for feature in _by_key(items, "feature"):
        if feature.parent_key in epic_keys:
            project = builder.touched[feature.parent_key]
            phase = builder.phase(feature.parent_key, feature)
            resolved[feature.jira_key] = (project.id, phase.id)
        else:
            resolved[feature.jira_key] = (builder.project(feature.jira_key, feature.summary).id, None)

    feature_targets = {i.jira_key: resolved[i.jira_key] for i in items if i.type == "feature"}
    for item in items:
        if item.type not in LEAF_TYPES or not item.parent_key:
            continue
        if item.parent_key in feature_targets:
            resolved[item.jira_key] = feature_targets[item.parent_key]
        elif item.parent_key in epic_keys:
            resolved[item.jira_key] = (builder.touched[item.parent_key].id, None)
    return resolved


def _feature_as_project(builder: _Builder, items: Sequence[WorkItem]) -> dict[str, tuple[str, str | None]]:
    resolved: dict[str, tuple[str, str | None]] = {}
    for feature in _by_key(items, "feature"):
        resolved[feature.jira_key] = (builder.project(feature.jira_key, feature.summary).id, None)
    for item in items:
        if item.type == "feature" or not item.parent_key:
            continue
        parent = builder.touched.get(item.parent_key)
        if parent is not None:
            resolved[item.jira_key] = (parent.id, None)
    return resolved


def _flat(builder: _Builder, items: Sequence[WorkItem]) -> dict[str, tuple[str, str | None]]:
    connection = builder.connection
    name = connection.project_name or connection.project_key
    project = builder.project(flat_source_key(connection), name)
    return {i.jira_key: (project.id, None) for i in items}


MODE_BUILDERS = {
    "epic_as_project": _epic_as_project,
    "feature_as_project": _feature_as_project,
    "flat": _flat,
}


def build_projects(
    items: Sequence[WorkItem],
    connection: Connection,
    projects: Sequence[Project],
    sprints: Sequence[Sprint] = (),
    today: date | None = None,
) -> ProjectBuildResult:
    """Create or update tracker-sourced projects and map items onto them.

    Parameters
    ----------
    items : sequence of WorkItem
        Merged items of one connection (stale ones included).
    connection : Connection
        Supplies the hierarchy mode and the flat project name.
    projects : sequence of Project
        Every local project. Manual projects and projects of other
        connections are returned unchanged and in place.
    sprints : sequence of Sprint
        Calendar used to date new phases.
    today : date, optional
        Fallback quarter for phases whose sprint does not resolve.

    Returns
    -------
    ProjectBuildResult
        Inputs are not mutated; the result holds copies.
    """
    mode = resolve_hierarchy_mode(items, connection)
    fallback = quarter_for_date(today) if today else current_quarter()
    builder = _Builder(connection, projects, sprints, fallback)
    resolved = MODE_BUILDERS[mode](builder, items)

    out_items: list[WorkItem] = []
    for item in items:
        item = replace(item)
        target = resolved.get(item.jira_key)
        if target is not None:
            project_id, phase_id = target
            if phase_id is None and item.mapped_project_id != project_id:
                item.mapped_phase_id = None
            item.mapped_project_id = project_id
            if phase_id is not None:
                item.mapped_phase_id = phase_id
        out_items.append(item)

    logger.info(
        "Hierarchy %s for %s: %s project(s) created, %s updated, %s phase(s) created, %s/%s item(s) mapped",
        mode,
        connection.project_key,
        builder.projects_created,
        builder.projects_updated,
        builder.phases_created,
        len(resolved),
        len(items),
    )
    return ProjectBuildResult(
        projects=builder.assemble(projects),
        items=out_items,
        mode=mode,
        projects_created=builder.projects_created,
        projects_updated=builder.projects_updated,
        phases_created=builder.phases_created,
    )
