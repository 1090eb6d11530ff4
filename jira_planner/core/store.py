"""State repositories: the persistence boundary the sync pipeline reads and writes.

The pipeline never touches global state. Each stage receives a ``StateStore``
and only uses the read-all / replace-all operations below, so any durable
backend (database, remote mirror) can be plugged in behind the same calls.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from .models import Connection, Project, Sprint, TeamMember, WorkItem

logger = logging.getLogger(__name__)


class StateStore(ABC):
    @abstractmethod
    def get_work_items(self, connection_id: str) -> list[WorkItem]: ...

    @abstractmethod
    def replace_work_items(self, connection_id: str, items: list[WorkItem]) -> None: ...

    @abstractmethod
    def get_projects(self) -> list[Project]: ...

    @abstractmethod
    def save_projects(self, projects: list[Project]) -> None: ...

    @abstractmethod
    def get_team_members(self) -> list[TeamMember]: ...

    @abstractmethod
    def save_team_members(self, members: list[TeamMember]) -> None: ...

    @abstractmethod
    def get_sprints(self) -> list[Sprint]: ...

    @abstractmethod
    def save_sprints(self, sprints: list[Sprint]) -> None: ...

    @abstractmethod
    def get_connection(self, connection_id: str) -> Connection | None: ...

    @abstractmethod
    def get_connections(self) -> list[Connection]: ...

    @abstractmethod
    def save_connection(self, connection: Connection) -> None: ...

    def register_connection(self, connection: Connection) -> Connection:
        """Store a configured connection, keeping sync state recorded earlier."""
        stored = self.get_connection(connection.id)
        if stored is not None:
            connection.last_sync_at = stored.last_sync_at
            connection.last_sync_status = stored.last_sync_status
            connection.last_sync_error = stored.last_sync_error
            connection.sync_history = list(stored.sync_history)
            connection.story_points_field = connection.story_points_field or stored.story_points_field
        self.save_connection(connection)
        return connection


class MemoryStore(StateStore):
    """In-process store holding one shared document."""

    def __init__(
        self,
        work_items: list[WorkItem] | None = None,
        projects: list[Project] | None = None,
        team_members: list[TeamMember] | None = None,
        sprints: list[Sprint] | None = None,
        connections: list[Connection] | None = None,
    ):
        self.work_items: list[WorkItem] = list(work_items or [])
        self.projects: list[Project] = list(projects or [])
        self.team_members: list[TeamMember] = list(team_members or [])
        self.sprints: list[Sprint] = list(sprints or [])
        self.connections: dict[str, Connection] = {c.id: c for c in connections or []}

    def get_work_items(self, connection_id: str) -> list[WorkItem]:
        return [i for i in self.work_items if i.connection_id == connection_id]

    def replace_work_items(self, connection_id: str, items: list[WorkItem]) -> None:
        others = [i for i in self.work_items if i.connection_id != connection_id]
        self.work_items = others + list(items)

    def get_projects(self) -> list[Project]:
        return list(self.projects)

    def save_projects(self, projects: list[Project]) -> None:
        self.projects = list(projects)

    def get_team_members(self) -> list[TeamMember]:
        return list(self.team_members)

    def save_team_members(self, members: list[TeamMember]) -> None:
        self.team_members = list(members)

    def get_sprints(self) -> list[Sprint]:
        return list(self.sprints)

    def save_sprints(self, sprints: list[Sprint]) -> None:
        self.sprints = list(sprints)

    def get_connection(self, connection_id: str) -> Connection | None:
        return self.connections.get(connection_id)

    def get_connections(self) -> list[Connection]:
        return list(self.connections.values())

    def save_connection(self, connection: Connection) -> None:
        self.connections[connection.id] = connection

    def to_dict(self) -> dict[str, Any]:
        return {
            "work_items": [i.to_dict() for i in self.work_items],
            "projects": [p.to_dict() for p in self.projects],
            "team_members": [m.to_dict() for m in self.team_members],
            "sprints": [s.to_dict() for s in self.sprints],
            "connections": [c.to_dict() for c in self.connections.values()],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MemoryStore:
        return cls(
            work_items=[WorkItem.from_dict(i) for i in data.get("work_items") or []],
            projects=[Project.from_dict(p) for p in data.get("projects") or []],
            team_members=[TeamMember.from_dict(m) for m in data.get("team_members") or []],
            sprints=[Sprint.from_dict(s) for s in data.get("sprints") or []],
            connections=[Connection.from_dict(c) for c in data.get("connections") or []],
        )


class JsonFileStore(MemoryStore):
    """MemoryStore persisted to a JSON document after every write."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        loaded = MemoryStore()
        if self.path.exists():
            try:
                loaded = MemoryStore.from_dict(json.loads(self.path.read_text()))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
                raise ValueError(f"Unreadable state file {self.path}: {exc}") from exc
        super().__init__(
            work_items=loaded.work_items,
            projects=loaded.projects,
            team_members=loaded.team_members,
            sprints=loaded.sprints,
            connections=list(loaded.connections.values()),
        )

    def flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self.to_dict(), indent=2))
        logger.debug("Saved state to %s", self.path)

    def replace_work_items(self, connection_id: str, items: list[WorkItem]) -> None:
        super().replace_work_items(connection_id, items)
        self.flush()

    def save_projects(self, projects: list[Project]) -> None:
        super().save_projects(projects)
        self.flush()

    def save_team_members(self, members: list[TeamMember]) -> None:
        super().save_team_members(members)
        self.flush()

    def save_sprints(self, sprints: list[Sprint]) -> None:
        super().save_sprints(sprints)
        self.flush()

    def save_connection(self, connection: Connection) -> None:
        super().save_connection(connection)
        self.flush()
