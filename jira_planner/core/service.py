"""SyncService: orchestrates preview, confirmation and apply for each connection."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

import pytz

from jira_planner.features.assignments import import_team_members, suggest_assignments
from jira_planner.features.hierarchy import build_projects
from jira_planner.features.reconcile import compute_sync_diff, merge_work_items, refresh_stale_items

from .config import FIELD_IDS, JIRA_DIAGNOSE_FIELDS, SYNC_STATUSES, SyncSettings
from .fetcher import ProgressCallback, SyncConfigurationError, fetch_work_items
from .jira_client import JiraAPI, JiraAPIError
from .mappers import extract_link_key, map_item_type, resolve_parent_key
from .models import Connection, SyncDiff, SyncHistoryEntry, SyncResult
from .query import build_jql
from .status import explain_status_exclusion
from .store import StateStore

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Connection], JiraAPI]
ConfirmCallback = Callable[[Connection, SyncDiff], bool]


@dataclass(slots=True)
class PreviewResult:
    connection_id: str
    diff: SyncDiff | None = None
    jql: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.diff is not None

    @property
    def empty(self) -> bool:
        return self.ok and not self.diff.fetched_items and not self.diff.has_changes


@dataclass(slots=True)
class ConnectionTestResult:
    success: bool
    message: str
    display_name: str | None = None


@dataclass(slots=True)
class KeyDiagnosis:
    key: str
    found: bool = False
    type: str | None = None
    type_name: str | None = None
    status: str | None = None
    status_category_key: str | None = None
    parent_key: str | None = None
    epic_link: str | None = None
    stored: bool = False
    reasons: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def would_sync(self) -> bool:
        return self.found and not self.reasons


class SyncService:
    def __init__(
        self,
        store: StateStore,
        settings: SyncSettings | None = None,
        client_factory: ClientFactory = JiraAPI.from_connection,
    ):
        self.store = store
        self.settings = settings or SyncSettings()
        self.client_factory = client_factory
        self._tz = pytz.timezone(self.settings.timezone)

    def _now(self) -> str:
        return datetime.now(self._tz).isoformat()

    def _today(self) -> date:
        return datetime.now(self._tz).date()

    # ------------------ Connection Utilities ------------------
    def test_connection(self, connection: Connection) -> ConnectionTestResult:
        try:
            me = self.client_factory(connection).myself()
        except JiraAPIError as exc:
            return ConnectionTestResult(False, str(exc))
        except Exception as exc:
            logger.exception("Connection test failed for %s", connection.id)
            return ConnectionTestResult(False, f"Connection failed: {exc}")
        name = me.get("displayName") or me.get("emailAddress") or connection.user_email
        return ConnectionTestResult(True, f"Connected as {name}", name)

    def list_projects(self, connection: Connection) -> tuple[list[dict[str, str]], str | None]:
        """Return ``(projects, error)``; each project is ``{"key", "name"}``."""
        try:
            values = self.client_factory(connection).search_projects()
        except JiraAPIError as exc:
            return [], str(exc)
        except Exception as exc:
            logger.exception("Project listing failed for %s", connection.id)
            return [], f"Project listing failed: {exc}"
        projects = [{"key": str(p.get("key")), "name": str(p.get("name") or p.get("key"))} for p in values if p.get("key")]
        return projects, None

    def diagnose_key(self, connection: Connection, key: str) -> KeyDiagnosis:
        """Explain whether one Jira key would be included by this connection."""
        key = key.strip().upper()
        diagnosis = KeyDiagnosis(key=key)
        diagnosis.stored = any(i.jira_key == key for i in self.store.get_work_items(connection.id))
        try:
            raw = self.client_factory(connection).get_issue(key, list(JIRA_DIAGNOSE_FIELDS))
        except JiraAPIError as exc:
            diagnosis.error = f"{key} not found" if exc.status_code == 404 else str(exc)
            return diagnosis
        except Exception as exc:
            logger.exception("Diagnosis of %s failed", key)
            diagnosis.error = str(exc)
            return diagnosis

        fields = raw.get("fields") or {}
        issuetype = fields.get("issuetype") or {}
        status = fields.get("status") or {}
        diagnosis.found = True
        diagnosis.type_name = issuetype.get("name") or "Task"
        diagnosis.type = map_item_type(diagnosis.type_name)
        diagnosis.status = status.get("name") or "Unknown"
        diagnosis.status_category_key = (status.get("statusCategory") or {}).get("key")
        diagnosis.parent_key = resolve_parent_key(fields)
        diagnosis.epic_link = extract_link_key(fields.get(FIELD_IDS["epic_link"])) or extract_link_key(
            fields.get(FIELD_IDS["epic_link_alt"])
        )

        if key.split("-")[0] != connection.project_key.upper():
            diagnosis.reasons.append(f"{key} is not in project {connection.project_key}")
        if diagnosis.type not in connection.enabled_types:
            diagnosis.reasons.append(f'Type "{diagnosis.type_name}" is not enabled for sync')
        else:
            reason = explain_status_exclusion(
                diagnosis.status,
                diagnosis.status_category_key,
                connection.status_filter_for(diagnosis.type),
            )
            if reason:
                diagnosis.reasons.append(reason)
        return diagnosis

    # ------------------ Sync Status ------------------
    def _set_status(self, connection: Connection, status: str, error: str | None = None) -> None:
        if status not in SYNC_STATUSES:
            raise ValueError(f"Unknown sync status: {status!r}")
        connection.last_sync_status = status
        connection.last_sync_error = error
        self.store.save_connection(connection)

    def _record(self, connection: Connection, result: SyncResult) -> None:
        entry = SyncHistoryEntry(
            timestamp=result.timestamp,
            status="success" if result.success else "error",
            items_synced=result.items_synced,
            items_created=result.items_created,
            items_updated=result.items_updated,
            items_removed=result.items_removed,
            mappings_preserved=result.mappings_preserved,
            error="; ".join(result.errors) or None,
        )
        connection.sync_history = [entry, *connection.sync_history][: self.settings.sync_history_limit]
        connection.last_sync_at = result.timestamp
        self._set_status(connection, entry.status, entry.error)

    def _fail(self, connection: Connection, message: str) -> SyncResult:
        logger.error("Sync of %s failed: %s", connection.id, message)
        result = SyncResult(connection_id=connection.id, success=False, errors=[message], timestamp=self._now())
        self._record(connection, result)
        return result

    def cancel_preview(self, connection: Connection) -> None:
        """Discard a previewed diff; nothing was written besides the status."""
        logger.info("Sync of %s cancelled", connection.id)
        self._set_status(connection, "idle")

    # ------------------ Preview / Apply ------------------
    def fetch_preview(self, connection: Connection, progress: ProgressCallback | None = None) -> PreviewResult:
        """Fetch and diff without writing any item, project or assignment."""
        jql = build_jql(connection)
        if not jql:
            return PreviewResult(connection.id, error=self._fail(connection, "No issue types selected").errors[0])

        self._set_status(connection, "syncing")
        try:
            api = self.client_factory(connection)
            fetched = fetch_work_items(api, connection, progress=progress)
            if fetched.story_points_field:
                connection.story_points_field = fetched.story_points_field
            diff = compute_sync_diff(self.store, connection.id, fetched.items)
            if self.settings.refresh_stale and diff.to_keep_stale:
                if progress:
                    progress(f"Refreshing {len(diff.to_keep_stale)} stale item(s)", None, None)
                diff = refresh_stale_items(api, connection, self.store, diff)
        except (SyncConfigurationError, JiraAPIError) as exc:
            return PreviewResult(connection.id, jql=jql, error=self._fail(connection, str(exc)).errors[0])
        except Exception as exc:
            logger.exception("Unexpected error fetching %s", connection.id)
            return PreviewResult(connection.id, jql=jql, error=self._fail(connection, f"Sync failed: {exc}").errors[0])

        logger.info(
            "Preview %s: %s to add, %s to update, %s to remove, %s stale",
            connection.id,
            len(diff.to_add),
            len(diff.to_update),
            len(diff.to_remove),
            len(diff.to_keep_stale),
        )
        self.store.save_connection(connection)
        return PreviewResult(connection.id, diff=diff, jql=jql)

    def apply_sync(self, diff: SyncDiff, connection: Connection) -> SyncResult:
        """Write a confirmed diff: merge, then project hierarchy and assignments.

        Every step is computed before anything is stored, so a failure
        leaves items, members and projects as they were.
        """
        result = SyncResult(connection_id=connection.id, timestamp=self._now())
        try:
            merged = merge_work_items(
                self.store,
                connection.id,
                diff.fetched_items,
                keep_stale=diff.to_keep_stale,
                persist=False,
            )
            result.items_synced = len(diff.fetched_items)
            result.items_created = merged.created
            result.items_updated = merged.updated
            result.items_removed = merged.removed
            result.items_stale = merged.stale
            result.mappings_preserved = merged.mappings_preserved
            items = merged.items
            members = self.store.get_team_members()
            projects = None

            if self.settings.import_team_members:
                members, result.members_imported = import_team_members(items, members)

            if connection.auto_create_projects:
                built = build_projects(
                    items,
                    connection,
                    self.store.get_projects(),
                    self.store.get_sprints(),
                    today=self._today(),
                )
                items = built.items
                projects = built.projects
                result.hierarchy_mode = built.mode
                result.projects_created = built.projects_created
                result.projects_updated = built.projects_updated
                result.phases_created = built.phases_created

            if connection.auto_create_assignments:
                suggested = suggest_assignments(
                    [i for i in items if not i.stale_from_jira],
                    members,
                    projects if projects is not None else self.store.get_projects(),
                    self.store.get_sprints(),
                    self.settings.story_points_to_days,
                )
                projects = suggested.projects
                result.assignments_created = suggested.assignments_created
                result.assignments_updated = suggested.assignments_updated
        except Exception as exc:
            logger.exception("Applying sync for %s failed", connection.id)
            return self._fail(connection, f"Apply failed: {exc}")

        self.store.replace_work_items(connection.id, items)
        if result.members_imported:
            self.store.save_team_members(members)
        if projects is not None:
            self.store.save_projects(projects)

        result.success = True
        result.items = items
        self._record(connection, result)
        logger.info("%s: %s", connection.id, result.summary())
        return result

    def sync_all(
        self,
        connections: Sequence[Connection] | None = None,
        confirm: ConfirmCallback | None = None,
        progress: ProgressCallback | None = None,
    ) -> list[SyncResult]:
        """Sync active connections one after another.

        ``confirm`` sees each previewed diff; declining cancels that
        connection and stops the batch. Without a callback every diff is applied.
        """
        targets = [c for c in (connections if connections is not None else self.store.get_connections()) if c.is_active]
        results: list[SyncResult] = []
        for connection in targets:
            preview = self.fetch_preview(connection, progress)
            if not preview.ok:
                results.append(
                    SyncResult(
                        connection_id=connection.id,
                        success=False,
                        errors=[preview.error or "Sync failed"],
                        timestamp=self._now(),
                    )
                )
                continue
            if confirm is not None and not confirm(connection, preview.diff):
                self.cancel_preview(connection)
                break
            results.append(self.apply_sync(preview.diff, connection))
        return results
