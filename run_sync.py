"""Command line launcher for the Jira to capacity-planner sync.

Usage:
  python run_sync.py --config planner.yaml              # preview, confirm, apply
  python run_sync.py --config planner.yaml --yes        # apply without prompting
  python run_sync.py --config planner.yaml test         # check credentials
  python run_sync.py --config planner.yaml projects     # list visible projects
  python run_sync.py --config planner.yaml diagnose PROJ-123
"""

from __future__ import annotations

import argparse
import logging
import sys

import pandas as pd

from jira_planner.core.config_loader import ConfigError, load_config
from jira_planner.core.mappers import status_breakdown
from jira_planner.core.models import Connection, SyncDiff
from jira_planner.core.service import SyncService
from jira_planner.core.sprints import generate_sprints
from jira_planner.core.store import JsonFileStore
from jira_planner.features.reconcile import diff_to_dataframe

DEFAULT_STATE_PATH = "planner_state.json"

logger = logging.getLogger("run_sync")


def _print_progress(message: str, done: int | None, total: int | None) -> None:
    if done is not None and total:
        print(f"  {message} ({done}/{total})")
    else:
        print(f"  {message}")


def _confirm(assume_yes: bool):
    def confirm(connection: Connection, diff: SyncDiff) -> bool:
        table = diff_to_dataframe(diff)
        print(f"\n[{connection.id}] {connection.project_key}")
        if table.empty:
            print("  No changes.")
        else:
            with pd.option_context("display.max_rows", 200, "display.width", 160):
                print(table.to_string(index=False))
        print(
            f"  add={len(diff.to_add)} update={len(diff.to_update)} "
            f"remove={len(diff.to_remove)} keep_stale={len(diff.to_keep_stale)} "
            f"mappings_preserved={diff.mappings_to_preserve}"
        )
        if assume_yes:
            return True
        return input("Apply these changes? [y/N] ").strip().lower() in ("y", "yes")

    return confirm


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Sync Jira work items into the capacity planner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", required=True, help="YAML configuration file")
    parser.add_argument("--state", help=f"JSON state file (default: config state_path or {DEFAULT_STATE_PATH})")
    parser.add_argument("--connection", action="append", help="Only use these connection ids")
    parser.add_argument("--yes", action="store_true", help="Apply without asking for confirmation")
    parser.add_argument("--log-level", help="Logging level (default from config, INFO)")
    parser.add_argument("command", nargs="?", default="sync", choices=["sync", "test", "projects", "diagnose"])
    parser.add_argument("key", nargs="?", help="Issue key for 'diagnose'")
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"Error: {exc}")
        return 1

    logging.basicConfig(
        level=(args.log_level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        store = JsonFileStore(args.state or config.state_path or DEFAULT_STATE_PATH)
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1
    if config.team_members and not store.get_team_members():
        store.save_team_members(config.team_members)
    if config.sprints:
        store.save_sprints(config.sprints)
    elif not store.get_sprints():
        store.save_sprints(generate_sprints(config.sprint_calendar))

    connections = [store.register_connection(c) for c in config.connections]
    if args.connection:
        connections = [c for c in connections if c.id in args.connection]
    if not connections:
        print("Error: no matching connections configured")
        return 1

    service = SyncService(store, config.settings)

    if args.command == "test":
        failed = 0
        for connection in connections:
            outcome = service.test_connection(connection)
            print(f"[{connection.id}] {'OK' if outcome.success else 'FAILED'}: {outcome.message}")
            failed += not outcome.success
        return 1 if failed else 0

    if args.command == "projects":
        projects, error = service.list_projects(connections[0])
        if error:
            print(f"Error: {error}")
            return 1
        for project in projects:
            print(f"{project['key']:<12} {project['name']}")
        return 0

    if args.command == "diagnose":
        if not args.key:
            print("Error: diagnose needs an issue key")
            return 1
        diagnosis = service.diagnose_key(connections[0], args.key)
        if diagnosis.error:
            print(f"Error: {diagnosis.error}")
            return 1
        print(f"{diagnosis.key}: {diagnosis.type_name} ({diagnosis.type}), status {diagnosis.status}")
        print(f"  parent: {diagnosis.parent_key or '-'}  epic link: {diagnosis.epic_link or '-'}")
        print(f"  stored locally: {'yes' if diagnosis.stored else 'no'}")
        if diagnosis.would_sync:
            print("  Included by the current sync settings")
        for reason in diagnosis.reasons:
            print(f"  Excluded: {reason}")
        return 0

    results = service.sync_all(connections, confirm=_confirm(args.yes), progress=_print_progress)
    for result in results:
        print(result.summary())
        if result.success and result.items:
            print(status_breakdown(result.items).to_string())
    return 0 if all(r.success for r in results) else 1


if __name__ == "__main__":
    sys.exit(main())
