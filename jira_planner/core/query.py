"""Build the JQL query for a connection from its type toggles and status filters."""

from __future__ import annotations

from .config import ITEM_TYPE_JQL_NAMES, ITEM_TYPES, STATUS_FILTER_CLAUSES
from .models import Connection


def enabled_type_filters(connection: Connection) -> list[tuple[str, str]]:
    """Enabled types in canonical order paired with their status filter."""
    enabled = set(connection.enabled_types)
    return [(t, connection.status_filter_for(t)) for t in ITEM_TYPES if t in enabled]


def _type_expr(type_names: list[str], *, single_quoted: bool) -> str:
    if single_quoted and len(type_names) == 1:
        return f'issuetype = "{type_names[0]}"'
    return f"issuetype IN ({', '.join(type_names)})"


def _with_status(expr: str, status_filter: str) -> str:
    clause = STATUS_FILTER_CLAUSES.get(status_filter, "")
    return f"{expr} AND {clause}" if clause else expr


def build_jql(connection: Connection) -> str | None:
    """Return the search query for ``connection`` or None if no type is enabled.

    Types sharing a status filter are grouped. A single group produces a flat
    query; several groups produce a parenthesized OR so each keeps its own
    filter. The optional free-form clause is ANDed in its own parentheses.
    """
    enabled = enabled_type_filters(connection)
    if not enabled:
        return None

    groups: dict[str, list[str]] = {}
    for item_type, status_filter in enabled:
        groups.setdefault(status_filter, []).append(ITEM_TYPE_JQL_NAMES[item_type])

    project = f'project = "{connection.project_key}"'
    if len(groups) == 1:
        ((status_filter, type_names),) = groups.items()
        scope = _with_status(_type_expr(type_names, single_quoted=False), status_filter)
    else:
        clauses = [
            f"({_with_status(_type_expr(type_names, single_quoted=True), status_filter)})"
            for status_filter, type_names in groups.items()
        ]
        scope = f"({' OR '.join(clauses)})"

    jql = f"{project} AND {scope}"
    extra = (connection.jql_filter or "").strip()
    if extra:
        jql += f" AND ({extra})"
    return f"{jql} ORDER BY created DESC"


def build_keys_jql(keys: list[str]) -> str:
    quoted = ", ".join(f'"{k}"' for k in keys)
    return f"key IN ({quoted})"
