"""Shared builders for raw Jira payloads, work items and a fake API."""

from __future__ import annotations

import re

from jira_planner.core.jira_client import JiraAPI, JiraAPIError
from jira_planner.core.models import Connection, WorkItem

CATEGORY_KEYS = {"To Do": "new", "In Progress": "indeterminate", "Done": "done"}


def raw_issue(
    key,
    type_name="Story",
    *,
    summary=None,
    status="To Do",
    parent=None,
    points=None,
    sprint=None,
    sprint_start=None,
    assignee=None,
    **extra,
):
    fields = {
        "summary": summary or f"Summary of {key}",
        "issuetype": {"name": type_name},
        "status": {"name": status, "statusCategory": {"key": CATEGORY_KEYS.get(status, "new")}},
        "created": "2026-01-05T10:00:00.000+0000",
        "updated": "2026-01-06T10:00:00.000+0000",
        "labels": [],
        "components": [],
    }
    if parent:
        fields["parent"] = {"key": parent, "id": f"id-{parent}"}
    if points is not None:
        fields["customfield_10016"] = points
    if sprint:
        fields["customfield_10020"] = [
            {"id": 1, "name": sprint, "state": "active", "startDate": sprint_start or "2026-01-26T00:00:00.000Z"}
        ]
    if assignee:
        fields["assignee"] = {"emailAddress": assignee, "accountId": f"acc-{assignee}", "displayName": assignee}
    fields.update(extra)
    return {"id": f"id-{key}", "key": key, "fields": fields}


def work_item(key, type="story", connection_id="c1", **kwargs):
    defaults = {
        "jira_key": key,
        "jira_id": f"id-{key}",
        "connection_id": connection_id,
        "summary": kwargs.pop("summary", f"Summary of {key}"),
        "type": type,
        "type_name": type.capitalize(),
        "status": "To Do",
        "status_category": "todo",
    }
    defaults.update(kwargs)
    return WorkItem(**defaults)


def connection(**kwargs):
    defaults = {
        "id": "c1",
        "name": "Shop",
        "base_url": "https://example.atlassian.net",
        "user_email": "me@example.com",
        "api_token": "token",
        "project_key": "SHOP",
        "project_name": "Shop Platform",
    }
    defaults.update(kwargs)
    return Connection(**defaults)


class DummyAPI(JiraAPI):
    """Serves canned search pages in order and answers ``key IN (...)`` lookups."""

    def __init__(self, pages=None, by_key=None, fields=None, fields_error=None, page_error=None):
        self.server = "https://example.atlassian.net"
        self.pages = list(pages or [])
        self.by_key = {i["key"]: i for i in by_key or []}
        self.fields = fields if fields is not None else []
        self.fields_error = fields_error
        self.page_error = page_error
        self.search_calls = []
        self.key_lookups = []

    def get_fields(self):
        if self.fields_error:
            raise self.fields_error
        return self.fields

    def search_page(self, jql, fields, max_results, *, next_page_token=None, start_at=0):
        if jql.startswith("key IN"):
            keys = re.findall(r'"([^"]+)"', jql)
            self.key_lookups.append(keys)
            return {"issues": [self.by_key[k] for k in keys if k in self.by_key]}
        self.search_calls.append({"jql": jql, "token": next_page_token, "start_at": start_at})
        if self.page_error:
            raise self.page_error
        if not self.pages:
            return {"issues": []}
        return self.pages.pop(0)

    def myself(self):
        return {"displayName": "Me Myself", "emailAddress": "me@example.com"}

    def search_projects(self, max_results=100):
        return [{"key": "SHOP", "name": "Shop Platform"}, {"key": "OPS", "name": "Operations"}]

    def get_issue(self, issue_key, fields):
        if issue_key not in self.by_key:
            raise JiraAPIError("Jira resource not found", 404)
        return self.by_key[issue_key]
