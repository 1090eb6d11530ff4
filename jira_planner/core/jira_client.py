"""Jira API client wrapper (REST v3 search, field metadata, identity)."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import requests
from jira import JIRA, JIRAError

from .config import JIRA_REST_PREFIX, REQUEST_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class JiraAPIError(Exception):
    """User-friendly Jira transport or authentication error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def describe_status(status_code: int | None) -> str:
    """Convert an HTTP status into the message surfaced on the connection."""
    messages = {
        401: "Invalid credentials",
        403: "Access forbidden",
        404: "Jira resource not found",
    }
    if status_code is None:
        return "Jira request failed"
    return messages.get(status_code, f"Jira returned {status_code}")


class JiraAPI:
    def __init__(self, server: str, email: str, token: str):
        self.server = server.rstrip("/")
        # No retries: a failed page aborts the sync instead of being replayed.
        self.client = JIRA(
            basic_auth=(email, token),
            options={"server": self.server, "rest_api_version": "3"},
            max_retries=0,
            get_server_info=False,
        )

    @classmethod
    def from_connection(cls, connection) -> JiraAPI:
        return cls(connection.base_url, connection.user_email, connection.api_token)

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        session = getattr(self.client, "_session", None)
        if session is None:
            raise JiraAPIError("JIRA session unavailable")
        url = f"{self.server}{JIRA_REST_PREFIX}{path}"
        try:
            resp = session.get(url, params=params, timeout=REQUEST_TIMEOUT_SECONDS)
        except JIRAError as exc:
            raise JiraAPIError(describe_status(exc.status_code), exc.status_code) from exc
        except requests.exceptions.ConnectionError as exc:
            raise JiraAPIError(f"Cannot connect to {self.server}. Check the base URL and network") from exc
        except requests.exceptions.Timeout as exc:
            raise JiraAPIError("Connection to Jira timed out") from exc
        if resp.status_code >= 400:
            logger.debug("GET %s failed %s: %s", path, resp.status_code, resp.text[:200])
            raise JiraAPIError(describe_status(resp.status_code), resp.status_code)
        return resp.json()

    def myself(self) -> dict[str, Any]:
        return self._get("/myself")

    def search_projects(self, max_results: int = 100) -> list[dict[str, Any]]:
        data = self._get("/project/search", {"maxResults": max_results, "orderBy": "name"})
        return list(data.get("values") or [])

    def get_fields(self) -> list[dict[str, Any]]:
        data = self._get("/field")
        return data if isinstance(data, list) else []

    def search_page(
        self,
        jql: str,
        fields: list[str],
        max_results: int,
        *,
        next_page_token: str | None = None,
        start_at: int = 0,
    ) -> dict[str, Any]:
        """Fetch one page of ``/search/jql``.

        The continuation token wins when present; ``startAt`` is only sent for
        older backends that report a ``total`` but never hand out a token.
        """
        params: dict[str, Any] = {
            "jql": jql,
            "maxResults": max_results,
            "fields": ",".join(fields),
        }
        if next_page_token:
            params["nextPageToken"] = next_page_token
        elif start_at > 0:
            params["startAt"] = start_at
        data = self._get("/search/jql", params)
        return data if isinstance(data, dict) else {}

    def get_issue(self, issue_key: str, fields: list[str]) -> dict[str, Any]:
        return self._get(f"/issue/{quote(issue_key.strip(), safe='')}", {"fields": ",".join(fields)})
