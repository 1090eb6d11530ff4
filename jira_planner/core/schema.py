"""Best-effort discovery of instance-specific custom fields."""

from __future__ import annotations

import logging
import re

from .config import STORY_POINTS_FIELD_PATTERN

logger = logging.getLogger(__name__)

_STORY_POINTS_RE = re.compile(STORY_POINTS_FIELD_PATTERN, re.IGNORECASE)


def find_story_points_field(fields: list[dict]) -> str | None:
    for meta in fields:
        if not isinstance(meta, dict) or not meta.get("custom"):
            continue
        name = str(meta.get("name") or "").strip()
        if _STORY_POINTS_RE.match(name) and meta.get("id"):
            return str(meta["id"])
    return None


def discover_story_points_field(api) -> str | None:
    """Look up the custom field holding story points on this Jira instance.

    Never raises: any failure only disables the instance-specific source for
    the current sync.
    """
    try:
        fields = api.get_fields()
    except Exception as exc:
        logger.warning("Story points field discovery failed: %s", exc)
        return None
    field_id = find_story_points_field(fields)
    if field_id:
        logger.info("Discovered story points field %s", field_id)
    else:
        logger.debug("No story points custom field found among %s fields", len(fields))
    return field_id
