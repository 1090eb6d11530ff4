"""Sprint calendar helpers: quarter labels, sprint generation, name lookup."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, timedelta

import pytz

from .config import TIMEZONE, SprintCalendarSettings
from .models import Sprint


def quarter_for_date(value: date) -> str:
    """Quarter label for a date, e.g. ``Q2 2026``."""
    return f"Q{(value.month - 1) // 3 + 1} {value.year}"


def current_quarter(tz_name: str = TIMEZONE) -> str:
    return quarter_for_date(datetime.now(pytz.timezone(tz_name)).date())


def _first_monday(year: int) -> date:
    d = date(year, 1, 1)
    return d + timedelta(days=(7 - d.weekday()) % 7)


def generate_sprints_for_year(year: int, calendar: SprintCalendarSettings | None = None) -> list[Sprint]:
    """Lay out ``sprints_per_year`` back-to-back sprints for ``year``.

    A bye week is skipped after every sprint number listed in
    ``bye_weeks_after``. Each sprint belongs to the quarter of its start date.
    """
    calendar = calendar or SprintCalendarSettings()
    if calendar.start_date:
        anchor = date.fromisoformat(calendar.start_date)
        current = date(year, anchor.month, anchor.day)
    else:
        current = _first_monday(year)

    length = timedelta(weeks=calendar.duration_weeks)
    sprints: list[Sprint] = []
    for number in range(1, calendar.sprints_per_year + 1):
        end = current + length - timedelta(days=1)
        sprints.append(
            Sprint(
                id=f"sprint-{number}-{year}",
                name=f"Sprint {number}",
                number=number,
                year=year,
                start_date=current.isoformat(),
                end_date=end.isoformat(),
                quarter=quarter_for_date(current),
            )
        )
        current += length
        if number in calendar.bye_weeks_after:
            current += timedelta(weeks=1)
    return sprints


def generate_sprints(
    calendar: SprintCalendarSettings | None = None,
    years: int = 2,
    start_year: int | None = None,
) -> list[Sprint]:
    first = start_year or datetime.now(pytz.timezone(TIMEZONE)).year
    out: list[Sprint] = []
    for year in range(first, first + years):
        out.extend(generate_sprints_for_year(year, calendar))
    return out


def _year_of(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(str(value)[:4])
    except ValueError:
        return None


def quarter_for_sprint_name(
    sprint_name: str | None,
    sprints: Sequence[Sprint],
    sprint_start: str | None = None,
) -> str | None:
    """Resolve a Jira sprint name to a planning quarter via the calendar.

    A calendar sprint matches when its name is a substring of the Jira sprint
    name (case-insensitive). The longest matching name wins so "Sprint 1" does
    not shadow "Sprint 12"; among equally long matches the one whose year
    equals the Jira sprint's start year is preferred, else the first listed.
    """
    if not sprint_name:
        return None
    lower = sprint_name.lower()
    matches = [s for s in sprints if s.name and s.name.lower() in lower]
    if not matches:
        return None
    longest = max(len(s.name) for s in matches)
    candidates = [s for s in matches if len(s.name) == longest]
    year = _year_of(sprint_start)
    if year is not None:
        for sprint in candidates:
            if sprint.year == year:
                return sprint.quarter
    return candidates[0].quarter
