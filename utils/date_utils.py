# date_utils.py - ISO week helpers for imports, backfills and Athena filters
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def get_last_number_of_weeks(number: int, today: Optional[date] = None) -> List[Dict[str, int]]:
    """ISO {week, year} pairs for the `number` weeks before `today` (most recent first)."""
    today = today or utc_today()
    weeks = []
    for i in range(1, number + 1):
        iso_year, iso_week, _ = (today - timedelta(days=7 * i)).isocalendar()
        weeks.append({"week": iso_week, "year": iso_year})
    return weeks


def week_start(day: date) -> date:
    """Monday of the week containing `day`."""
    return day - timedelta(days=day.weekday())


def get_temporal_condition(weeks: int = 4, today: Optional[date] = None) -> str:
    """
    SQL filter covering the current week and the previous `weeks - 1` weeks.

    Each week becomes `(week=<iso week> AND year=<year of its Monday>)`.
    """
    monday = week_start(today or utc_today())
    conditions = []
    for offset in range(weeks):
        start = monday - timedelta(weeks=offset)
        conditions.append(f"(week={start.isocalendar()[1]} AND year={start.year})")
    return " OR ".join(conditions)

