# validation.py - Input validation helpers shared by controllers and Slack commands
import re
import uuid as _uuid
from datetime import date, datetime
from typing import Any, Optional
from urllib.parse import urlparse

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]{2,}$")
_GITHUB_REPO_RE = re.compile(r"^https://github\.com/[\w.-]+/[\w.-]+/?$")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MAX_DATE_INTERVAL_DAYS = 2 * 365


def has_text(value: Any) -> bool:
    """True for a string with at least one non-whitespace character."""
    return isinstance(value, str) and value.strip() != ""


def is_object(value: Any) -> bool:
    return isinstance(value, dict)


def is_non_empty_object(value: Any) -> bool:
    return isinstance(value, dict) and len(value) > 0


def is_valid_url(value: Any) -> bool:
    """Absolute http(s) URL with a host."""
    if not isinstance(value, str) or not value:
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_valid_uuid(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        _uuid.UUID(value)
    except (ValueError, AttributeError, TypeError):
        return False
    return True


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and bool(_EMAIL_RE.match(value.strip()))


def is_valid_github_url(value: Any) -> bool:
    return isinstance(value, str) and bool(_GITHUB_REPO_RE.match(value))


def parse_iso_date(value: Any) -> Optional[date]:
    """Parse YYYY-MM-DD; returns None for anything else."""
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value):
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_iso_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp such as 2024-01-01T00:00:00Z; returns None for anything else."""
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value[:10]):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def is_valid_date_interval(start_date: Any, end_date: Any) -> bool:
    """Both dates YYYY-MM-DD, end after start, spanning at most two years."""
    start = parse_iso_date(start_date)
    end = parse_iso_date(end_date)
    if not start or not end:
        return False
    if end <= start:
        return False
    return (end - start).days <= MAX_DATE_INTERVAL_DAYS


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == value
