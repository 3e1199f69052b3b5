"""
Request parameter parsing shared by the routers.
"""

import json
import re
from datetime import date, datetime, time, timezone
from typing import Any, Optional

from ..storage.exceptions import ValidationError

DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_participants(raw: Any) -> list:
    """
    Participants as sent by clients: a JSON-encoded array, a list, or a
    single identifier. Missing or empty means no participants.
    """
    if raw is None or raw == "":
        return []
    if isinstance(raw, list):
        return raw
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            return [raw]
        if isinstance(decoded, list):
            return decoded
        if isinstance(decoded, str):
            return [decoded] if decoded else []
    raise ValidationError("participants must be a list of user ids or emails.")


def _parse_bound(value: str, end_of_day: bool) -> datetime:
    try:
        if DATE_ONLY.match(value):
            day = date.fromisoformat(value)
            return datetime.combine(day, time.max if end_of_day else time.min, tzinfo=timezone.utc)
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}") from None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def parse_date_range(start: Optional[str], end: Optional[str]) -> tuple[datetime, datetime]:
    """
    Parse inclusive date-range bounds.

    A date-only end bound covers that whole day. Naive values are UTC.
    """
    if not start or not end:
        raise ValidationError("startDate and endDate are required.")
    return _parse_bound(start, end_of_day=False), _parse_bound(end, end_of_day=True)
