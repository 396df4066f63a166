from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Optional

from errors import ValidationError


@dataclass(frozen=True)
class DateRange:
    start: Optional[datetime] = None
    end: Optional[datetime] = None


def parse_date_bound(value: str, *, field: str, end_of_day: bool = False) -> datetime:
    """Parse an ISO date or datetime into a naive UTC timestamp.

    A bare date used as an upper bound covers the whole day.
    """
    value = value.strip()
    try:
        if len(value) == 10:
            day = date.fromisoformat(value)
            return datetime.combine(day, time.max if end_of_day else time.min)
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        message = f"Invalid {field} '{value}'"
        raise ValidationError(
            message, errors=[{"field": field, "message": message}]
        ) from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def resolve_date_range(start: Optional[str], end: Optional[str]) -> DateRange:
    errors: list[dict[str, str]] = []
    bounds: dict[str, Optional[datetime]] = {"startDate": None, "endDate": None}
    for field, raw, end_of_day in (
        ("startDate", start, False),
        ("endDate", end, True),
    ):
        raw = (raw or "").strip()
        if not raw:
            continue
        try:
            bounds[field] = parse_date_bound(raw, field=field, end_of_day=end_of_day)
        except ValidationError as exc:
            errors.extend(exc.errors or [])
    if errors:
        raise ValidationError.from_fields(errors)
    return DateRange(bounds["startDate"], bounds["endDate"])
