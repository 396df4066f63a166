from dataclasses import dataclass, field
from typing import Mapping, Optional

from sqlalchemy import and_, or_
from sqlalchemy.sql.elements import ColumnElement

from csv_utils import parse_amount
from errors import ValidationError
from models import Transaction, TransactionStatus, TransactionType
from periods import DateRange, resolve_date_range

LIKE_ESCAPE = "\\"


@dataclass
class TransactionFilters:
    category: Optional[str] = None
    type: Optional[TransactionType] = None
    status: Optional[TransactionStatus] = None
    date_range: DateRange = field(default_factory=DateRange)
    amount_min_cents: Optional[int] = None
    amount_max_cents: Optional[int] = None
    search: Optional[str] = None


def _clean(params: Mapping[str, str], key: str) -> Optional[str]:
    value = params.get(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def escape_like(value: str) -> str:
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def filters_from_params(params: Mapping[str, str]) -> TransactionFilters:
    """Parse wire query parameters into filters.

    Every malformed parameter is reported in a single ValidationError.
    """
    errors: list[dict[str, str]] = []
    filters = TransactionFilters(
        category=_clean(params, "category"), search=_clean(params, "search")
    )

    type_raw = _clean(params, "type")
    if type_raw:
        try:
            filters.type = TransactionType(type_raw)
        except ValueError:
            errors.append({"field": "type", "message": f"Invalid type '{type_raw}'"})

    status_raw = _clean(params, "status")
    if status_raw:
        try:
            filters.status = TransactionStatus(status_raw)
        except ValueError:
            errors.append(
                {"field": "status", "message": f"Invalid status '{status_raw}'"}
            )

    for key in ("amountMin", "amountMax"):
        raw = _clean(params, key)
        if not raw:
            continue
        try:
            cents = parse_amount(raw)
        except ValueError:
            errors.append({"field": key, "message": f"Invalid {key} '{raw}'"})
            continue
        if key == "amountMin":
            filters.amount_min_cents = cents
        else:
            filters.amount_max_cents = cents

    try:
        filters.date_range = resolve_date_range(
            params.get("startDate"), params.get("endDate")
        )
    except ValidationError as exc:
        errors.extend(exc.errors or [])

    if errors:
        raise ValidationError.from_fields(errors)
    return filters


def date_range_clauses(date_range: DateRange) -> list[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = []
    if date_range.start is not None:
        clauses.append(Transaction.date >= date_range.start)
    if date_range.end is not None:
        clauses.append(Transaction.date <= date_range.end)
    return clauses


def build_predicate(
    user_id: int, filters: Optional[TransactionFilters] = None
) -> ColumnElement[bool]:
    if not user_id:
        raise ValueError("user_id is required to scope a transaction query")
    filters = filters or TransactionFilters()

    clauses: list[ColumnElement[bool]] = [Transaction.user_id == user_id]
    if filters.category:
        clauses.append(Transaction.category == filters.category)
    if filters.type:
        clauses.append(Transaction.type == filters.type)
    if filters.status:
        clauses.append(Transaction.status == filters.status)
    clauses.extend(date_range_clauses(filters.date_range))
    if filters.amount_min_cents is not None:
        clauses.append(Transaction.amount_cents >= filters.amount_min_cents)
    if filters.amount_max_cents is not None:
        clauses.append(Transaction.amount_cents <= filters.amount_max_cents)
    if filters.search:
        pattern = f"%{escape_like(filters.search)}%"
        clauses.append(
            or_(
                Transaction.description.ilike(pattern, escape=LIKE_ESCAPE),
                Transaction.category.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )
    return and_(*clauses)
