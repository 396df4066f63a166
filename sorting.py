from dataclasses import dataclass
from typing import Optional

from sqlalchemy.sql.elements import ColumnElement

from errors import ValidationError
from models import Transaction

DEFAULT_SORT_FIELD = "date"

SORTABLE_COLUMNS = {
    "description": Transaction.description,
    "amount": Transaction.amount_cents,
    "type": Transaction.type,
    "category": Transaction.category,
    "date": Transaction.date,
    "status": Transaction.status,
    "createdAt": Transaction.created_at,
}


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool

    def order_by(self) -> list[ColumnElement]:
        column = SORTABLE_COLUMNS[self.field]
        primary = column.desc() if self.descending else column.asc()
        # id breaks ties so pages never overlap
        return [primary, Transaction.id.asc()]


def resolve_sort(sort_by: Optional[str], order: Optional[str]) -> SortKey:
    field = (sort_by or "").strip() or DEFAULT_SORT_FIELD
    if field not in SORTABLE_COLUMNS:
        message = f"Cannot sort by '{field}'"
        raise ValidationError(message, errors=[{"field": "sortBy", "message": message}])
    descending = (order or "").strip().lower() != "asc"
    return SortKey(field, descending)


EXPORT_SORT = SortKey("date", descending=True)
