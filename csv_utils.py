import csv
from decimal import Decimal, InvalidOperation
from io import StringIO
from typing import Callable, Iterable, Iterator, Optional, Sequence

from errors import ValidationError
from models import MAX_AMOUNT_CENTS, Transaction

DEFAULT_EXPORT_COLUMNS = [
    "id",
    "description",
    "amount",
    "type",
    "category",
    "date",
    "status",
    "createdAt",
]

FORMULA_TRIGGERS = ("=", "+", "-", "@")


def sanitize_csv_value(value: str) -> str:
    """
    Prefix spreadsheet formula triggers with a tab so the cell is read as text.
    """
    if not value:
        return ""
    if value.startswith(FORMULA_TRIGGERS):
        return "\t" + value
    return value


def parse_amount(value: str, *, allow_negative: bool = False) -> int:
    clean = value.strip().replace("€", "").replace("$", "").replace(" ", "")
    clean = clean.replace(",", ".")
    if clean.count(".") > 1:
        parts = clean.split(".")
        clean = "".join(parts[:-1]) + "." + parts[-1]
    try:
        amount = Decimal(clean)
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    if not amount.is_finite():
        raise ValueError("Invalid amount")
    try:
        cents = int((amount * 100).quantize(Decimal("1")))
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    if cents < 0 and not allow_negative:
        raise ValueError("Amount must be positive")
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValueError("Amount out of range")
    return cents


def format_cents(cents: int) -> str:
    return f"{cents / 100:.2f}"


def _iso(value) -> str:
    return value.isoformat() if value is not None else ""


COLUMN_GETTERS: dict[str, Callable[[Transaction], str]] = {
    "id": lambda txn: str(txn.id),
    "description": lambda txn: sanitize_csv_value(txn.description),
    "amount": lambda txn: format_cents(txn.amount_cents),
    "type": lambda txn: txn.type.value,
    "category": lambda txn: sanitize_csv_value(txn.category),
    "date": lambda txn: _iso(txn.date),
    "status": lambda txn: txn.status.value,
    "createdAt": lambda txn: _iso(txn.created_at),
    "updatedAt": lambda txn: _iso(txn.updated_at),
}


def parse_columns(raw: Optional[str]) -> list[str]:
    if not raw:
        return list(DEFAULT_EXPORT_COLUMNS)
    columns = [name.strip() for name in raw.split(",") if name.strip()]
    if not columns:
        return list(DEFAULT_EXPORT_COLUMNS)
    unknown = [name for name in columns if name not in COLUMN_GETTERS]
    if unknown:
        raise ValidationError(
            f"Unknown export columns: {', '.join(unknown)}",
            errors=[
                {"field": "columns", "message": f"Unknown column '{name}'"}
                for name in unknown
            ],
        )
    return columns


def iter_csv(
    transactions: Iterable[Transaction], columns: Sequence[str]
) -> Iterator[str]:
    """Yield the export one CSV line at a time, header first."""
    buffer = StringIO()
    writer = csv.writer(buffer)
    getters = [COLUMN_GETTERS[name] for name in columns]

    def flush() -> str:
        line = buffer.getvalue()
        buffer.seek(0)
        buffer.truncate(0)
        return line

    writer.writerow(columns)
    yield flush()
    for txn in transactions:
        writer.writerow([getter(txn) for getter in getters])
        yield flush()

