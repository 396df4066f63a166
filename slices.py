from dataclasses import dataclass
from typing import Iterable, Protocol

OTHER_LABEL = "Other"
DEFAULT_THRESHOLD = 0.02


class HasExpense(Protocol):
    category: str
    total_expense: int


@dataclass(frozen=True)
class Slice:
    name: str
    value: int
    percent: float


def reduce_for_chart(
    categories: Iterable[HasExpense],
    total_expense: int,
    threshold: float = DEFAULT_THRESHOLD,
) -> list[Slice]:
    """Collapse categories below ``threshold`` of total expense into "Other".

    The "Other" slice is kept only when nothing else is significant or when it
    reaches half the threshold. Output is ordered by value, largest first.
    """
    if total_expense <= 0:
        return []

    significant: list[Slice] = []
    other_amount = 0
    for row in categories:
        if row.total_expense <= 0:
            continue
        share = row.total_expense / total_expense
        if share >= threshold:
            significant.append(Slice(row.category, row.total_expense, share))
        else:
            other_amount += row.total_expense

    slices = list(significant)
    if other_amount > 0:
        other_share = other_amount / total_expense
        if not significant or other_share >= threshold / 2:
            slices.append(Slice(OTHER_LABEL, other_amount, other_share))

    slices.sort(key=lambda s: s.value, reverse=True)
    return slices
