import math
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PageWindow:
    page: int
    limit: int
    offset: int
    total_results: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.offset + self.limit < self.total_results

    @property
    def has_prev(self) -> bool:
        return self.offset > 0

    @property
    def next_page(self) -> Optional[int]:
        return self.page + 1 if self.has_next else None

    @property
    def prev_page(self) -> Optional[int]:
        return self.page - 1 if self.has_prev else None

    def descriptors(self) -> dict[str, dict[str, int]]:
        """Only the neighbouring pages that exist; absent keys, never nulls."""
        out: dict[str, dict[str, int]] = {}
        if self.next_page is not None:
            out["next"] = {"page": self.next_page, "limit": self.limit}
        if self.prev_page is not None:
            out["prev"] = {"page": self.prev_page, "limit": self.limit}
        return out


def _to_int(value) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def clamp_page(page) -> int:
    parsed = _to_int(page)
    if not parsed or parsed < 1:
        return 1
    return parsed


def clamp_limit(limit, *, default: int = 10, maximum: int = 100) -> int:
    parsed = _to_int(limit)
    if not parsed:
        return default
    return min(max(parsed, 1), maximum)


def paginate(page: int, limit: int, total_results: int) -> PageWindow:
    page = max(page, 1)
    limit = max(limit, 1)
    offset = (page - 1) * limit
    total_pages = math.ceil(total_results / limit)
    return PageWindow(
        page=page,
        limit=limit,
        offset=offset,
        total_results=total_results,
        total_pages=total_pages,
    )
