from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import Base
from errors import ValidationError
from filters import TransactionFilters
from models import TransactionType, User
from pagination import clamp_limit, clamp_page, paginate
from schemas import TransactionIn
from services import TransactionService
from sorting import resolve_sort


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def test_paginate_window_math() -> None:
    window = paginate(3, 10, 45)
    assert window.offset == 20
    assert window.total_pages == 5
    assert window.has_next and window.has_prev
    assert window.next_page == 4
    assert window.prev_page == 2


def test_descriptors_only_include_existing_neighbours() -> None:
    first = paginate(1, 10, 25)
    assert first.descriptors() == {"next": {"page": 2, "limit": 10}}

    last = paginate(3, 10, 25)
    assert last.descriptors() == {"prev": {"page": 2, "limit": 10}}
    assert last.next_page is None

    exact = paginate(2, 10, 20)
    assert "next" not in exact.descriptors()

    only = paginate(1, 10, 0)
    assert only.descriptors() == {}
    assert only.total_pages == 0


@pytest.mark.parametrize(
    "page,limit,total",
    [(1, 5, 0), (1, 5, 5), (2, 5, 11), (3, 5, 11), (4, 3, 12), (5, 3, 12)],
)
def test_descriptor_presence_matches_page_arithmetic(page, limit, total) -> None:
    descriptors = paginate(page, limit, total).descriptors()
    assert ("next" in descriptors) == (page * limit < total)
    assert ("prev" in descriptors) == (page > 1)


def test_clamp_page_never_goes_below_one() -> None:
    assert clamp_page(None) == 1
    assert clamp_page("abc") == 1
    assert clamp_page("0") == 1
    assert clamp_page("-4") == 1
    assert clamp_page("7") == 7


def test_clamp_limit_defaults_and_caps() -> None:
    assert clamp_limit(None) == 10
    assert clamp_limit("x") == 10
    assert clamp_limit("0") == 10
    assert clamp_limit("-3") == 1
    assert clamp_limit("25") == 25
    assert clamp_limit("5000") == 100
    assert clamp_limit("5000", maximum=250) == 250


def test_resolve_sort_defaults_to_date_descending() -> None:
    sort = resolve_sort(None, None)
    assert sort.field == "date"
    assert sort.descending

    assert not resolve_sort("amount", "asc").descending
    assert resolve_sort("amount", "ascending").descending
    assert resolve_sort("amount", "DESC").descending


def test_resolve_sort_rejects_unknown_fields() -> None:
    with pytest.raises(ValidationError) as info:
        resolve_sort("user_id", "asc")
    assert info.value.errors[0]["field"] == "sortBy"


def _seed(session, count: int) -> User:
    user = User(username="alice", email="alice@example.com", password_hash="!")
    session.add(user)
    session.commit()
    service = TransactionService(session, user.id)
    base = datetime(2024, 3, 1, 9, 0)
    for i in range(count):
        service.create(
            TransactionIn(
                description=f"txn {i}",
                amount=str((i * 7) % 13),
                type=TransactionType.expense,
                category="Misc",
                # groups of three share a timestamp so ties need the id tie-break
                date=base + timedelta(days=i // 3),
            )
        )
    return user


def test_pages_cover_the_filtered_set_exactly_once() -> None:
    session = make_session()
    user = _seed(session, 23)
    service = TransactionService(session, user.id)
    sort = resolve_sort("date", "desc")

    everything = service.list_page(TransactionFilters(), sort, page=1, limit=100)
    expected = [txn.id for txn in everything.items]
    assert len(expected) == 23

    seen: list[int] = []
    first = service.list_page(TransactionFilters(), sort, page=1, limit=5)
    assert first.window.total_pages == 5
    for page in range(1, first.window.total_pages + 1):
        result = service.list_page(TransactionFilters(), sort, page=page, limit=5)
        seen.extend(txn.id for txn in result.items)

    assert seen == expected
    assert len(set(seen)) == 23


def test_amount_ascending_sort_is_ordered() -> None:
    session = make_session()
    user = _seed(session, 15)
    result = TransactionService(session, user.id).list_page(
        TransactionFilters(), resolve_sort("amount", "asc"), page=1, limit=100
    )
    amounts = [txn.amount_cents for txn in result.items]
    assert all(a <= b for a, b in zip(amounts, amounts[1:]))


def test_ties_are_broken_by_id() -> None:
    session = make_session()
    user = _seed(session, 6)
    result = TransactionService(session, user.id).list_page(
        TransactionFilters(), resolve_sort("category", "desc"), page=1, limit=100
    )
    ids = [txn.id for txn in result.items]
    assert ids == sorted(ids)
