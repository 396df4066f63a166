from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import case, extract, func, select
from sqlalchemy.engine import ScalarResult
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import AuthError, ConflictError, NotFoundError, ValidationError
from filters import TransactionFilters, build_predicate
from models import Transaction, TransactionType, User
from pagination import PageWindow, paginate
from periods import DateRange
from schemas import TransactionIn, UserRegisterIn
from security import hash_password, verify_password
from slices import DEFAULT_THRESHOLD, Slice, reduce_for_chart
from sorting import EXPORT_SORT, SortKey

logger = logging.getLogger(__name__)

EXPORT_BATCH_SIZE = 500


def cents_to_amount(cents: int) -> float:
    return cents / 100


class AuthService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def register(self, data: UserRegisterIn) -> User:
        if self.session.scalar(select(User.id).where(User.email == data.email)):
            raise ConflictError("User already exists with this email")
        if self.session.scalar(select(User.id).where(User.username == data.username)):
            raise ConflictError("User already exists with this username")

        user = User(
            username=data.username,
            email=data.email,
            password_hash=hash_password(data.password),
        )
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("Duplicate field value entered") from exc
        self.session.refresh(user)
        logger.info(f"user_registered: user_id={user.id}")
        return user

    def authenticate(self, email: Optional[str], password: Optional[str]) -> User:
        if not email or not password:
            raise ValidationError(
                "Please provide an email and password",
                errors=[
                    {"field": name, "message": f"{name} is required"}
                    for name, value in (("email", email), ("password", password))
                    if not value
                ],
            )
        user = self.session.scalar(
            select(User).where(User.email == email.strip().lower())
        )
        # same answer for unknown email and wrong password
        if not user or not verify_password(password, user.password_hash):
            logger.info("login_failed")
            raise AuthError("Invalid credentials")
        logger.info(f"login_succeeded: user_id={user.id}")
        return user

    def get_user(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user


@dataclass
class TransactionPage:
    items: list[Transaction]
    window: PageWindow


class TransactionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def create(self, data: TransactionIn) -> Transaction:
        txn = Transaction(
            user_id=self.user_id,
            description=data.description,
            amount_cents=data.amount_cents,
            type=data.type,
            category=data.category,
            date=data.date or datetime.utcnow(),
            status=data.status,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(f"transaction_created: user_id={self.user_id} id={txn.id}")
        return txn

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.scalar(
            select(Transaction).where(
                Transaction.user_id == self.user_id, Transaction.id == transaction_id
            )
        )
        if not txn:
            raise NotFoundError(f"Resource not found with id of {transaction_id}")
        return txn

    def count(self, filters: Optional[TransactionFilters] = None) -> int:
        stmt = (
            select(func.count())
            .select_from(Transaction)
            .where(build_predicate(self.user_id, filters))
        )
        return int(self.session.execute(stmt).scalar_one() or 0)

    def list_page(
        self,
        filters: TransactionFilters,
        sort: SortKey,
        page: int = 1,
        limit: int = 10,
    ) -> TransactionPage:
        total = self.count(filters)
        window = paginate(page, limit, total)
        stmt = (
            select(Transaction)
            .where(build_predicate(self.user_id, filters))
            .order_by(*sort.order_by())
            .offset(window.offset)
            .limit(window.limit)
        )
        items = list(self.session.scalars(stmt).all())
        return TransactionPage(items=items, window=window)

    def for_export(self, filters: TransactionFilters) -> ScalarResult[Transaction]:
        """Run the export query now and hand back a lazily fetched result."""
        stmt = (
            select(Transaction)
            .where(build_predicate(self.user_id, filters))
            .order_by(*EXPORT_SORT.order_by())
            .execution_options(yield_per=EXPORT_BATCH_SIZE)
        )
        return self.session.scalars(stmt)


@dataclass(frozen=True)
class MonthlyTotals:
    year: int
    month: int
    total_income: int
    total_expense: int

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class CategoryTotals:
    category: str
    total_amount: int
    total_income: int
    total_expense: int


@dataclass(frozen=True)
class SummaryTotals:
    total_income: int = 0
    total_expense: int = 0

    @property
    def net_profit(self) -> int:
        return self.total_income - self.total_expense


@dataclass(frozen=True)
class Summary:
    monthly: list[MonthlyTotals]
    categories: list[CategoryTotals]
    totals: SummaryTotals


def _sum_of_type(txn_type: TransactionType):
    return func.coalesce(
        func.sum(
            case((Transaction.type == txn_type, Transaction.amount_cents), else_=0)
        ),
        0,
    )


class MetricsService:
    """Analytics over one user's transactions, optionally bounded by date.

    Only the owner and the date range constrain the analytics; the other
    listing filters never apply here. All sums are integer cents.
    """

    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _scope(self, date_range: Optional[DateRange]):
        filters = TransactionFilters(date_range=date_range or DateRange())
        return build_predicate(self.user_id, filters)

    def monthly_trend(self, date_range: Optional[DateRange] = None) -> list[MonthlyTotals]:
        year = extract("year", Transaction.date).label("year")
        month = extract("month", Transaction.date).label("month")
        stmt = (
            select(
                year,
                month,
                _sum_of_type(TransactionType.income).label("income"),
                _sum_of_type(TransactionType.expense).label("expense"),
            )
            .where(self._scope(date_range))
            .group_by(year, month)
            .order_by(year, month)
        )
        return [
            MonthlyTotals(
                year=int(row.year),
                month=int(row.month),
                total_income=int(row.income or 0),
                total_expense=int(row.expense or 0),
            )
            for row in self.session.execute(stmt)
        ]

    def category_breakdown(
        self, date_range: Optional[DateRange] = None
    ) -> list[CategoryTotals]:
        total = func.coalesce(func.sum(Transaction.amount_cents), 0).label("total")
        stmt = (
            select(
                Transaction.category,
                total,
                _sum_of_type(TransactionType.income).label("income"),
                _sum_of_type(TransactionType.expense).label("expense"),
            )
            .where(self._scope(date_range))
            .group_by(Transaction.category)
            .order_by(total.desc(), Transaction.category.asc())
        )
        return [
            CategoryTotals(
                category=row.category,
                total_amount=int(row.total or 0),
                total_income=int(row.income or 0),
                total_expense=int(row.expense or 0),
            )
            for row in self.session.execute(stmt)
        ]

    def totals(self, date_range: Optional[DateRange] = None) -> SummaryTotals:
        stmt = select(
            _sum_of_type(TransactionType.income).label("income"),
            _sum_of_type(TransactionType.expense).label("expense"),
        ).where(self._scope(date_range))
        row = self.session.execute(stmt).one_or_none()
        if row is None:
            return SummaryTotals()
        return SummaryTotals(
            total_income=int(row.income or 0), total_expense=int(row.expense or 0)
        )

    def summarize(self, date_range: Optional[DateRange] = None) -> Summary:
        return Summary(
            monthly=self.monthly_trend(date_range),
            categories=self.category_breakdown(date_range),
            totals=self.totals(date_range),
        )

    def chart_slices(
        self,
        date_range: Optional[DateRange] = None,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> list[Slice]:
        categories = self.category_breakdown(date_range)
        total_expense = sum(row.total_expense for row in categories)
        return reduce_for_chart(categories, total_expense, threshold)
