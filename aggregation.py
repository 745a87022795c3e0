"""Dashboard aggregation: monthly totals, balances, trends and category breakdowns.

The module-level functions are pure and work on any iterable of ``Transaction``
(and ``Category`` / ``Goal``) objects, which keeps them easy to test.
``AggregationService`` loads the rows through an explicit database session and
hands them to those functions. Database errors are not caught here.
"""
import datetime as dt
import logging
from collections import defaultdict
from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlmodel import Session, select

from models import Category, Goal, Transaction
from utils import (
    _round_money,
    goal_progress,
    goal_remaining,
    in_month,
    month_end,
    month_key,
    normalize_month,
    shift_month,
    to_decimal,
)

logger = logging.getLogger(__name__)

DEFAULT_ICON = "💰"
DEFAULT_COLOR = "#6366f1"
TREND_MONTHS = 6
RECENT_LIMIT = 10


def _sum_by_type(transactions: Iterable[Transaction]) -> tuple[Decimal, Decimal]:
    income = Decimal("0")
    expense = Decimal("0")
    for t in transactions:
        if t.type == "income":
            income += to_decimal(t.amount)
        elif t.type == "expense":
            expense += to_decimal(t.amount)
    return income, expense


def monthly_totals(transactions: Iterable[Transaction], month: Any) -> dict[str, float]:
    """
    Income, expense and balance for one calendar month (zeros if empty).

    `balance` is the cent-rounded Decimal difference, so it matches
    `income - expense` up to float representation.
    """
    first = normalize_month(month)
    income, expense = _sum_by_type(t for t in transactions if in_month(t.date, first))
    return {
        "income": _round_money(income),
        "expense": _round_money(expense),
        "balance": _round_money(income - expense),
    }


def all_time_balance(transactions: Iterable[Transaction]) -> float:
    income, expense = _sum_by_type(transactions)
    return _round_money(income - expense)


def monthly_trend(
    transactions: Iterable[Transaction],
    end_month: Any,
    window_months: int = TREND_MONTHS,
) -> list[dict[str, Any]]:
    """
    Income and expense per month for the `window_months` months ending with
    `end_month` (inclusive), oldest first. Empty months are reported as zeros.
    """
    if window_months < 1:
        raise ValueError("window_months must be at least 1")

    last = normalize_month(end_month)
    first = shift_month(last, -(window_months - 1))
    buckets: dict[str, list[Decimal]] = {
        month_key(shift_month(first, i)): [Decimal("0"), Decimal("0")]
        for i in range(window_months)
    }

    for t in transactions:
        bucket = buckets.get(month_key(t.date))
        if bucket is None:
            continue
        if t.type == "income":
            bucket[0] += to_decimal(t.amount)
        elif t.type == "expense":
            bucket[1] += to_decimal(t.amount)

    return [
        {"month": key, "income": _round_money(income), "expense": _round_money(expense)}
        for key, (income, expense) in buckets.items()
    ]


def category_lookup(categories: Iterable[Category]) -> dict[str, Category]:
    return {c.name: c for c in categories}


def category_meta(name: str, lookup: dict[str, Category]) -> dict[str, str]:
    """Icon and color for a category name, falling back to the defaults."""
    category = lookup.get(name)
    if category is None:
        return {"icon": DEFAULT_ICON, "color": DEFAULT_COLOR}
    return {
        "icon": category.icon or DEFAULT_ICON,
        "color": category.color or DEFAULT_COLOR,
    }


def category_breakdown(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
    month: Any,
) -> list[dict[str, Any]]:
    """Expense totals per category name for a month, largest first."""
    first = normalize_month(month)
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for t in transactions:
        if t.type == "expense" and in_month(t.date, first):
            totals[t.category] += to_decimal(t.amount)

    lookup = category_lookup(categories)
    ordered = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    return [
        {"category": name, **category_meta(name, lookup), "total": _round_money(total)}
        for name, total in ordered
    ]


def sort_newest_first(transactions: Iterable[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=lambda t: (t.date, t.id or 0), reverse=True)


def transaction_row(t: Transaction, lookup: dict[str, Category]) -> dict[str, Any]:
    """A transaction as a JSON-ready dict joined with its category icon/color."""
    return {
        "id": t.id,
        "type": t.type,
        "category": t.category,
        "amount": _round_money(to_decimal(t.amount)),
        "description": t.description,
        "date": t.date.isoformat(),
        "created_at": t.created_at.isoformat() if t.created_at else None,
        **category_meta(t.category, lookup),
    }


def recent_transactions(
    transactions: Iterable[Transaction],
    categories: Iterable[Category] = (),
    limit: int = RECENT_LIMIT,
) -> list[dict[str, Any]]:
    """Latest `limit` transactions by date, then id, descending."""
    lookup = category_lookup(categories)
    return [transaction_row(t, lookup) for t in sort_newest_first(transactions)[:limit]]


def goal_row(goal: Goal) -> dict[str, Any]:
    return {
        "id": goal.id,
        "name": goal.name,
        "target_amount": _round_money(to_decimal(goal.target_amount)),
        "current_amount": _round_money(to_decimal(goal.current_amount)),
        "deadline": goal.deadline.isoformat() if goal.deadline else None,
        "color": goal.color,
        "created_at": goal.created_at.isoformat() if goal.created_at else None,
        "progress": goal_progress(goal.current_amount, goal.target_amount),
        "remaining": goal_remaining(goal.current_amount, goal.target_amount),
    }


def transactions_query(
    date_from: Optional[dt.date] = None,
    date_to: Optional[dt.date] = None,
    tx_type: Optional[str] = None,
):
    """SELECT for transactions in an inclusive date range, newest first."""
    stmt = select(Transaction)
    if date_from is not None:
        stmt = stmt.where(Transaction.date >= date_from)
    if date_to is not None:
        stmt = stmt.where(Transaction.date <= date_to)
    if tx_type:
        stmt = stmt.where(Transaction.type == tx_type)
    return stmt.order_by(Transaction.date.desc(), Transaction.id.desc())


class AggregationService:
    """Read-only dashboard queries over the database behind `session`."""

    def __init__(self, session: Session, today: Optional[dt.date] = None):
        self.session = session
        self.today = today or dt.date.today()

    @property
    def current_month(self) -> dt.date:
        return normalize_month(self.today)

    def _month(self, month: Any) -> dt.date:
        return self.current_month if month is None else normalize_month(month)

    def _transactions(
        self,
        date_from: Optional[dt.date] = None,
        date_to: Optional[dt.date] = None,
    ) -> list[Transaction]:
        return list(self.session.exec(transactions_query(date_from, date_to)).all())

    def _month_transactions(self, first: dt.date) -> list[Transaction]:
        return self._transactions(first, month_end(first))

    def _categories(self) -> list[Category]:
        return list(self.session.exec(select(Category)).all())

    def monthly_totals(self, month: Any = None) -> dict[str, float]:
        first = self._month(month)
        return monthly_totals(self._month_transactions(first), first)

    def all_time_balance(self) -> float:
        return all_time_balance(self._transactions())

    def trend(self, window_months: int = TREND_MONTHS, month: Any = None) -> list[dict[str, Any]]:
        if window_months < 1:
            raise ValueError("window_months must be at least 1")
        last = self._month(month)
        first = shift_month(last, -(window_months - 1))
        rows = self._transactions(first, month_end(last))
        return monthly_trend(rows, last, window_months)

    def category_breakdown(self, month: Any = None) -> list[dict[str, Any]]:
        first = self._month(month)
        return category_breakdown(self._month_transactions(first), self._categories(), first)

    def recent_transactions(self, n: int = RECENT_LIMIT) -> list[dict[str, Any]]:
        rows = self.session.exec(transactions_query().limit(n)).all()
        return recent_transactions(rows, self._categories(), n)

    def goals(self) -> list[dict[str, Any]]:
        stmt = select(Goal).order_by(Goal.created_at.desc(), Goal.id.desc())
        return [goal_row(g) for g in self.session.exec(stmt).all()]

    def dashboard(self, month: Any = None) -> dict[str, Any]:
        """Everything the dashboard page shows, in one payload."""
        first = self._month(month)
        totals = self.monthly_totals(first)
        logger.debug("Building dashboard for %s", month_key(first))
        return {
            "month": month_key(first),
            "monthly_income": totals["income"],
            "monthly_expense": totals["expense"],
            "monthly_balance": totals["balance"],
            "all_time_balance": self.all_time_balance(),
            "recent_transactions": self.recent_transactions(),
            "goals": self.goals(),
            "monthly_trend": self.trend(TREND_MONTHS, first),
            "expense_by_category": self.category_breakdown(first),
        }
