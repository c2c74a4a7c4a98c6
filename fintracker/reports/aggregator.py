"""
Dashboard Aggregation

DESIGN DECISION: Aggregation is DETERMINISTIC and pure.
Every function here takes a snapshot of one user's expenses plus a
reference date and returns numbers; nothing reads the clock or the store.
That keeps "what did I spend in March" answerable for any March.

Conventions:
- All sums are Decimal; an empty input sums to Decimal("0")
- The category breakdown only lists categories that occur
- The trailing series always has exactly `months` entries, oldest first
"""

import calendar
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable

from fintracker.models.expense import DashboardSummary, Expense, MonthlyTotal
from fintracker.services.storage.interface import sort_expenses


ZERO = Decimal("0")


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a calendar month (both inclusive)."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Move `delta` months from (year, month); negative goes back."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def month_label(year: int, month: int) -> str:
    """Label such as 'Mar 2024'."""
    return f"{calendar.month_abbr[month]} {year}"


def expenses_in_month(
    expenses: Iterable[Expense],
    year: int,
    month: int,
) -> list[Expense]:
    start, end = month_bounds(year, month)
    return [e for e in expenses if start <= e.date <= end]


def total_amount(expenses: Iterable[Expense]) -> Decimal:
    return sum((e.amount for e in expenses), ZERO)


def this_month_total(expenses: Iterable[Expense], today: date) -> Decimal:
    """Sum of the expenses dated in today's calendar month."""
    return total_amount(expenses_in_month(expenses, today.year, today.month))


def category_breakdown(expenses: Iterable[Expense]) -> dict[str, Decimal]:
    """
    Sum amounts per category.

    Categories with no expenses are absent, not zero. Keys appear in the
    order their category is first seen.
    """
    groups: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for expense in expenses:
        groups[expense.category] += expense.amount
    return dict(groups)


def trailing_months(
    expenses: Iterable[Expense],
    today: date,
    months: int = 6,
) -> list[MonthlyTotal]:
    """
    Monthly totals for the `months` months ending with today's month.

    Oldest first. Months without expenses are reported as 0.
    """
    if months < 1:
        raise ValueError("months must be at least 1")

    by_month: dict[tuple[int, int], Decimal] = defaultdict(lambda: ZERO)
    for expense in expenses:
        by_month[(expense.date.year, expense.date.month)] += expense.amount

    series = []
    for delta in range(months - 1, -1, -1):
        year, month = shift_month(today.year, today.month, -delta)
        series.append(MonthlyTotal(
            month=month_label(year, month),
            amount=by_month.get((year, month), ZERO),
        ))
    return series


def recent_expenses(expenses: Iterable[Expense], limit: int = 5) -> list[Expense]:
    """
    The `limit` most recent expenses, newest first.

    `expenses` must be in insertion order (or already canonically sorted):
    expenses sharing a date keep their relative order.
    """
    return sort_expenses(list(expenses))[:limit]


def build_dashboard(
    expenses: list[Expense],
    today: date,
    months: int = 6,
    recent: int = 5,
) -> DashboardSummary:
    """
    Build the full dashboard for one user's expenses.

    Total and category breakdown cover today's month only; the trend
    covers the trailing window; recent expenses come from all history.
    """
    current = expenses_in_month(expenses, today.year, today.month)
    return DashboardSummary(
        total_this_month=total_amount(current),
        category_breakdown=category_breakdown(current),
        monthly_data=trailing_months(expenses, today, months),
        recent_expenses=recent_expenses(expenses, recent),
    )
