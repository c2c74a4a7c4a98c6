"""Dashboard aggregation package."""

from fintracker.reports.aggregator import (
    build_dashboard,
    category_breakdown,
    month_bounds,
    month_label,
    recent_expenses,
    shift_month,
    this_month_total,
    trailing_months,
)

__all__ = [
    "build_dashboard",
    "category_breakdown",
    "month_bounds",
    "month_label",
    "recent_expenses",
    "shift_month",
    "this_month_total",
    "trailing_months",
]
