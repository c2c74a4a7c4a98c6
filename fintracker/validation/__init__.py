"""Expense input validation package."""

from fintracker.validation.validator import (
    ExpenseValidationError,
    ExpenseValidator,
    issues_to_dicts,
    parse_amount,
    parse_date,
)

__all__ = [
    "ExpenseValidationError",
    "ExpenseValidator",
    "issues_to_dicts",
    "parse_amount",
    "parse_date",
]
