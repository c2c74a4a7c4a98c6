"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Use in-memory storage for tests and demos
2. Use Google Sheets as the persistent backend
3. Keep business logic decoupled from storage implementation

Which implementation is used is decided once, by configuration, in the
component factory. Business logic only ever sees this interface.

ORDERING CONTRACT: every implementation returns expenses ordered by
`date` descending; expenses sharing a date keep insertion order
(earlier insert first).
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from fintracker.models.expense import Expense
from fintracker.models.audit import AuditEvent


# Fields an update is allowed to touch
MUTABLE_FIELDS = frozenset({"amount", "category", "description", "date"})


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense storage operations.

    Every write touches exactly one record and is atomic for that record.
    """

    backend_name: str = "abstract"

    @abstractmethod
    async def add_expense(self, expense: Expense) -> Expense:
        """
        Persist a validated expense.

        Args:
            expense: The expense to store

        Returns:
            The stored expense

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_expense(self, expense_id: str) -> Optional[Expense]:
        """
        Retrieve an expense by its ID.

        Returns:
            The expense if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_expenses(
        self,
        user_id: str,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[Expense]:
        """
        List one user's expenses.

        Args:
            user_id: Owner of the expenses
            month: Calendar month (1-12); only applied together with year
            year: Calendar year; only applied together with month

        Returns:
            Matching expenses, date descending, ties in insertion order
        """
        pass

    @abstractmethod
    async def update_expense(self, expense_id: str, changes: dict[str, Any]) -> Expense:
        """
        Apply already-parsed changes to an expense.

        Args:
            expense_id: The expense's unique identifier
            changes: New values keyed by field name (subset of MUTABLE_FIELDS)

        Returns:
            The updated expense

        Raises:
            NotFoundError: If the expense doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: str) -> None:
        """
        Delete an expense by ID.

        Raises:
            NotFoundError: If the expense doesn't exist
        """
        pass

    @abstractmethod
    async def count_expenses(self) -> int:
        """Number of stored expenses across all users."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


def sort_expenses(expenses: list[Expense]) -> list[Expense]:
    """
    Apply the canonical ordering.

    `expenses` must be in insertion order; sorted() is stable, so
    expenses with equal dates keep it.
    """
    return sorted(expenses, key=lambda e: e.date, reverse=True)


def in_month(expense: Expense, month: Optional[int], year: Optional[int]) -> bool:
    """Whether the expense falls in the given month (always True without a full filter)."""
    if month is None or year is None:
        return True
    return expense.date.month == month and expense.date.year == year


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class StoreUnavailableError(StorageError):
    """Could not reach the storage backend."""
    pass
