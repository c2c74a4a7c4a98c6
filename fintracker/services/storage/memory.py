"""
In-Memory Storage Implementation

Keeps expenses in a dict keyed by id. Python dicts preserve insertion
order, which gives us the tiebreak for the canonical ordering for free.

Used for tests and for running the service without any external setup.
Everything is lost when the process exits.
"""

import asyncio
from collections import deque
from typing import Any, Optional

from fintracker.models.audit import AuditEvent
from fintracker.models.expense import Expense, utc_now
from fintracker.services.storage.interface import (
    MUTABLE_FIELDS,
    AuditStorageInterface,
    ExpenseStorageInterface,
    NotFoundError,
    StorageError,
    in_month,
    sort_expenses,
)


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """
    Process-local expense store.

    Writes are serialized with an asyncio.Lock so each add/update/delete
    is applied as a whole. Reads hand out copies, so callers can never
    mutate stored records.
    """

    backend_name = "memory"

    def __init__(self, expenses: Optional[list[Expense]] = None):
        self._expenses: dict[str, Expense] = {}
        self._lock = asyncio.Lock()
        for expense in expenses or []:
            self._expenses[expense.id] = expense.model_copy()

    async def add_expense(self, expense: Expense) -> Expense:
        async with self._lock:
            if expense.id in self._expenses:
                raise StorageError(f"Expense already exists: {expense.id}")
            stored = expense.model_copy(update={"created_at": utc_now()})
            self._expenses[stored.id] = stored
            return stored.model_copy()

    async def get_expense(self, expense_id: str) -> Optional[Expense]:
        expense = self._expenses.get(expense_id)
        return expense.model_copy() if expense else None

    async def list_expenses(
        self,
        user_id: str,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[Expense]:
        matching = [
            expense.model_copy()
            for expense in self._expenses.values()
            if expense.user_id == user_id and in_month(expense, month, year)
        ]
        return sort_expenses(matching)

    async def update_expense(self, expense_id: str, changes: dict[str, Any]) -> Expense:
        async with self._lock:
            current = self._expenses.get(expense_id)
            if current is None:
                raise NotFoundError(f"Expense not found: {expense_id}")

            allowed = {k: v for k, v in changes.items() if k in MUTABLE_FIELDS}
            allowed["updated_at"] = utc_now()
            updated = current.model_copy(update=allowed)
            self._expenses[expense_id] = updated
            return updated.model_copy()

    async def delete_expense(self, expense_id: str) -> None:
        async with self._lock:
            if self._expenses.pop(expense_id, None) is None:
                raise NotFoundError(f"Expense not found: {expense_id}")

    async def count_expenses(self) -> int:
        return len(self._expenses)


class InMemoryAuditStorage(AuditStorageInterface):
    """
    Append-only audit log held in memory.

    Keeps the newest `max_events` events; older ones are dropped.
    """

    def __init__(self, max_events: int = 10000):
        self._events: deque[AuditEvent] = deque(maxlen=max_events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
