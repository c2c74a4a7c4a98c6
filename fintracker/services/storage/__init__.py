"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage:
an in-memory store and a Google Sheets backed store.
"""

from fintracker.services.storage.interface import (
    MUTABLE_FIELDS,
    AuditStorageInterface,
    ExpenseStorageInterface,
    NotFoundError,
    StorageError,
    StoreUnavailableError,
)
from fintracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
)
from fintracker.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ExpenseStorageInterface",
    "MUTABLE_FIELDS",
    # Exceptions
    "NotFoundError",
    "StorageError",
    "StoreUnavailableError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
]
