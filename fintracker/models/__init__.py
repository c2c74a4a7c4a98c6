"""
Data Models Package

This package contains all Pydantic models used in FinTracker.
All data flowing through the system must conform to these schemas.
"""

from fintracker.models.expense import (
    CATEGORIES,
    DashboardSummary,
    DemoUser,
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseUpdate,
    MonthlyTotal,
    UserProfile,
    ValidationIssue,
    ValidationResult,
)
from fintracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "CATEGORIES",
    "DashboardSummary",
    "DemoUser",
    "Expense",
    "ExpenseCategory",
    "ExpenseDraft",
    "ExpenseUpdate",
    "MonthlyTotal",
    "UserProfile",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
