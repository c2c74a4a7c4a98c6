"""
Main Orchestrator for FinTracker

This module ties together all the components and defines the flows for:
1. Login (credentials -> identity provider -> token)
2. Expenses (input -> validate -> store, list, update, delete)
3. Dashboard (store snapshot -> aggregator -> summary)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the store without passing validation
- The aggregator only ever reads
- Every user action is audited

The storage backend is picked exactly once, in create_app_components(),
from configuration. The flows only know the storage interface.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Optional
from uuid import UUID

import structlog

from fintracker.audit import AuditLogger, create_correlation_id
from fintracker.auth import AuthError, IdentityProvider, StaticIdentityProvider
from fintracker.config import ReportSettings, Settings, get_settings
from fintracker.models.expense import (
    DashboardSummary,
    Expense,
    ExpenseDraft,
    ExpenseUpdate,
    UserProfile,
    ValidationIssue,
)
from fintracker.reports import build_dashboard
from fintracker.services.storage import (
    AuditStorageInterface,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    StoreUnavailableError,
)
from fintracker.validation import ExpenseValidationError, ExpenseValidator, issues_to_dicts


logger = structlog.get_logger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class AuthFlow:
    """
    Login and token verification, with auditing.

    Failures are audited with the internal reason, then re-raised as the
    same generic AuthError.
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._identity_provider = identity_provider
        self._audit_logger = audit_logger

    async def login(
        self,
        username: str,
        password: str,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[str, UserProfile]:
        """
        Returns:
            (token, user_profile)

        Raises:
            AuthError: On any credential problem
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            token, user = self._identity_provider.login(username, password)
        except AuthError as e:
            logger.info("login_failed", username=username, reason=e.reason)
            if self._audit_logger:
                await self._audit_logger.log_login_failed(username, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_login_succeeded(user.username, correlation_id)
        return token, user

    async def verify(
        self,
        token: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> UserProfile:
        try:
            return self._identity_provider.verify(token)
        except AuthError as e:
            if self._audit_logger:
                await self._audit_logger.log_token_rejected(e.reason, correlation_id)
            raise


class ExpenseFlow:
    """
    Orchestrates the expense lifecycle.

    Flow for a new expense:
    1. Validate -> ExpenseValidationError on any error-level issue
    2. Store
    3. Audit
    """

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        validator: Optional[ExpenseValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        today: Callable[[], date] = utc_today,
    ):
        self._storage = storage
        self._validator = validator or ExpenseValidator()
        self._audit_logger = audit_logger
        self._today = today

    async def _store_unavailable(
        self,
        operation: str,
        error: StoreUnavailableError,
        correlation_id: Optional[UUID],
    ) -> None:
        logger.error("storage_unavailable", operation=operation, error=str(error))
        if self._audit_logger:
            await self._audit_logger.log_store_unavailable(
                operation=operation,
                error_message=str(error),
                correlation_id=correlation_id,
            )

    async def create_expense(
        self,
        draft: ExpenseDraft,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Expense, list[str]]:
        """
        Validate and store a new expense.

        Returns:
            (stored_expense, warnings)

        Raises:
            ExpenseValidationError: Missing or malformed fields; nothing is stored
            StoreUnavailableError: Backend unreachable
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            result = self._validator.validate_or_raise(draft, today=self._today())
        except ExpenseValidationError as e:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    issues=issues_to_dicts(e.issues),
                    user_id=draft.user_id,
                    correlation_id=correlation_id,
                )
            raise

        try:
            expense = await self._storage.add_expense(result.expense)
        except StoreUnavailableError as e:
            await self._store_unavailable("add_expense", e, correlation_id)
            raise

        logger.info(
            "expense_created",
            expense_id=expense.id,
            user_id=expense.user_id,
            category=expense.category,
        )
        if self._audit_logger:
            await self._audit_logger.log_expense_created(
                expense_id=expense.id,
                user_id=expense.user_id,
                amount=str(expense.amount),
                category=expense.category,
                correlation_id=correlation_id,
            )
        return expense, result.warnings

    async def list_expenses(
        self,
        user_id: Optional[str],
        month: Optional[int] = None,
        year: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Expense]:
        """
        List a user's expenses, optionally for one calendar month.

        Raises:
            ExpenseValidationError: No user, or month/year given alone or out of range
        """
        issues = []
        if not user_id or not user_id.strip():
            issues.append(ValidationIssue(
                field="userId",
                issue_type="missing",
                message="userId is required",
                severity="error",
            ))
        if (month is None) != (year is None):
            issues.append(ValidationIssue(
                field="month" if month is None else "year",
                issue_type="missing",
                message="month and year must be given together",
                severity="error",
            ))
        if month is not None and not 1 <= month <= 12:
            issues.append(ValidationIssue(
                field="month",
                issue_type="invalid_value",
                message="month must be between 1 and 12",
                severity="error",
            ))
        if issues:
            raise ExpenseValidationError(issues)

        try:
            return await self._storage.list_expenses(user_id, month=month, year=year)
        except StoreUnavailableError as e:
            await self._store_unavailable("list_expenses", e, correlation_id)
            raise

    async def update_expense(
        self,
        expense_id: str,
        update: ExpenseUpdate,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Expense, list[str]]:
        """
        Apply a partial update.

        Raises:
            ExpenseValidationError: A sent field fails to parse
            NotFoundError: Unknown expense id
        """
        correlation_id = correlation_id or create_correlation_id()
        changes, warnings = self._validator.validate_update(update, today=self._today())

        try:
            expense = await self._storage.update_expense(expense_id, changes)
        except StoreUnavailableError as e:
            await self._store_unavailable("update_expense", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_expense_updated(
                expense_id=expense_id,
                changed_fields=sorted(changes),
                correlation_id=correlation_id,
            )
        return expense, [w.message for w in warnings]

    async def delete_expense(
        self,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Raises:
            NotFoundError: Unknown expense id (also on a second delete)
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            await self._storage.delete_expense(expense_id)
        except StoreUnavailableError as e:
            await self._store_unavailable("delete_expense", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_expense_deleted(expense_id, correlation_id)


class DashboardFlow:
    """
    Builds a user's dashboard from a snapshot of their expenses.

    Reads the store, never writes.
    """

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        settings: Optional[ReportSettings] = None,
        today: Callable[[], date] = utc_today,
    ):
        self._storage = storage
        self._settings = settings or ReportSettings()
        self._today = today

    async def get_dashboard(
        self,
        user_id: Optional[str],
        as_of: Optional[date] = None,
    ) -> DashboardSummary:
        """
        Args:
            user_id: Whose dashboard
            as_of: Reference date; defaults to today (UTC)
        """
        if not user_id or not user_id.strip():
            raise ExpenseValidationError([ValidationIssue(
                field="userId",
                issue_type="missing",
                message="userId is required",
                severity="error",
            )])

        try:
            expenses = await self._storage.list_expenses(user_id)
        except StoreUnavailableError as e:
            logger.error("storage_unavailable", operation="dashboard", error=str(e))
            raise

        return build_dashboard(
            expenses,
            today=as_of or self._today(),
            months=self._settings.trailing_months,
            recent=self._settings.recent_count,
        )


@dataclass
class AppComponents:
    """Everything the API needs, built once at startup."""

    auth_flow: AuthFlow
    expense_flow: ExpenseFlow
    dashboard_flow: DashboardFlow
    expense_storage: ExpenseStorageInterface
    audit_logger: AuditLogger
    sheets_client: Optional[GoogleSheetsClient] = None


def create_storage(
    settings: Settings,
) -> tuple[ExpenseStorageInterface, AuditStorageInterface, Optional[GoogleSheetsClient]]:
    """
    Create the storage backend named in configuration.

    For Google Sheets this connects (with retries) and creates the
    worksheets if needed.

    Raises:
        StoreUnavailableError: Backend configured but unreachable
    """
    backend = settings.storage.backend

    if backend == "google_sheets":
        sheets_client = GoogleSheetsClient(settings.google_sheets)
        sheets_client.open()
        return (
            GoogleSheetsExpenseStorage(sheets_client),
            GoogleSheetsAuditStorage(sheets_client),
            sheets_client,
        )

    return InMemoryExpenseStorage(), InMemoryAuditStorage(), None


def create_app_components(
    settings: Optional[Settings] = None,
    expense_storage: Optional[ExpenseStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    identity_provider: Optional[IdentityProvider] = None,
    today: Callable[[], date] = utc_today,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Configuration; defaults to get_settings()
        expense_storage: Use this store instead of the configured one
        audit_storage: Use this audit store instead of the configured one
        identity_provider: Use this provider instead of the demo table
        today: Clock used for "this month" and date sanity checks

    Returns:
        AppComponents
    """
    settings = settings or get_settings()
    sheets_client = None

    if expense_storage is None:
        expense_storage, configured_audit, sheets_client = create_storage(settings)
        audit_storage = audit_storage or configured_audit

    audit_logger = AuditLogger(audit_storage)
    identity_provider = identity_provider or StaticIdentityProvider(settings.auth)
    report_settings = settings.reports

    logger.info("components_created", storage=expense_storage.backend_name)

    return AppComponents(
        auth_flow=AuthFlow(identity_provider, audit_logger),
        expense_flow=ExpenseFlow(
            storage=expense_storage,
            validator=ExpenseValidator(report_settings),
            audit_logger=audit_logger,
            today=today,
        ),
        dashboard_flow=DashboardFlow(
            storage=expense_storage,
            settings=report_settings,
            today=today,
        ),
        expense_storage=expense_storage,
        audit_logger=audit_logger,
        sheets_client=sheets_client,
    )
