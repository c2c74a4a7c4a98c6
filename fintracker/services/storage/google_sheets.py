"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the persistent backend because:
1. Users can view their data directly in Sheets
2. No database server to run
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

Each worksheet is treated as a document collection: one expense per row,
header row first.

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions; every write is a single-row operation
- Limited query capabilities (we filter in Python)

The connection is made once at startup (with retries). Request-time
failures are surfaced as StoreUnavailableError and not retried.

gspread is blocking, so every sheet call runs in a worker thread. Writes
hold a lock around their read-modify-write so two requests never touch
the same rows at once.
"""

import asyncio
import json
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fintracker.config import GoogleSheetsSettings
from fintracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from fintracker.models.expense import Expense, utc_now
from fintracker.services.storage.interface import (
    MUTABLE_FIELDS,
    AuditStorageInterface,
    ExpenseStorageInterface,
    NotFoundError,
    StorageError,
    StoreUnavailableError,
    in_month,
    sort_expenses,
)


logger = structlog.get_logger(__name__)

# Errors that mean "the backend could not be reached or refused the call"
BACKEND_ERRORS = (gspread.exceptions.GSpreadException, OSError)

# Column mappings for Expenses sheet
EXPENSE_COLUMNS = [
    "id",
    "user_id",
    "amount",
    "category",
    "description",
    "date",
    "created_at",
    "updated_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "user_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and opens (or creates) the worksheets.
    Create one at startup and share it between the storages.
    """

    def __init__(
        self,
        settings: GoogleSheetsSettings,
        spreadsheet: Optional[gspread.Spreadsheet] = None,
        client: Optional[gspread.Client] = None,
    ):
        self._settings = settings
        self._client = client
        self._spreadsheet = spreadsheet

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StoreUnavailableError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StoreUnavailableError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    @retry(
        retry=retry_if_exception_type((gspread.exceptions.APIError, OSError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _open_by_key(self, client: gspread.Client) -> gspread.Spreadsheet:
        # Transient API and network errors are retried; a missing sheet is not
        return client.open_by_key(self._settings.spreadsheet_id)

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = self._open_by_key(client)
            except gspread.SpreadsheetNotFound:
                raise StoreUnavailableError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
            except BACKEND_ERRORS as e:
                raise StoreUnavailableError(f"Failed to open spreadsheet: {e}")
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        """Get or create the Expenses worksheet."""
        return self._get_or_create_sheet(
            self._settings.expenses_sheet_name, EXPENSE_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )

    def open(self) -> None:
        """
        Connect and make sure both worksheets exist.

        Called once at application startup.

        Raises:
            StoreUnavailableError: If the spreadsheet cannot be reached
        """
        try:
            self.get_expenses_sheet()
            self.get_audit_sheet()
        except BACKEND_ERRORS as e:
            raise StoreUnavailableError(f"Failed to prepare worksheets: {e}")
        logger.info(
            "google_sheets_connected",
            spreadsheet_id=self._settings.spreadsheet_id,
        )


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsExpenseStorage(ExpenseStorageInterface):
    """
    Google Sheets implementation of expense storage.

    Rows are appended in insertion order, so sorting the sheet contents
    by date (stable) yields the canonical ordering.
    """

    backend_name = "google_sheets"

    def __init__(self, client: GoogleSheetsClient):
        self._client = client
        # Row indexes shift on delete, so writes must not interleave
        self._lock = asyncio.Lock()

    def _expense_to_row(self, expense: Expense) -> list:
        """Convert an Expense to a spreadsheet row."""
        return [
            expense.id,
            expense.user_id,
            str(expense.amount),
            expense.category,
            expense.description,
            expense.date.isoformat(),
            expense.created_at.isoformat(),
            expense.updated_at.isoformat() if expense.updated_at else "",
        ]

    def _row_to_expense(self, row: list) -> Expense:
        """Convert a spreadsheet row to an Expense."""
        updated_at = _safe_get(row, 7)
        return Expense(
            id=_safe_get(row, 0),
            user_id=_safe_get(row, 1),
            amount=Decimal(_safe_get(row, 2)),
            category=_safe_get(row, 3),
            description=_safe_get(row, 4),
            date=date.fromisoformat(_safe_get(row, 5)),
            created_at=datetime.fromisoformat(_safe_get(row, 6)),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )

    def _read_rows(self) -> list[list]:
        """All data rows, header excluded."""
        sheet = self._client.get_expenses_sheet()
        return sheet.get_all_values()[1:]

    def _parse_rows(self, rows: list[list]) -> list[Expense]:
        expenses = []
        for row in rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                expenses.append(self._row_to_expense(row))
            except (ValueError, InvalidOperation) as e:
                logger.warning("malformed_expense_row", row_id=row[0], error=str(e))
        return expenses

    def _append(self, expense: Expense) -> None:
        sheet = self._client.get_expenses_sheet()
        sheet.append_row(self._expense_to_row(expense), value_input_option="RAW")

    def _find(self, expense_id: str) -> Optional[Expense]:
        for row in self._read_rows():
            if row and row[0] == expense_id:
                return self._row_to_expense(row)
        return None

    def _rewrite(self, expense_id: str, changes: dict[str, Any]) -> Optional[Expense]:
        """Rewrite the expense's row in a single range update."""
        sheet = self._client.get_expenses_sheet()
        all_rows = sheet.get_all_values()

        # Row 1 is the header
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == expense_id:
                current = self._row_to_expense(row)
                allowed = {k: v for k, v in changes.items() if k in MUTABLE_FIELDS}
                allowed["updated_at"] = utc_now()
                updated = current.model_copy(update=allowed)

                sheet.update(
                    range_name=f"A{idx}",
                    values=[self._expense_to_row(updated)],
                    value_input_option="RAW",
                )
                return updated
        return None

    def _remove(self, expense_id: str) -> bool:
        sheet = self._client.get_expenses_sheet()
        all_rows = sheet.get_all_values()

        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == expense_id:
                sheet.delete_rows(idx)
                return True
        return False

    async def add_expense(self, expense: Expense) -> Expense:
        """Append an expense row."""
        stored = expense.model_copy(update={"created_at": utc_now()})
        try:
            async with self._lock:
                await asyncio.to_thread(self._append, stored)
        except BACKEND_ERRORS as e:
            raise StoreUnavailableError(f"Failed to save expense: {e}")
        return stored

    async def get_expense(self, expense_id: str) -> Optional[Expense]:
        """Retrieve an expense by its ID."""
        try:
            return await asyncio.to_thread(self._find, expense_id)
        except BACKEND_ERRORS as e:
            raise StoreUnavailableError(f"Failed to get expense: {e}")

    async def list_expenses(
        self,
        user_id: str,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[Expense]:
        """List one user's expenses."""
        try:
            rows = await asyncio.to_thread(self._read_rows)
        except BACKEND_ERRORS as e:
            raise StoreUnavailableError(f"Failed to list expenses: {e}")

        # Cheap pre-filter on the raw user column before parsing
        owned = [row for row in rows if len(row) > 1 and row[1] == user_id]
        expenses = [
            expense for expense in self._parse_rows(owned)
            if in_month(expense, month, year)
        ]
        return sort_expenses(expenses)

    async def update_expense(self, expense_id: str, changes: dict[str, Any]) -> Expense:
        try:
            async with self._lock:
                updated = await asyncio.to_thread(self._rewrite, expense_id, changes)
        except BACKEND_ERRORS as e:
            raise StoreUnavailableError(f"Failed to update expense: {e}")
        except (ValueError, InvalidOperation) as e:
            raise StorageError(f"Stored expense {expense_id} is malformed: {e}")

        if updated is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        return updated

    async def delete_expense(self, expense_id: str) -> None:
        """Delete an expense row by ID."""
        try:
            async with self._lock:
                removed = await asyncio.to_thread(self._remove, expense_id)
        except BACKEND_ERRORS as e:
            raise StoreUnavailableError(f"Failed to delete expense: {e}")

        if not removed:
            raise NotFoundError(f"Expense not found: {expense_id}")

    async def count_expenses(self) -> int:
        try:
            rows = await asyncio.to_thread(self._read_rows)
        except BACKEND_ERRORS as e:
            raise StoreUnavailableError(f"Failed to count expenses: {e}")
        return sum(1 for row in rows if row and row[0])


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: GoogleSheetsClient):
        self._client = client

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        correlation_id = _safe_get(row, 7)
        details = _safe_get(row, 9)
        return AuditEvent(
            event_id=_safe_get(row, 0),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=_safe_get(row, 5) or None,
            user_id=_safe_get(row, 6) or None,
            correlation_id=correlation_id or None,
            description=_safe_get(row, 8),
            details=json.loads(details) if details else {},
            error_message=_safe_get(row, 10) or None,
            is_user_action=_safe_get(row, 11).lower() == "true",
        )

    def _read_rows(self) -> list[list]:
        return self._client.get_audit_sheet().get_all_values()[1:]

    def _append(self, event: AuditEvent) -> None:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")

    async def _read_events(self) -> list[AuditEvent]:
        try:
            all_rows = await asyncio.to_thread(self._read_rows)
        except BACKEND_ERRORS as e:
            raise StoreUnavailableError(f"Failed to read audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError:
                continue
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            await asyncio.to_thread(self._append, event)
            return True
        except BACKEND_ERRORS as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in await self._read_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = await self._read_events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
