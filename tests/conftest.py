"""
Shared fixtures.

No test talks to Google: the sheets backend runs against the in-process
FakeSpreadsheet below. Async code is driven with asyncio.run.
"""

import asyncio
from datetime import date
from decimal import Decimal

import gspread
import pytest

from fintracker.config import AuthSettings, GoogleSheetsSettings, ReportSettings
from fintracker.models.expense import Expense


TODAY = date(2024, 3, 20)


def run(coro):
    """Run a coroutine to completion from a synchronous test."""
    return asyncio.run(coro)


def make_expense(
    user_id: str = "Sarthak_Pawnar_03",
    amount: str = "10.00",
    category: str = "food",
    on: date = TODAY,
    description: str = "",
) -> Expense:
    return Expense(
        user_id=user_id,
        amount=Decimal(amount),
        category=category,
        date=on,
        description=description,
    )


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the storage layer."""

    def __init__(self, title: str):
        self.title = title
        self.rows: list[list[str]] = []
        self.fail_with = None

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    def append_row(self, values, value_input_option=None):
        self._check()
        self.rows.append([str(v) for v in values])

    def get_all_values(self):
        self._check()
        return [list(row) for row in self.rows]

    def update(self, range_name=None, values=None, value_input_option=None):
        self._check()
        row_number = int(range_name.lstrip("A"))
        self.rows[row_number - 1] = [str(v) for v in values[0]]

    def delete_rows(self, index):
        self._check()
        del self.rows[index - 1]


class FakeSpreadsheet:
    def __init__(self):
        self.sheets: dict[str, FakeWorksheet] = {}

    def worksheet(self, title):
        try:
            return self.sheets[title]
        except KeyError:
            raise gspread.WorksheetNotFound(title)

    def add_worksheet(self, title, rows, cols):
        sheet = FakeWorksheet(title)
        self.sheets[title] = sheet
        return sheet


@pytest.fixture
def auth_settings():
    return AuthSettings(jwt_secret="test-secret-123", token_ttl_minutes=60)


@pytest.fixture
def report_settings():
    return ReportSettings()


@pytest.fixture
def sheets_settings(tmp_path):
    credentials = tmp_path / "service-account.json"
    credentials.write_text("{}")
    return GoogleSheetsSettings(
        credentials_path=str(credentials),
        spreadsheet_id="spreadsheet-123",
    )


@pytest.fixture
def fake_spreadsheet():
    return FakeSpreadsheet()
