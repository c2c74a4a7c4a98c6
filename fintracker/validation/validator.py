"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (userId, amount, category, date)
- Amount parsing (finite, non-negative decimal)
- Date parsing (YYYY-MM-DD or a full ISO timestamp)
- Any failure here is an error and nothing is stored

STAGE 2 - SEMANTIC VALIDATION:
- Category outside the suggested list
- Date far in the future
- Unusually large amount
- These are warnings only; the expense is still stored

IMPORTANT: Validation NEVER silently fixes issues. "abc" is not zero and
"-5" is not five.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from fintracker.config import ReportSettings
from fintracker.models.expense import (
    CATEGORIES,
    Expense,
    ExpenseDraft,
    ExpenseUpdate,
    ValidationIssue,
    ValidationResult,
)


REQUIRED_FIELDS = ("user_id", "amount", "category", "date")

# Match the limits declared on the Expense model
MAX_CATEGORY_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 500

# Amounts are whole cents below this bound, so they always fit a JSON number
MAX_AMOUNT = Decimal("1e15")
CENT = Decimal("0.01")

# Wire names, used in messages shown to clients
FIELD_LABELS = {
    "user_id": "userId",
    "amount": "amount",
    "category": "category",
    "description": "description",
    "date": "date",
}


class ExpenseValidationError(Exception):
    """Expense input was rejected. Carries the error-level issues."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        fields = ", ".join(issue.field for issue in issues)
        super().__init__(f"Invalid expense input: {fields}")


def parse_amount(value: Any) -> Decimal:
    """
    Parse a client-supplied amount.

    Accepts numbers and numeric strings ("42.50", " 7 ").
    Raises ValueError for anything else, including negatives,
    NaN, infinity, more than two decimal places and amounts of
    10^15 or more.
    """
    if value is None or isinstance(value, bool):
        raise ValueError("Amount is required")
    if isinstance(value, float):
        # Go through str so 42.5 becomes Decimal("42.5"), not its binary expansion
        value = repr(value)
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Amount is not a number: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Amount must be a finite number: {value!r}")
    if amount < 0:
        raise ValueError("Amount cannot be negative")
    if amount >= MAX_AMOUNT:
        raise ValueError(f"Amount is too large: {value!r}")
    if amount % CENT != 0:
        raise ValueError(f"Amount has more than two decimal places: {value!r}")
    # Drops the sign of "-0"
    return amount.copy_abs()


def parse_date(value: Any) -> date:
    """
    Parse a client-supplied expense date.

    Accepts date objects, "YYYY-MM-DD" and full ISO timestamps
    ("2024-03-15T00:00:00.000Z"); for timestamps the date part is kept.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Date is required")

    text = value.strip()
    if len(text) == 10:
        parse = date.fromisoformat
    elif len(text) > 10 and text[10] in "T ":
        parse = datetime.fromisoformat
        # fromisoformat only takes a "Z" suffix from Python 3.11 on
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
    else:
        raise ValueError(f"Date is not in YYYY-MM-DD format: {value!r}")

    try:
        parsed = parse(text)
    except ValueError:
        raise ValueError(f"Date is not in YYYY-MM-DD format: {value!r}")
    return parsed.date() if isinstance(parsed, datetime) else parsed


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class ExpenseValidator:
    """
    Validates expense input through a two-stage pipeline.

    Stage 1: Schema validation (blocking)
    Stage 2: Semantic validation (warnings only)
    """

    def __init__(self, settings: Optional[ReportSettings] = None):
        self._settings = settings or ReportSettings()

    def _validate_schema(
        self,
        draft: ExpenseDraft,
    ) -> tuple[dict[str, Any], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (parsed_fields, list_of_issues)
        """
        issues = []
        parsed: dict[str, Any] = {}

        for field in REQUIRED_FIELDS:
            if _is_blank(getattr(draft, field)):
                issues.append(ValidationIssue(
                    field=FIELD_LABELS[field],
                    issue_type="missing",
                    message=f"{FIELD_LABELS[field]} is required",
                    severity="error",
                ))

        if not _is_blank(draft.user_id):
            parsed["user_id"] = draft.user_id
        if not _is_blank(draft.category):
            parsed["category"] = draft.category.lower()

        if not _is_blank(draft.amount):
            try:
                parsed["amount"] = parse_amount(draft.amount)
            except ValueError as e:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message=str(e),
                    severity="error",
                ))

        if not _is_blank(draft.date):
            try:
                parsed["date"] = parse_date(draft.date)
            except ValueError as e:
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="invalid_format",
                    message=str(e),
                    severity="error",
                ))

        parsed["description"] = (draft.description or "").strip()

        issues.extend(self._check_lengths(parsed))

        return parsed, issues

    def _check_lengths(self, fields: dict[str, Any]) -> list[ValidationIssue]:
        issues = []
        for field, limit in (("category", MAX_CATEGORY_LENGTH), ("description", MAX_DESCRIPTION_LENGTH)):
            value = fields.get(field)
            if value is not None and len(value) > limit:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="too_long",
                    message=f"{field} must be at most {limit} characters",
                    severity="error",
                ))
        return issues

    def _validate_semantic(
        self,
        fields: dict[str, Any],
        today: Optional[date] = None,
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation over already-parsed fields.

        Works on partial field sets too, so updates reuse it.
        """
        issues = []
        today = today or date.today()

        category = fields.get("category")
        if category is not None and category not in CATEGORIES:
            issues.append(ValidationIssue(
                field="category",
                issue_type="unknown_category",
                message=f"Category '{category}' is not one of: {', '.join(CATEGORIES)}",
                severity="warning",
            ))

        expense_date = fields.get("date")
        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if expense_date is not None and expense_date > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Expense date ({expense_date}) is in the future",
                severity="warning",
            ))

        amount = fields.get("amount")
        max_amount = Decimal(str(self._settings.max_expense_amount))
        if amount is not None and amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount (${amount:,.2f}) seems unusually high",
                severity="warning",
            ))

        return issues

    def validate(
        self,
        draft: ExpenseDraft,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Returns:
            ValidationResult; `expense` is set when schema validation passed
        """
        parsed, issues = self._validate_schema(draft)
        schema_valid = not any(issue.severity == "error" for issue in issues)

        expense = None
        # Only run stage 2 if stage 1 passes
        if schema_valid:
            issues.extend(self._validate_semantic(parsed, today))
            expense = Expense(**parsed)

        return ValidationResult(
            schema_valid=schema_valid,
            is_valid=schema_valid,
            issues=issues,
            expense=expense,
        )

    def validate_or_raise(
        self,
        draft: ExpenseDraft,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """Like validate(), but raises ExpenseValidationError on errors."""
        result = self.validate(draft, today)
        if not result.is_valid:
            raise ExpenseValidationError(
                [issue for issue in result.issues if issue.severity == "error"]
            )
        return result

    def validate_update(
        self,
        update: ExpenseUpdate,
        today: Optional[date] = None,
    ) -> tuple[dict[str, Any], list[ValidationIssue]]:
        """
        Parse the fields of a partial update.

        Returns:
            (changes, warnings) where changes only holds fields the client sent

        Raises:
            ExpenseValidationError: If a sent field is blank or fails to parse
        """
        changes: dict[str, Any] = {}
        errors = []
        provided = update.provided_fields()

        if "amount" in provided:
            try:
                changes["amount"] = parse_amount(update.amount)
            except ValueError as e:
                errors.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message=str(e),
                    severity="error",
                ))

        if "date" in provided:
            try:
                changes["date"] = parse_date(update.date)
            except ValueError as e:
                errors.append(ValidationIssue(
                    field="date",
                    issue_type="invalid_format",
                    message=str(e),
                    severity="error",
                ))

        if "category" in provided:
            if _is_blank(update.category):
                errors.append(ValidationIssue(
                    field="category",
                    issue_type="missing",
                    message="category cannot be empty",
                    severity="error",
                ))
            else:
                changes["category"] = update.category.lower()

        if "description" in provided:
            changes["description"] = (update.description or "").strip()

        errors.extend(self._check_lengths(changes))
        if errors:
            raise ExpenseValidationError(errors)

        return changes, self._validate_semantic(changes, today)


def issues_to_dicts(issues: list[ValidationIssue]) -> list[dict]:
    """Compact form used in API responses and audit details."""
    return [
        {"field": i.field, "type": i.issue_type, "message": i.message}
        for i in issues
    ]
