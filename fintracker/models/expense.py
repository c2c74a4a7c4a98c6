"""
Core Data Models for FinTracker

These models define the schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage, logging and the JSON API

DESIGN DECISION: Raw client input (ExpenseDraft, ExpenseUpdate) is kept
separate from the stored Expense. Drafts are loosely typed so the validator
can report every problem with field context; an Expense only exists once
its fields have been parsed.

Attributes are snake_case in Python and camelCase on the wire.
"""

from datetime import date as Date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    SecretStr,
)
from pydantic.alias_generators import to_camel


# Decimal in Python, plain JSON number on the wire
Money = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase field names."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Suggested expense categories.

    Categories are advisory: an expense with a category outside this list
    is stored as-is and the validator raises a warning.
    """
    FOOD = "food"
    TRAVEL = "travel"
    RENT = "rent"
    UTILITIES = "utilities"
    ENTERTAINMENT = "entertainment"
    HEALTHCARE = "healthcare"
    OTHER = "other"


CATEGORIES: list[str] = [category.value for category in ExpenseCategory]


# =============================================================================
# CORE EXPENSE MODEL
# =============================================================================

class Expense(CamelModel):
    """
    A stored expense.

    `id` and `user_id` never change after creation. The store stamps
    `created_at` on add and `updated_at` on every update.
    """

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique expense ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owning user (username)"
    )
    amount: Annotated[
        Money,
        Field(ge=0, description="Amount spent (USD)")
    ]
    category: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Spending category"
    )
    description: str = Field(
        default="",
        max_length=500,
        description="Free text note"
    )
    date: Date = Field(
        ...,
        description="Day the money was spent"
    )

    # Timestamps
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the expense was recorded"
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        description="Last update timestamp"
    )

    def to_api_dict(self) -> dict:
        """Serialize with camelCase keys and JSON-safe values."""
        return self.model_dump(mode="json", by_alias=True)


class ExpenseDraft(CamelModel):
    """
    Raw expense input, exactly as the client sent it.

    Everything is optional here: the validator decides what is missing
    and what fails to parse.
    """

    user_id: Optional[str] = None
    # str from forms, int/float from JSON clients
    amount: Any = None
    category: Optional[str] = None
    description: Optional[str] = None
    date: Any = None


class ExpenseUpdate(CamelModel):
    """
    Partial update of an expense.

    Only the mutable fields can be changed; `id`, `userId` and the
    timestamps are ignored if a client sends them.
    """
    model_config = ConfigDict(extra="ignore")

    amount: Any = None
    category: Optional[str] = None
    description: Optional[str] = None
    date: Any = None

    def provided_fields(self) -> set[str]:
        """Fields the client actually sent (explicit nulls included)."""
        return set(self.model_fields_set)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (required fields, parsing)
    Stage 2: Semantic validation (advisory checks)
    """

    validated_at: datetime = Field(
        default_factory=utc_now
    )

    schema_valid: bool = Field(
        ...,
        description="Did schema validation pass?"
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    # Populated only when schema validation passed
    expense: Optional[Expense] = None

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        """Messages of non-blocking issues."""
        return [issue.message for issue in self.issues if issue.severity == "warning"]


# =============================================================================
# USER MODELS
# =============================================================================

class UserProfile(BaseModel):
    """Public view of a user, safe to return to clients."""

    username: str
    name: str


class DemoUser(BaseModel):
    """An entry of the static credential table."""

    username: str = Field(..., min_length=1)
    password: SecretStr
    name: str = Field(..., min_length=1)

    def profile(self) -> UserProfile:
        return UserProfile(username=self.username, name=self.name)


# =============================================================================
# DASHBOARD MODELS
# =============================================================================

class MonthlyTotal(BaseModel):
    """One point of the trailing-months trend."""

    month: str = Field(
        ...,
        description="Label such as 'Mar 2024'"
    )
    amount: Money = Decimal("0")


class DashboardSummary(CamelModel):
    """
    Derived spending summary for one user. Never persisted.
    """

    total_this_month: Money = Decimal("0")
    category_breakdown: dict[str, Money] = Field(default_factory=dict)
    monthly_data: list[MonthlyTotal] = Field(default_factory=list)
    recent_expenses: list[Expense] = Field(default_factory=list)

    def to_api_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
