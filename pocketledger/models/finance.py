"""
Core Finance Models for PocketLedger

These models define the strict schemas for every finance record the
ledger persists. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for local storage
4. Keep derived values derived

DESIGN DECISION: Budget "spent" and SavingsGoal "current amount" are NOT
fields. Spent is folded from transactions by the budget repository; the
current amount is folded from the goal's own contribution log. Neither can
drift from its source because neither is stored.
"""

import math
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from pocketledger.codec.color import SYSTEM_COLORS, Color, HexColor, parse_hex
from pocketledger.models.base import LocalDateTime, Record, local_now
from pocketledger.models.dates import add_months, step, window_containing


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money movement."""
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"  # Between own accounts; neither income nor expense


class AccountType(str, Enum):
    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT = "credit"
    INVESTMENT = "investment"
    CASH = "cash"
    OTHER = "other"


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class RecurrenceInterval(str, Enum):
    """How often a transaction or bill repeats."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class BudgetPeriod(str, Enum):
    """
    Budget period options.

    CUSTOM budgets run once, from start_date to end_date inclusive.
    """
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    CUSTOM = "custom"


class ProgressLevel(str, Enum):
    """Traffic-light state of a budget."""
    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"


class BillStatus(str, Enum):
    """Derived bill status. Never stored."""
    PAID = "paid"
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    UPCOMING = "upcoming"


# =============================================================================
# SUPPORTING VALUE OBJECTS
# =============================================================================

class Location(BaseModel):
    """Where a transaction happened."""
    model_config = ConfigDict(str_strip_whitespace=True)

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None

    @property
    def formatted_address(self) -> str:
        parts = [
            self.name,
            self.address,
            self.city,
            self.state,
            self.postal_code,
            self.country,
        ]
        return ", ".join(part for part in parts if part)


class AttachmentRef(BaseModel):
    """
    Reference to a binary blob held by the attachment store.

    The ledger never inlines receipt images into the transactions blob.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    blob_key: str = Field(..., min_length=1)
    filename: str = Field(..., min_length=1, max_length=255)
    media_type: str = Field(default="application/octet-stream")


# =============================================================================
# TRANSACTIONS & ACCOUNTS
# =============================================================================

class Transaction(Record):
    """
    A single money movement.

    `amount` is a signed decimal. The type gives it direction: an expense of
    25.99 is stored as amount=25.99, type=expense. A negative expense is a
    refund and reduces spending.
    """

    amount: Decimal = Field(
        ...,
        description="Signed amount in the transaction currency"
    )
    type: TransactionType
    category_id: Optional[UUID] = Field(
        default=None,
        description="Category reference; None means uncategorized"
    )
    merchant: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Merchant or payee"
    )
    date: LocalDateTime = Field(default_factory=local_now)
    account_id: UUID = Field(
        ...,
        description="Account the money moved through"
    )
    notes: Optional[str] = Field(default=None, max_length=1000)
    tags: set[str] = Field(default_factory=set)
    location: Optional[Location] = None
    receipt: Optional[AttachmentRef] = None
    priority: Priority = Priority.NORMAL
    recurrence: Optional[RecurrenceInterval] = None
    currency: str = Field(default="USD", min_length=3, max_length=3)

    @field_validator('tags')
    @classmethod
    def clean_tags(cls, v: set[str]) -> set[str]:
        return {tag.strip() for tag in v if tag and tag.strip()}

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @field_serializer('tags')
    def serialize_tags(self, tags: set[str]) -> list[str]:
        # Sets have no stable order; persisted bytes must be deterministic
        return sorted(tags)

    @property
    def signed_amount(self) -> Decimal:
        """Income positive, expense negative, transfers neutral."""
        if self.type == TransactionType.INCOME:
            return self.amount
        if self.type == TransactionType.EXPENSE:
            return -self.amount
        return Decimal("0")

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None


class Account(Record):
    """A place money is held."""

    name: str = Field(..., min_length=1, max_length=100)
    type: AccountType = AccountType.CHECKING
    balance: Decimal = Field(default=Decimal("0"))
    currency: str = Field(default="USD", min_length=3, max_length=3)
    institution: Optional[str] = Field(default=None, max_length=100)
    is_active: bool = True

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class Category(Record):
    """Spending/income category with a display glyph and color."""

    name: str = Field(..., min_length=1, max_length=60)
    icon: str = Field(default="circle", description="Icon glyph name")
    color: HexColor = Field(default_factory=lambda: parse_hex(SYSTEM_COLORS["gray"]))
    budget_limit: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Optional monthly allowance shown next to the category"
    )


# Predefined categories: (name, icon, palette color)
PREDEFINED_CATEGORIES: list[tuple[str, str, str]] = [
    ("Food & Dining", "fork.knife", "orange"),
    ("Transportation", "car.fill", "blue"),
    ("Shopping", "bag.fill", "purple"),
    ("Entertainment", "tv.fill", "pink"),
    ("Healthcare", "cross.fill", "red"),
    ("Utilities", "bolt.fill", "yellow"),
    ("Housing", "house.fill", "brown"),
    ("Education", "book.fill", "indigo"),
    ("Travel", "airplane", "cyan"),
    ("Gifts", "gift.fill", "mint"),
    ("Insurance", "shield.fill", "teal"),
    ("Investments", "chart.line.uptrend.xyaxis", "green"),
    ("Salary", "dollarsign.circle.fill", "green"),
    ("Freelance", "laptopcomputer", "blue"),
    ("Other", "ellipsis.circle.fill", "gray"),
]


# =============================================================================
# BUDGETS
# =============================================================================

class Budget(Record):
    """
    Spending limit for one category over a repeating period.

    Spent is NOT stored here - see BudgetRepository.spent().
    """

    name: str = Field(..., min_length=1, max_length=100)
    category_id: UUID = Field(
        ...,
        description="Category whose expenses count against this budget"
    )
    limit: Decimal = Field(..., ge=0, description="Allowed spend per period")
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    start_date: date
    end_date: Optional[date] = Field(
        default=None,
        description="Last day the budget applies (required for custom periods)"
    )
    currency: str = Field(default="USD", min_length=3, max_length=3)
    is_active: bool = True

    @model_validator(mode='after')
    def validate_dates(self) -> 'Budget':
        """Validate period/date relationships."""
        if self.period == BudgetPeriod.CUSTOM and self.end_date is None:
            raise ValueError("Custom budgets need an end date")
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("Budget end date cannot be before start date")
        return self

    def window(self, as_of: date) -> Optional[tuple[date, date]]:
        """
        The [start, end) period that contains `as_of`, or None when the
        budget has not started yet or has already ended.
        """
        if as_of < self.start_date:
            return None
        if self.end_date and as_of > self.end_date:
            return None

        if self.period == BudgetPeriod.CUSTOM:
            return self.start_date, self.end_date + timedelta(days=1)

        start, end = window_containing(self.start_date, self.period.value, as_of)
        if self.end_date:
            end = min(end, self.end_date + timedelta(days=1))
        return start, end

    def days_remaining(self, as_of: date) -> int:
        """Days left in the current period after `as_of`."""
        window = self.window(as_of)
        if window is None:
            return 0
        return max(0, (window[1] - timedelta(days=1) - as_of).days)


# =============================================================================
# BILLS
# =============================================================================

class Bill(Record):
    """A bill or subscription to pay."""

    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    due_date: date
    recurrence: Optional[RecurrenceInterval] = None
    is_paid: bool = False
    paid_date: Optional[date] = None
    account_id: Optional[UUID] = Field(
        default=None,
        description="Account the bill is paid from"
    )
    category_id: Optional[UUID] = None
    service_provider: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=1000)
    priority: Priority = Priority.NORMAL

    @model_validator(mode='after')
    def validate_payment(self) -> 'Bill':
        if self.paid_date and not self.is_paid:
            raise ValueError("Unpaid bill cannot have a paid date")
        return self

    def days_until_due(self, as_of: date) -> int:
        return (self.due_date - as_of).days

    def status(self, as_of: date, due_soon_days: int = 7) -> BillStatus:
        if self.is_paid:
            return BillStatus.PAID
        days = self.days_until_due(as_of)
        if days < 0:
            return BillStatus.OVERDUE
        if days <= due_soon_days:
            return BillStatus.DUE_SOON
        return BillStatus.UPCOMING

    def status_text(self, as_of: date) -> str:
        if self.is_paid:
            return "Paid"
        days = self.days_until_due(as_of)
        if days < 0:
            return "Overdue"
        if days == 0:
            return "Due Today"
        if days == 1:
            return "Due Tomorrow"
        return f"Due in {days} days"

    def next_due_date(self) -> Optional[date]:
        """Due date of the following occurrence, for recurring bills."""
        if self.recurrence is None:
            return None
        return step(self.due_date, self.recurrence.value)


# =============================================================================
# SAVINGS GOALS
# =============================================================================

class Contribution(BaseModel):
    """One deposit towards a savings goal."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4, frozen=True)
    amount: Decimal = Field(..., gt=0)
    date: LocalDateTime = Field(default_factory=local_now)
    note: Optional[str] = Field(default=None, max_length=500)
    source: str = Field(default="manual", max_length=100)


class SavingsGoal(Record):
    """
    Savings target with an append-only contribution log.

    `opening_amount` is what was already saved when the goal was created.
    `current_amount` is a read-only fold: opening + sum(contributions).
    """

    name: str = Field(..., min_length=1, max_length=100)
    target_amount: Decimal = Field(..., gt=0)
    opening_amount: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    target_date: Optional[date] = None
    category_id: Optional[UUID] = None
    contributions: list[Contribution] = Field(default_factory=list)
    monthly_contribution: Decimal = Field(default=Decimal("0"), ge=0)
    notes: Optional[str] = Field(default=None, max_length=1000)
    is_active: bool = True

    @property
    def current_amount(self) -> Decimal:
        return self.opening_amount + sum(
            (c.amount for c in self.contributions),
            Decimal("0"),
        )

    @property
    def remaining(self) -> Decimal:
        return max(Decimal("0"), self.target_amount - self.current_amount)

    @property
    def progress(self) -> Decimal:
        """Fraction of the target reached (may exceed 1)."""
        return self.current_amount / self.target_amount

    @property
    def is_completed(self) -> bool:
        return self.current_amount >= self.target_amount

    def estimated_completion(self, as_of: date) -> Optional[date]:
        """
        Projected date the target is reached at the monthly contribution
        rate, or None without a rate.
        """
        if self.is_completed:
            return as_of
        if self.monthly_contribution <= 0:
            return None
        months = math.ceil(self.remaining / self.monthly_contribution)
        return add_months(as_of, months)


def palette_color(name: str) -> Color:
    """Color from the system palette by name."""
    return parse_hex(SYSTEM_COLORS[name])
