"""
Ledger Input Models

These models describe what the collaborators hand to the balance history
layer: transactions, accounts, and the trusted "balance as of date" anchor.

DESIGN DECISION: All models are frozen. Each call owns an immutable
snapshot of its inputs, so nothing computed from them can be disturbed by
another caller.

Money is always Decimal. Instants are always timezone-aware; a naive
datetime is read as UTC.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from balance_history.errors import InvalidAnchorError, ValidationError


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes; leave aware ones untouched."""
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """
    Direction of a transaction.

    DEBIT takes money out of the account, CREDIT puts money in.
    """
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A single ledger entry.

    The amount is never negative; direction comes from ``type``.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Ledger-assigned transaction ID"
    )
    account_id: str = Field(
        ...,
        min_length=1,
        description="Account the transaction was booked against"
    )
    date: datetime = Field(
        ...,
        description="When the transaction happened"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Unsigned amount"
    )
    type: TransactionType
    description: Optional[str] = Field(
        default=None,
        max_length=500,
    )

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return as_utc(v)

    @property
    def signed_delta(self) -> Decimal:
        """The value this transaction adds to a running balance."""
        if self.type == TransactionType.DEBIT:
            return -self.amount
        return self.amount


# =============================================================================
# ACCOUNTS AND ANCHORS
# =============================================================================

class AccountAnchor(BaseModel):
    """
    A trusted checkpoint: the account held ``balance`` at ``as_of_date``.

    Without an ``as_of_date`` there is no checkpoint and the history is
    derived forward from zero.
    """
    model_config = ConfigDict(frozen=True)

    account_id: str
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Balance declared by the user"
    )
    as_of_date: Optional[datetime] = Field(
        default=None,
        description="Instant the balance was true at"
    )

    @field_validator("as_of_date")
    @classmethod
    def normalize_as_of_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @property
    def is_anchored(self) -> bool:
        return self.as_of_date is not None


class AccountRecord(BaseModel):
    """
    An account as returned by the account store.

    Name and currency are opaque metadata; they travel with the account's
    series and are never interpreted here.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    currency: Optional[str] = Field(
        default=None,
        min_length=3,
        max_length=3,
        description="ISO 4217 code; None means the reporting default"
    )
    balance: Decimal = Field(default=Decimal("0"))
    balance_as_of_date: Optional[datetime] = None

    @field_validator("balance_as_of_date")
    @classmethod
    def normalize_as_of_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    def anchor(self) -> AccountAnchor:
        """
        The checkpoint this account currently declares.

        Raises:
            InvalidAnchorError: the stored as-of date is not an instant
        """
        try:
            return AccountAnchor(
                account_id=self.id,
                balance=self.balance,
                as_of_date=self.balance_as_of_date,
            )
        except PydanticValidationError as e:
            raise InvalidAnchorError(
                f"Account {self.id} has an invalid balance as-of date: "
                f"{self.balance_as_of_date!r}"
            ) from e


# =============================================================================
# QUERY WINDOW
# =============================================================================

class DateRange(BaseModel):
    """
    An inclusive window of instants. Either end may be open.

    A window only decides which points are shown; it never decides which
    transactions feed a balance.
    """
    model_config = ConfigDict(frozen=True)

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator("start", "end")
    @classmethod
    def normalize_bounds(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    def check_order(self) -> "DateRange":
        """Raise ValidationError when the window is inverted."""
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValidationError(
                f"Date range start {self.start.isoformat()} is after end {self.end.isoformat()}"
            )
        return self

    def contains(self, instant: datetime) -> bool:
        if self.start is not None and instant < self.start:
            return False
        if self.end is not None and instant > self.end:
            return False
        return True

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None
