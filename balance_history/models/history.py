"""
Balance History Output Models

What the reconstruction and merge steps hand back to the caller.

CRITICAL: None of these are ever persisted. Every call rebuilds them from
the ledger, so they can never drift from the transactions they describe.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BalancePoint(BaseModel):
    """
    The balance of one account immediately after one event.

    The event is either a transaction (``transaction_id`` set) or the
    account's anchor (``transaction_id`` is None).
    """
    model_config = ConfigDict(frozen=True)

    date: datetime
    balance: Decimal
    transaction_id: Optional[str] = None
    description: Optional[str] = None

    @property
    def is_anchor(self) -> bool:
        return self.transaction_id is None


class AccountTimeline(BaseModel):
    """
    One account's balance series together with its display metadata.

    Name and currency are passed through the merge untouched.
    """
    model_config = ConfigDict(frozen=True)

    account_id: str
    name: str = ""
    currency: Optional[str] = None
    points: tuple[BalancePoint, ...] = ()


class CombinedPoint(BaseModel):
    """
    The state of every account that has history at one instant.

    Accounts with no history at or before ``date`` are absent from
    ``per_account_balance`` and do not contribute to ``overall_balance``.
    """
    model_config = ConfigDict(frozen=True)

    date: datetime
    per_account_balance: dict[str, Decimal] = Field(default_factory=dict)
    overall_balance: Decimal = Decimal("0")


class SingleAccountHistoryResult(BaseModel):
    """Balance history of one account."""
    model_config = ConfigDict(frozen=True)

    account_id: str
    points: list[BalancePoint] = Field(default_factory=list)
    current_balance: Decimal = Decimal("0")
    anchor_date: Optional[datetime] = None


class CombinedHistoryResult(BaseModel):
    """
    Balance history of several accounts, separately and combined.

    ``accounts`` carries the metadata for every key of ``per_account`` so a
    chart can label series without another lookup.
    """
    model_config = ConfigDict(frozen=True)

    per_account: dict[str, list[BalancePoint]] = Field(default_factory=dict)
    accounts: dict[str, AccountTimeline] = Field(default_factory=dict)
    combined: list[CombinedPoint] = Field(default_factory=list)

    @property
    def latest_overall_balance(self) -> Optional[Decimal]:
        if not self.combined:
            return None
        return self.combined[-1].overall_balance
