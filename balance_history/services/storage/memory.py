"""
In-Memory Collaborators

Process-local implementations of the collaborator interfaces. They back
the test suite and any caller that already holds its ledger in memory
(e.g. a notebook, or a CSV import that has just been parsed).

Every read returns a fresh list, so callers can never mutate the store
through a result.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence
from uuid import UUID

from balance_history.errors import NotFoundError, UnauthorizedError
from balance_history.models.audit import AuditEvent
from balance_history.models.ledger import AccountRecord, DateRange, Transaction, as_utc
from balance_history.services.storage.interface import (
    AccountStoreInterface,
    AuditStorageInterface,
    AuthorizerInterface,
    LedgerInterface,
)


class InMemoryLedger(LedgerInterface):
    """Transaction log held in a list, in insertion (ledger) order."""

    def __init__(self, transactions: Iterable[Transaction] = ()):
        self._transactions: list[Transaction] = list(transactions)

    def add(self, *transactions: Transaction) -> None:
        self._transactions.extend(transactions)

    async def transactions_for(
        self,
        account_ids: Sequence[str],
        date_range: Optional[DateRange] = None,
    ) -> list[Transaction]:
        wanted = set(account_ids)
        return [
            tx for tx in self._transactions
            if tx.account_id in wanted
            and (date_range is None or date_range.contains(tx.date))
        ]


class InMemoryAccountStore(AccountStoreInterface):
    """Accounts keyed by ID."""

    def __init__(self, accounts: Iterable[AccountRecord] = ()):
        self._accounts: dict[str, AccountRecord] = {a.id: a for a in accounts}

    def add(self, *accounts: AccountRecord) -> None:
        for account in accounts:
            self._accounts[account.id] = account

    async def get_account(self, account_id: str) -> Optional[AccountRecord]:
        return self._accounts.get(account_id)

    async def list_accounts(
        self,
        owner_id: str,
        account_ids: Optional[Sequence[str]] = None,
    ) -> list[AccountRecord]:
        wanted = set(account_ids) if account_ids else None
        accounts = [
            a for a in self._accounts.values()
            if a.owner_id == owner_id and (wanted is None or a.id in wanted)
        ]
        return sorted(accounts, key=lambda a: a.name)

    async def set_anchor(
        self,
        account_id: str,
        balance: Decimal,
        as_of_date: datetime,
    ) -> AccountRecord:
        account = self._accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        updated = account.model_copy(
            update={"balance": balance, "balance_as_of_date": as_utc(as_of_date)}
        )
        self._accounts[account_id] = updated
        return updated


class OwnerAuthorizer(AuthorizerInterface):
    """Only an account's owner may touch it."""

    async def assert_owns_account(self, requester_id: str, account: AccountRecord) -> None:
        if account.owner_id != requester_id:
            raise UnauthorizedError(
                f"You don't have permission to access account {account.id}."
            )


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log held in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
