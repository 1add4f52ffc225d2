"""
Abstract Collaborator Interfaces

DESIGN DECISION: The balance history layer never talks to a database,
an auth provider or a log sink directly. It consumes these interfaces.
This allows us to:
1. Plug in whatever ledger the host application already has
2. Use in-memory collaborators for testing
3. Keep reconstruction decoupled from I/O

All methods are async: fetching is the only place this layer waits.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID

from balance_history.models.audit import AuditEvent
from balance_history.models.ledger import AccountRecord, DateRange, Transaction


class LedgerInterface(ABC):
    """
    Read access to the transaction log.
    """

    @abstractmethod
    async def transactions_for(
        self,
        account_ids: Sequence[str],
        date_range: Optional[DateRange] = None,
    ) -> list[Transaction]:
        """
        Fetch transactions booked against any of the given accounts.

        Args:
            account_ids: Accounts to fetch for
            date_range: Optional inclusive window on transaction date

        Returns:
            Transactions in no guaranteed order

        Raises:
            StorageError: If the ledger cannot be read
        """
        pass


class AccountStoreInterface(ABC):
    """
    Access to accounts and their declared balance checkpoints.
    """

    @abstractmethod
    async def get_account(self, account_id: str) -> Optional[AccountRecord]:
        """
        Retrieve an account by its ID.

        Returns:
            The account if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_accounts(
        self,
        owner_id: str,
        account_ids: Optional[Sequence[str]] = None,
    ) -> list[AccountRecord]:
        """
        List accounts belonging to an owner.

        Args:
            owner_id: Owner whose accounts to list
            account_ids: If given and non-empty, only these accounts

        Returns:
            Matching accounts ordered by name
        """
        pass

    @abstractmethod
    async def set_anchor(
        self,
        account_id: str,
        balance: Decimal,
        as_of_date: datetime,
    ) -> AccountRecord:
        """
        Record that the account held ``balance`` at ``as_of_date``.

        Returns:
            The updated account

        Raises:
            NotFoundError: If the account doesn't exist
        """
        pass


class AuthorizerInterface(ABC):
    """
    Decides whether a requester may read or change an account.
    """

    @abstractmethod
    async def assert_owns_account(self, requester_id: str, account: AccountRecord) -> None:
        """
        Raises:
            UnauthorizedError: If the requester does not own the account
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass
