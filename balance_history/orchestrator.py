"""
Balance Query Orchestrator

This module ties the collaborators to the reconstruction and merge steps
and defines the caller-facing operations:
1. History of one account
2. History of all (or some) of an owner's accounts, separately and combined
3. Declaring a new "balance as of date" checkpoint

DESIGN DECISION: The orchestrator enforces the boundaries:
- Validation and authorization happen before any reconstruction
- Only collaborator fetches wait, and only they are retried
- Reconstruction always sees the full ledger; a date range only trims
  what is shown
- Every request is audited

Retrying a reconstruction is pointless: it is a pure function of its input
and would reproduce the same result, or the same error.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Awaitable, Callable, NoReturn, Optional, Sequence, TypeVar, Union
from uuid import UUID

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from balance_history.audit import AuditLogger, create_correlation_id
from balance_history.config import FetchSettings, get_settings
from balance_history.errors import (
    InternalInvariantError,
    InvalidAnchorError,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)
from balance_history.history import (
    current_balance,
    merge_timelines,
    reconstruct_balance_history,
    restrict_to_window,
)
from balance_history.models.audit import AuditEventType
from balance_history.models.history import (
    AccountTimeline,
    BalancePoint,
    CombinedHistoryResult,
    SingleAccountHistoryResult,
)
from balance_history.models.ledger import AccountRecord, DateRange, Transaction, as_utc
from balance_history.services.storage import (
    AccountStoreInterface,
    AuditStorageInterface,
    AuthorizerInterface,
    LedgerInterface,
    OwnerAuthorizer,
)


logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        "collaborator_fetch_retry",
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
    )


class BalanceQueryService:
    """
    Answers "what was the balance at any point in time?" for one account
    or for all of an owner's accounts.

    Flow for every query:
    1. Validate the request
    2. Load accounts, authorize the requester
    3. Load the FULL transaction history of those accounts
    4. Reconstruct each account's series
    5. Trim to the requested window and merge
    """

    def __init__(
        self,
        ledger: LedgerInterface,
        account_store: AccountStoreInterface,
        authorizer: Optional[AuthorizerInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        fetch_settings: Optional[FetchSettings] = None,
        default_currency: Optional[str] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._ledger = ledger
        self._accounts = account_store
        self._authorizer = authorizer or OwnerAuthorizer()
        self._audit_logger = audit_logger
        self._fetch_settings = fetch_settings or get_settings().fetch
        self._default_currency = default_currency or get_settings().app.default_currency
        self._clock = clock

    # -------------------------------------------------------------------------
    # Collaborator boundary
    # -------------------------------------------------------------------------

    async def _call(
        self,
        collaborator: str,
        fn: Callable[..., Awaitable[T]],
        *args,
        correlation_id: UUID,
    ) -> T:
        """Call a collaborator, retrying transient connection failures."""
        settings = self._fetch_settings
        retrying = AsyncRetrying(
            stop=stop_after_attempt(settings.retry_attempts),
            wait=wait_exponential(
                multiplier=settings.retry_min_wait_seconds,
                min=settings.retry_min_wait_seconds,
                max=settings.retry_max_wait_seconds,
            ),
            retry=retry_if_exception_type(StorageConnectionError),
            before_sleep=_log_retry,
            reraise=True,
        )
        try:
            return await retrying(fn, *args)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_collaborator_error(
                    collaborator=collaborator,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

    async def _reject(
        self,
        error: Exception,
        event_type: AuditEventType,
        requester_id: str,
        correlation_id: UUID,
        account_id: Optional[str] = None,
    ) -> NoReturn:
        """Audit a rejected request, then raise ``error`` to the caller."""
        if self._audit_logger:
            await self._audit_logger.log_request_rejected(
                event_type=event_type,
                requester_id=requester_id,
                error_message=str(error),
                correlation_id=correlation_id,
                account_id=account_id,
            )
        raise error

    async def _load_owned_account(
        self,
        account_id: str,
        requester_id: str,
        correlation_id: UUID,
    ) -> AccountRecord:
        account = await self._call(
            "account_store",
            self._accounts.get_account,
            account_id,
            correlation_id=correlation_id,
        )
        if account is None:
            await self._reject(
                NotFoundError(f"Account not found: {account_id}"),
                AuditEventType.ACCOUNT_NOT_FOUND,
                requester_id,
                correlation_id,
                account_id=account_id,
            )
        await self._authorize(account, requester_id, correlation_id)
        return account

    async def _authorize(
        self,
        account: AccountRecord,
        requester_id: str,
        correlation_id: UUID,
    ) -> None:
        try:
            await self._authorizer.assert_owns_account(requester_id, account)
        except UnauthorizedError as e:
            await self._reject(
                e,
                AuditEventType.AUTHORIZATION_DENIED,
                requester_id,
                correlation_id,
                account_id=account.id,
            )

    async def _reconstruct(
        self,
        account: AccountRecord,
        transactions: Sequence[Transaction],
        correlation_id: UUID,
    ) -> list[BalancePoint]:
        try:
            return reconstruct_balance_history(account.id, transactions, account.anchor())
        except InvalidAnchorError as e:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="invalid_anchor",
                    error_message=str(e),
                    details={"account_id": account.id},
                    correlation_id=correlation_id,
                )
            raise
        except InternalInvariantError as e:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="internal_invariant",
                    error_message=str(e),
                    details={"account_id": account.id},
                    correlation_id=correlation_id,
                )
            raise

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def single_account_history(
        self,
        account_id: str,
        requester_id: str,
    ) -> SingleAccountHistoryResult:
        """
        Balance history of one account.

        ``current_balance`` is the last point's balance, or the anchor's
        balance when there are no points, or zero.

        Raises:
            NotFoundError: account does not exist
            UnauthorizedError: requester does not own the account
        """
        correlation_id = create_correlation_id()

        if self._audit_logger:
            await self._audit_logger.log_history_requested(
                requester_id=requester_id,
                account_ids=[account_id],
                combined=False,
                correlation_id=correlation_id,
            )

        account = await self._load_owned_account(account_id, requester_id, correlation_id)
        transactions = await self._call(
            "ledger",
            self._ledger.transactions_for,
            [account.id],
            correlation_id=correlation_id,
        )
        points = await self._reconstruct(account, transactions, correlation_id)
        anchor = account.anchor()

        result = SingleAccountHistoryResult(
            account_id=account.id,
            points=points,
            current_balance=current_balance(points, anchor),
            anchor_date=anchor.as_of_date,
        )

        if self._audit_logger:
            await self._audit_logger.log_history_computed(
                requester_id=requester_id,
                account_ids=[account.id],
                point_count=len(points),
                combined=False,
                correlation_id=correlation_id,
            )

        return result

    async def all_accounts_history(
        self,
        requester_id: str,
        date_range: Optional[DateRange] = None,
        account_ids: Optional[Union[str, Sequence[str]]] = None,
        extend_to_range: bool = False,
    ) -> CombinedHistoryResult:
        """
        Balance history of the requester's accounts, per account and combined.

        Args:
            requester_id: Owner whose accounts to report
            date_range: Only points inside this window are returned. The
                balances themselves are always derived from the full ledger.
            account_ids: One ID or a list; None or empty means all accounts
            extend_to_range: Pad every series (and the combined series) with
                points at the window edges. A missing window end pads at "now"
                without hiding later transactions.

        Raises:
            ValidationError: date range start after end
            NotFoundError: a requested account does not exist
            UnauthorizedError: a requested account belongs to someone else
        """
        correlation_id = create_correlation_id()

        if isinstance(account_ids, str):
            requested = [account_ids]
        else:
            requested = list(account_ids or [])

        if self._audit_logger:
            await self._audit_logger.log_history_requested(
                requester_id=requester_id,
                account_ids=requested,
                combined=True,
                correlation_id=correlation_id,
                details={
                    "start": date_range.start.isoformat() if date_range and date_range.start else None,
                    "end": date_range.end.isoformat() if date_range and date_range.end else None,
                    "extend_to_range": extend_to_range,
                },
            )

        if date_range is not None:
            try:
                date_range.check_order()
            except ValidationError as e:
                await self._reject(
                    e, AuditEventType.VALIDATION_FAILED, requester_id, correlation_id
                )

        accounts = await self._call(
            "account_store",
            self._accounts.list_accounts,
            requester_id,
            requested or None,
            correlation_id=correlation_id,
        )

        # A requested account missing from the owner's list is either absent
        # or someone else's; report which
        found = {a.id for a in accounts}
        for account_id in requested:
            if account_id not in found:
                await self._load_owned_account(account_id, requester_id, correlation_id)
        for account in accounts:
            await self._authorize(account, requester_id, correlation_id)

        # Full history: the window must not reach the backward pass
        transactions = await self._call(
            "ledger",
            self._ledger.transactions_for,
            [a.id for a in accounts],
            correlation_id=correlation_id,
        )
        by_account: dict[str, list[Transaction]] = {a.id: [] for a in accounts}
        for tx in transactions:
            if tx.account_id in by_account:
                by_account[tx.account_id].append(tx)

        window = None if date_range is None or date_range.is_open else date_range
        pad_end = self._padding_end(date_range) if extend_to_range else None

        per_account: dict[str, list[BalancePoint]] = {}
        metadata: dict[str, AccountTimeline] = {}
        timelines: list[AccountTimeline] = []
        for account in accounts:
            points = await self._reconstruct(account, by_account[account.id], correlation_id)
            currency = account.currency or self._default_currency

            per_account[account.id] = restrict_to_window(
                points, window, extend_to_range, pad_end=pad_end
            )
            metadata[account.id] = AccountTimeline(
                account_id=account.id,
                name=account.name,
                currency=currency,
            )
            timelines.append(AccountTimeline(
                account_id=account.id,
                name=account.name,
                currency=currency,
                points=tuple(points),
            ))

        edges: list[datetime] = []
        if extend_to_range:
            start = date_range.start if date_range is not None else None
            edges = [d for d in (start, pad_end) if d is not None]

        combined = merge_timelines(timelines, window=window, extra_dates=edges)

        if self._audit_logger:
            await self._audit_logger.log_history_computed(
                requester_id=requester_id,
                account_ids=[a.id for a in accounts],
                point_count=len(combined),
                combined=True,
                correlation_id=correlation_id,
            )

        return CombinedHistoryResult(
            per_account=per_account,
            accounts=metadata,
            combined=combined,
        )

    def _padding_end(self, date_range: Optional[DateRange]) -> Optional[datetime]:
        """
        Where a padded series ends: the requested end, else "now".

        "Now" only places the edge point; it never hides later
        transactions. None when "now" falls before the requested start.
        """
        if date_range is not None and date_range.end is not None:
            return date_range.end
        now = as_utc(self._clock())
        if date_range is not None and date_range.start is not None and now < date_range.start:
            return None
        return now

    # -------------------------------------------------------------------------
    # Anchors
    # -------------------------------------------------------------------------

    async def set_balance_as_of_date(
        self,
        account_id: str,
        requester_id: str,
        balance: Union[Decimal, int, str],
        as_of_date: datetime,
    ) -> AccountRecord:
        """
        Declare that the account held ``balance`` at ``as_of_date``.

        Every later history query derives from this checkpoint.

        Raises:
            ValidationError: balance is a float or not a finite number
            InvalidAnchorError: as_of_date is not a datetime
            NotFoundError: account does not exist
            UnauthorizedError: requester does not own the account
        """
        correlation_id = create_correlation_id()

        try:
            amount = self._parse_balance(balance)
            if not isinstance(as_of_date, datetime):
                raise InvalidAnchorError(f"Invalid as-of date: {as_of_date!r}")
        except ValidationError as e:
            await self._reject(
                e,
                AuditEventType.VALIDATION_FAILED,
                requester_id,
                correlation_id,
                account_id=account_id,
            )

        await self._load_owned_account(account_id, requester_id, correlation_id)

        updated = await self._call(
            "account_store",
            self._accounts.set_anchor,
            account_id,
            amount,
            as_utc(as_of_date),
            correlation_id=correlation_id,
        )

        if self._audit_logger:
            await self._audit_logger.log_anchor_set(
                account_id=account_id,
                requester_id=requester_id,
                balance=str(amount),
                as_of_date=updated.balance_as_of_date or as_utc(as_of_date),
                correlation_id=correlation_id,
            )

        return updated

    @staticmethod
    def _parse_balance(balance: Union[Decimal, int, str]) -> Decimal:
        if isinstance(balance, (float, bool)):
            raise ValidationError(
                f"Balance must be a Decimal, integer or string, not {type(balance).__name__}"
            )
        try:
            amount = Decimal(balance)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(f"Invalid balance: {balance!r}")
        if not amount.is_finite():
            raise ValidationError(f"Balance must be finite: {balance!r}")
        return amount


def create_balance_query_service(
    ledger: LedgerInterface,
    account_store: AccountStoreInterface,
    authorizer: Optional[AuthorizerInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> BalanceQueryService:
    """
    Factory function wiring a service with an audit logger.

    Args:
        audit_storage: Where audit events are persisted.
                      If None, events are only logged locally.
    """
    return BalanceQueryService(
        ledger=ledger,
        account_store=account_store,
        authorizer=authorizer,
        audit_logger=AuditLogger(audit_storage),
    )
