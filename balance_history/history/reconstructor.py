"""
Balance Reconstruction

Turns one account's transaction log plus its optional anchor into the
account's balance over time.

DESIGN DECISION: The anchor is the only balance we trust. Everything before
it is derived by walking backwards from it; everything after it by walking
forwards. An account without an anchor starts from zero.

All functions here are pure: no I/O, no caching, no shared state. The same
input always produces the same output.
"""

from bisect import bisect_right
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

import structlog

from balance_history.errors import InternalInvariantError, InvalidAnchorError
from balance_history.models.history import BalancePoint
from balance_history.models.ledger import AccountAnchor, DateRange, Transaction


logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


def _point_for(transaction: Transaction, balance: Decimal) -> BalancePoint:
    return BalancePoint(
        date=transaction.date,
        balance=balance,
        transaction_id=transaction.id,
        description=transaction.description,
    )


def _check_anchor(anchor: Optional[AccountAnchor], account_id: str) -> Optional[datetime]:
    """Return the anchor's as-of instant, or None when there is no checkpoint."""
    if anchor is None:
        return None
    if anchor.account_id != account_id:
        raise InternalInvariantError(
            f"Anchor for account {anchor.account_id} passed to reconstruction of {account_id}"
        )
    if anchor.as_of_date is None:
        return None
    if not isinstance(anchor.as_of_date, datetime):
        raise InvalidAnchorError(
            f"Anchor for account {account_id} has an invalid as-of date: {anchor.as_of_date!r}"
        )
    return anchor.as_of_date


def reconstruct_balance_history(
    account_id: str,
    transactions: Iterable[Transaction],
    anchor: Optional[AccountAnchor] = None,
) -> list[BalancePoint]:
    """
    Derive the balance series of one account.

    Emits one point per transaction (the balance right after it) and, when
    the account is anchored, one point at the anchor date carrying exactly
    the anchor balance. Output is ordered by date; transactions sharing a
    timestamp keep their ledger order.

    Raises:
        InvalidAnchorError: the anchor's as-of date is not an instant
        InternalInvariantError: a transaction belongs to another account
    """
    as_of = _check_anchor(anchor, account_id)

    ordered = sorted(transactions, key=lambda tx: tx.date)
    for tx in ordered:
        if tx.account_id != account_id:
            raise InternalInvariantError(
                f"Transaction {tx.id} belongs to account {tx.account_id}, "
                f"not {account_id}"
            )

    if as_of is None:
        before: list[Transaction] = []
        after = ordered
        checkpoint = ZERO
    else:
        before = [tx for tx in ordered if tx.date <= as_of]
        after = [tx for tx in ordered if tx.date > as_of]
        checkpoint = anchor.balance

    # Walk back from the checkpoint to the balance before the earliest entry
    starting_balance = checkpoint
    for tx in reversed(before):
        starting_balance -= tx.signed_delta

    points: list[BalancePoint] = []
    running = starting_balance
    for tx in before:
        running += tx.signed_delta
        points.append(_point_for(tx, running))

    if as_of is not None:
        points.append(BalancePoint(date=as_of, balance=anchor.balance))

    running = checkpoint
    for tx in after:
        running += tx.signed_delta
        points.append(_point_for(tx, running))

    # Stable, so the anchor stays after same-instant transactions
    points.sort(key=lambda p: p.date)

    logger.debug(
        "history_reconstructed",
        account_id=account_id,
        transactions=len(ordered),
        points=len(points),
        anchored=as_of is not None,
    )
    return points


def current_balance(
    points: Sequence[BalancePoint],
    anchor: Optional[AccountAnchor] = None,
) -> Decimal:
    """The latest known balance: last point, else the anchor, else zero."""
    if points:
        return points[-1].balance
    if anchor is not None:
        return anchor.balance
    return ZERO


def balance_at(points: Sequence[BalancePoint], instant: datetime) -> Optional[Decimal]:
    """
    The balance in effect at ``instant``.

    None when the series has nothing at or before ``instant``; the account
    has no history there, which is not the same as a zero balance.
    """
    found: Optional[Decimal] = None
    for point in points:
        if point.date > instant:
            break
        found = point.balance
    return found


def restrict_to_window(
    points: Sequence[BalancePoint],
    window: Optional[DateRange],
    extend_to_range: bool = False,
    pad_end: Optional[datetime] = None,
) -> list[BalancePoint]:
    """
    Keep only the points inside ``window``.

    The points must come from a reconstruction over the full ledger; the
    window only decides what is shown.

    With ``extend_to_range`` the series is padded so a chart line spans the
    whole window: a point at the window start carrying the balance in effect
    there, and one at the end edge carrying the last balance up to it.
    The end edge is ``pad_end`` if given, else the window end; it only
    places a point and never hides points after it. An end edge before the
    window start is ignored. Padding is only added where a balance actually
    exists.
    """
    if window is None or window.is_open:
        visible = list(points)
    else:
        visible = [p for p in points if window.contains(p.date)]
    if not extend_to_range:
        return visible

    start = window.start if window is not None else None
    end = pad_end if pad_end is not None else (window.end if window is not None else None)
    if start is not None and end is not None and end < start:
        end = None

    if start is not None and (not visible or visible[0].date != start):
        opening = balance_at(points, start)
        if opening is not None:
            visible.insert(0, BalancePoint(date=start, balance=opening))

    if end is not None and all(p.date != end for p in visible):
        closing = balance_at(points, end)
        if closing is not None:
            # Later points may follow the edge when it is not the window end
            position = bisect_right([p.date for p in visible], end)
            visible.insert(position, BalancePoint(date=end, balance=closing))

    return visible
