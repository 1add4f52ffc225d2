"""
Timeline Merging

Combines several accounts' balance series into one date-aligned series
with a per-account breakdown and an overall total.

DESIGN DECISION: The merge is a single forward pass. Every account's points
are streamed through one heap merge, and each account keeps only its latest
balance so far. Nothing is ever rescanned: advancing the cursors costs one
step per input point, and the overall total is updated incrementally.

CRITICAL: An account that has no point at or before a date is left out of
that date entirely. Counting it as zero would understate the total before
the account's first recorded activity.

No currency conversion happens here. All timelines must already share one
reporting currency.
"""

import heapq
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Iterator, Optional, Sequence

import structlog

from balance_history.errors import InternalInvariantError
from balance_history.models.history import AccountTimeline, CombinedPoint
from balance_history.models.ledger import DateRange


logger = structlog.get_logger(__name__)

# Marks a candidate date that carries no balance of its own
_NO_ACCOUNT = -1

_Entry = tuple[datetime, int, int, Optional[Decimal]]


def _stream(index: int, timeline: AccountTimeline) -> Iterator[_Entry]:
    for position, point in enumerate(timeline.points):
        yield (point.date, index, position, point.balance)


def _bare_dates(dates: Iterable[datetime]) -> Iterator[_Entry]:
    for position, instant in enumerate(sorted(dates)):
        yield (instant, _NO_ACCOUNT, position, None)


def merge_timelines(
    timelines: Sequence[AccountTimeline],
    window: Optional[DateRange] = None,
    extra_dates: Iterable[datetime] = (),
) -> list[CombinedPoint]:
    """
    Merge per-account balance series into one combined series.

    Args:
        timelines: One series per account, each ordered by date (as
            produced by reconstruction); unordered points are rejected
        window: If given, only dates inside it are emitted. Balances from
            before the window still carry into it.
        extra_dates: Additional candidate dates (e.g. chart edges) that get
            a combined point even if no account has a point there, as long
            as some account already has history by then

    Returns:
        One CombinedPoint per distinct date, ascending
    """
    ids = [tl.account_id for tl in timelines]
    if len(set(ids)) != len(ids):
        raise InternalInvariantError(f"Duplicate account in merge: {ids}")
    for tl in timelines:
        if any(a.date > b.date for a, b in zip(tl.points, tl.points[1:])):
            raise InternalInvariantError(
                f"Points for account {tl.account_id} are not ordered by date"
            )

    currencies = {tl.currency for tl in timelines if tl.currency}
    if len(currencies) > 1:
        logger.warning(
            "mixed_currencies",
            currencies=sorted(currencies),
            accounts=ids,
        )

    streams = [_stream(i, tl) for i, tl in enumerate(timelines)]
    streams.append(_bare_dates(extra_dates))
    # Entries never tie past (date, index, position), so balances are never compared
    merged = heapq.merge(*streams)

    latest: dict[int, Decimal] = {}
    overall = Decimal("0")
    combined: list[CombinedPoint] = []

    pending = next(merged, None)
    while pending is not None:
        current_date = pending[0]

        # Advance every cursor that sits on this date
        while pending is not None and pending[0] == current_date:
            _, index, _, balance = pending
            if index != _NO_ACCOUNT:
                overall += balance - latest.get(index, Decimal("0"))
                latest[index] = balance
            pending = next(merged, None)

        if not latest:
            # Only bare dates so far; no account has history yet
            continue
        if window is not None and not window.contains(current_date):
            continue

        combined.append(CombinedPoint(
            date=current_date,
            per_account_balance={
                ids[i]: latest[i] for i in range(len(ids)) if i in latest
            },
            overall_balance=overall,
        ))

    logger.debug(
        "timeline_merged",
        accounts=len(timelines),
        points=len(combined),
    )
    return combined
