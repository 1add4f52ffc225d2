"""
Tests for timeline merging.

The merge is checked against the worked example and against a
straightforward per-date reference computation on random timelines.
"""

import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from balance_history.errors import InternalInvariantError
from balance_history.history import balance_at, merge_timelines
from balance_history.models import AccountTimeline, BalancePoint, DateRange


def day(d: int) -> datetime:
    return datetime(2024, 1, d, tzinfo=timezone.utc)


def timeline(account_id: str, *points: tuple[int, str], currency: str = None) -> AccountTimeline:
    return AccountTimeline(
        account_id=account_id,
        name=account_id.upper(),
        currency=currency,
        points=tuple(BalancePoint(date=day(d), balance=Decimal(b)) for d, b in points),
    )


def reference_merge(timelines: list[AccountTimeline]) -> list[tuple[datetime, dict, Decimal]]:
    """Per-date lookup over every account; quadratic but obviously right."""
    dates = sorted({p.date for tl in timelines for p in tl.points})
    out = []
    for instant in dates:
        per_account = {}
        for tl in timelines:
            balance = balance_at(tl.points, instant)
            if balance is not None:
                per_account[tl.account_id] = balance
        out.append((instant, per_account, sum(per_account.values(), Decimal("0"))))
    return out


def flatten(combined) -> list[tuple[datetime, dict, Decimal]]:
    return [(c.date, c.per_account_balance, c.overall_balance) for c in combined]


class TestMergeScenario:
    """The worked combined example."""

    def test_late_starting_account_is_absent_not_zero(self):
        """X has history from day 1, Y only from day 3."""
        x = timeline("X", (1, "100"), (4, "150"))
        y = timeline("Y", (3, "-20"))

        combined = merge_timelines([x, y])

        assert flatten(combined) == [
            (day(1), {"X": Decimal("100")}, Decimal("100")),
            (day(3), {"X": Decimal("100"), "Y": Decimal("-20")}, Decimal("80")),
            (day(4), {"X": Decimal("150"), "Y": Decimal("-20")}, Decimal("130")),
        ]


    def test_absent_account_between_points(self):
        """At 01-02 only A has history; B is excluded, not zero."""
        a = timeline("A", (1, "100"))
        b = timeline("B", (3, "50"))

        combined = merge_timelines([a, b], extra_dates=[day(2)])

        assert flatten(combined) == [
            (day(1), {"A": Decimal("100")}, Decimal("100")),
            (day(2), {"A": Decimal("100")}, Decimal("100")),
            (day(3), {"A": Decimal("100"), "B": Decimal("50")}, Decimal("150")),
        ]


class TestMergeEdgeCases:
    """Tests for degenerate inputs."""

    def test_no_timelines(self):
        """Nothing to merge is an empty series."""
        assert merge_timelines([]) == []

    def test_empty_timelines(self):
        """Accounts without points contribute nothing."""
        assert merge_timelines([timeline("A"), timeline("B")]) == []

    def test_single_timeline(self):
        """One account's total is its own balance."""
        combined = merge_timelines([timeline("A", (1, "5"), (2, "7"))])
        assert [c.overall_balance for c in combined] == [Decimal("5"), Decimal("7")]

    def test_same_date_points_collapse_to_last(self):
        """Several points on one instant give one combined point with the latest balance."""
        a = timeline("A", (1, "10"), (1, "25"), (2, "30"))
        b = timeline("B", (1, "1"))

        combined = merge_timelines([a, b])

        assert flatten(combined) == [
            (day(1), {"A": Decimal("25"), "B": Decimal("1")}, Decimal("26")),
            (day(2), {"A": Decimal("30"), "B": Decimal("1")}, Decimal("31")),
        ]

    def test_duplicate_account_rejected(self):
        """The same account twice would double count."""
        with pytest.raises(InternalInvariantError, match="Duplicate account"):
            merge_timelines([timeline("A", (1, "1")), timeline("A", (2, "2"))])

    def test_unordered_points_rejected(self):
        """A series out of date order would give wrong totals."""
        with pytest.raises(InternalInvariantError, match="not ordered by date"):
            merge_timelines([timeline("A", (3, "1"), (1, "2"))])

    def test_equal_dates_are_ordered(self):
        """Same-instant points are a valid ordering."""
        combined = merge_timelines([timeline("A", (1, "1"), (1, "2"))])
        assert [c.overall_balance for c in combined] == [Decimal("2")]

    def test_mixed_currencies_still_merge(self):
        """Currency is metadata; mixing it is logged, not rejected."""
        combined = merge_timelines([
            timeline("A", (1, "1"), currency="USD"),
            timeline("B", (1, "2"), currency="EUR"),
        ])
        assert combined[0].overall_balance == Decimal("3")


class TestMergeWindow:
    """Tests for windowed output."""

    def test_balances_carry_into_window(self):
        """An account quiet inside the window still counts with its earlier balance."""
        a = timeline("A", (1, "100"), (10, "120"))
        b = timeline("B", (2, "50"))

        combined = merge_timelines([a, b], window=DateRange(start=day(5), end=day(20)))

        assert flatten(combined) == [
            (day(10), {"A": Decimal("120"), "B": Decimal("50")}, Decimal("170")),
        ]

    def test_extra_dates_get_points(self):
        """Chart edges appear even where no account has activity."""
        a = timeline("A", (1, "100"), (10, "120"))

        combined = merge_timelines(
            [a],
            window=DateRange(start=day(5), end=day(20)),
            extra_dates=[day(5), day(20)],
        )

        assert flatten(combined) == [
            (day(5), {"A": Decimal("100")}, Decimal("100")),
            (day(10), {"A": Decimal("120")}, Decimal("120")),
            (day(20), {"A": Decimal("120")}, Decimal("120")),
        ]

    def test_extra_date_before_any_history_is_skipped(self):
        """An edge before every account's first point is not a zero total."""
        a = timeline("A", (5, "100"))

        combined = merge_timelines([a], extra_dates=[day(1), day(9)])

        assert [(c.date, c.overall_balance) for c in combined] == [
            (day(5), Decimal("100")),
            (day(9), Decimal("100")),
        ]

    def test_extra_date_on_existing_point_is_not_duplicated(self):
        """An edge that coincides with activity yields one point."""
        a = timeline("A", (5, "100"))

        combined = merge_timelines([a], extra_dates=[day(5)])

        assert len(combined) == 1
        assert combined[0].overall_balance == Decimal("100")


class TestMergeMatchesReference:
    """The linear merge agrees with a per-date recomputation."""

    @staticmethod
    def random_timelines(seed: int) -> list[AccountTimeline]:
        rng = random.Random(seed)
        start = day(1)
        timelines = []
        for n in range(rng.randint(1, 6)):
            offsets = sorted(rng.randint(0, 500) for _ in range(rng.randint(0, 15)))
            timelines.append(AccountTimeline(
                account_id=f"acc-{n}",
                points=tuple(
                    BalancePoint(
                        date=start + timedelta(hours=o),
                        balance=Decimal(rng.randint(-50000, 50000)) / 100,
                    )
                    for o in offsets
                ),
            ))
        return timelines

    @pytest.mark.parametrize("seed", range(30))
    def test_agrees_with_reference(self, seed):
        """Same dates, same breakdowns, same totals."""
        timelines = self.random_timelines(seed)

        assert flatten(merge_timelines(timelines)) == reference_merge(timelines)

    @pytest.mark.parametrize("seed", range(30))
    def test_total_is_sum_of_breakdown(self, seed):
        """The overall balance is always the sum of the per-account balances."""
        for point in merge_timelines(self.random_timelines(seed)):
            assert point.overall_balance == sum(point.per_account_balance.values(), Decimal("0"))
