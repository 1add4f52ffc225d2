"""Balance reconstruction and timeline merging."""

from balance_history.history.merger import merge_timelines
from balance_history.history.reconstructor import (
    balance_at,
    current_balance,
    reconstruct_balance_history,
    restrict_to_window,
)

__all__ = [
    "balance_at",
    "current_balance",
    "merge_timelines",
    "reconstruct_balance_history",
    "restrict_to_window",
]
