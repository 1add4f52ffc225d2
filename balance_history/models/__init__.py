"""
Data Models Package

This package contains all Pydantic models used by the balance history layer.
All data flowing in from collaborators and out to callers must conform to
these schemas.
"""

from balance_history.models.ledger import (
    AccountAnchor,
    AccountRecord,
    DateRange,
    Transaction,
    TransactionType,
)
from balance_history.models.history import (
    AccountTimeline,
    BalancePoint,
    CombinedHistoryResult,
    CombinedPoint,
    SingleAccountHistoryResult,
)
from balance_history.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "AccountAnchor",
    "AccountRecord",
    "DateRange",
    "Transaction",
    "TransactionType",
    # History models
    "AccountTimeline",
    "BalancePoint",
    "CombinedHistoryResult",
    "CombinedPoint",
    "SingleAccountHistoryResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
