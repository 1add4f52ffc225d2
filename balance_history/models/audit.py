"""
Audit Models for Balance History

Every balance query and anchor change is recorded for audit purposes.
This provides:
1. Traceability of who looked at which accounts
2. Debugging information when a history looks wrong
3. A record of every checkpoint a user declared

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Queries
    SINGLE_ACCOUNT_HISTORY_REQUESTED = "single_account_history_requested"
    SINGLE_ACCOUNT_HISTORY_COMPUTED = "single_account_history_computed"
    COMBINED_HISTORY_REQUESTED = "combined_history_requested"
    COMBINED_HISTORY_COMPUTED = "combined_history_computed"

    # Anchors
    ANCHOR_SET = "anchor_set"

    # Rejections
    VALIDATION_FAILED = "validation_failed"
    AUTHORIZATION_DENIED = "authorization_denied"
    ACCOUNT_NOT_FOUND = "account_not_found"

    # System events
    SYSTEM_ERROR = "system_error"
    COLLABORATOR_ERROR = "collaborator_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Who asked, and about what
    requester_id: Optional[str] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'history')"
    )
    entity_id: Optional[str] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., request and result)"
    )

    description: str = Field(
        ...,
        max_length=500,
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "requester_id": self.requester_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_row(self) -> list[str]:
        """
        Flatten to a row for tabular audit storage.

        Columns: [event_id, timestamp, event_type, severity, requester_id,
        entity_type, entity_id, correlation_id, description, details_json,
        error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.requester_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.anchor_set(account_id, requester_id, ...)
    """

    @staticmethod
    def history_requested(
        requester_id: str,
        account_ids: list[str],
        combined: bool,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        if combined:
            event_type = AuditEventType.COMBINED_HISTORY_REQUESTED
            description = f"Combined history requested for {len(account_ids) or 'all'} accounts"
        else:
            event_type = AuditEventType.SINGLE_ACCOUNT_HISTORY_REQUESTED
            description = "Account history requested"
        return AuditEvent(
            event_type=event_type,
            requester_id=requester_id,
            entity_type="history",
            entity_id=account_ids[0] if len(account_ids) == 1 else None,
            correlation_id=correlation_id,
            description=description,
            details={"account_ids": account_ids, **(details or {})},
        )

    @staticmethod
    def history_computed(
        requester_id: str,
        account_ids: list[str],
        point_count: int,
        combined: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.COMBINED_HISTORY_COMPUTED
            if combined
            else AuditEventType.SINGLE_ACCOUNT_HISTORY_COMPUTED
        )
        return AuditEvent(
            event_type=event_type,
            requester_id=requester_id,
            entity_type="history",
            entity_id=account_ids[0] if len(account_ids) == 1 else None,
            correlation_id=correlation_id,
            description=f"History computed: {point_count} points over {len(account_ids)} accounts",
            details={
                "account_ids": account_ids,
                "point_count": point_count,
            },
        )

    @staticmethod
    def anchor_set(
        account_id: str,
        requester_id: str,
        balance: str,
        as_of_date: datetime,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANCHOR_SET,
            requester_id=requester_id,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Balance set to {balance} as of {as_of_date.date().isoformat()}",
            details={
                "balance": balance,
                "as_of_date": as_of_date.isoformat(),
            },
        )

    @staticmethod
    def request_rejected(
        event_type: AuditEventType,
        requester_id: str,
        error_message: str,
        correlation_id: UUID,
        account_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.WARNING,
            requester_id=requester_id,
            entity_type="account" if account_id else None,
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Request rejected: {event_type.value}",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def collaborator_error(
        collaborator: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COLLABORATOR_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Collaborator error: {collaborator}",
            error_message=error_message,
            details={"collaborator": collaborator},
            correlation_id=correlation_id,
        )
