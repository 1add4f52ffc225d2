"""
Audit Logger

DESIGN DECISION: Every balance query and every anchor change is logged.
This provides:
1. Traceability of who looked at which accounts
2. Debugging capability when a chart looks wrong
3. A history of declared checkpoints

The audit logger:
- Is async, like the collaborators it sits beside
- Gracefully handles failures (a broken audit sink never fails a query)
- Supports correlation IDs to tie a request to its result
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

import structlog

from balance_history.config import get_settings
from balance_history.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from balance_history.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: Optional[str] = None) -> None:
    """
    Route the package's structured logs to stderr at the given level.

    Defaults to the configured ``BALANCE_HISTORY_LOG_LEVEL``.
    """
    level = level or get_settings().app.log_level
    logging.basicConfig(format="%(message)s", level=logging.WARNING)
    logging.getLogger("balance_history").setLevel(level.upper())


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage backend, if one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # An audit sink failure must never fail the query it describes
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_history_requested(
        self,
        requester_id: str,
        account_ids: list[str],
        combined: bool,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> None:
        event = AuditEventBuilder.history_requested(
            requester_id=requester_id,
            account_ids=account_ids,
            combined=combined,
            correlation_id=correlation_id,
            details=details,
        )
        await self.log(event)

    async def log_history_computed(
        self,
        requester_id: str,
        account_ids: list[str],
        point_count: int,
        combined: bool,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.history_computed(
            requester_id=requester_id,
            account_ids=account_ids,
            point_count=point_count,
            combined=combined,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_anchor_set(
        self,
        account_id: str,
        requester_id: str,
        balance: str,
        as_of_date: datetime,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.anchor_set(
            account_id=account_id,
            requester_id=requester_id,
            balance=balance,
            as_of_date=as_of_date,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_request_rejected(
        self,
        event_type: AuditEventType,
        requester_id: str,
        error_message: str,
        correlation_id: UUID,
        account_id: Optional[str] = None,
    ) -> None:
        """Log a validation, authorization or not-found rejection."""
        event = AuditEventBuilder.request_rejected(
            event_type=event_type,
            requester_id=requester_id,
            error_message=error_message,
            correlation_id=correlation_id,
            account_id=account_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_collaborator_error(
        self,
        collaborator: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.collaborator_error(
            collaborator=collaborator,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a request and pass it through.
    """
    return uuid4()
