"""
Audit Logger

DESIGN DECISION: Every mutation of the ledger is logged.
This provides:
1. Complete traceability
2. Debugging capability
3. Old/new values for every change

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from household_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from household_ledger.models.movement import Movement
from household_ledger.services.storage.interface import AuditStorageInterface


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


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.
        Never raises.

        Returns True if storage write succeeded (or no storage configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        # Persist to storage if available
        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_movement_created(
        self,
        movement: Movement,
        user_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.movement_created(
            movement=movement,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_movement_updated(
        self,
        old: Movement,
        new: Movement,
        user_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.movement_updated(
            old=old,
            new=new,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_movement_deleted(
        self,
        movement: Movement,
        user_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.movement_deleted(
            movement=movement,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        user_id: str,
        issues: list[dict],
        correlation_id: UUID,
        movement_id: Optional[UUID] = None,
    ) -> None:
        """Log validation failure."""
        event = AuditEventBuilder.validation_failed(
            user_id=user_id,
            issues=issues,
            correlation_id=correlation_id,
            movement_id=movement_id,
        )
        await self.log(event)

    async def log_authorization_denied(
        self,
        user_id: str,
        household_id: Optional[str],
        reason: str,
        correlation_id: UUID,
        movement_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected cross-household reference."""
        event = AuditEventBuilder.authorization_denied(
            user_id=user_id,
            household_id=household_id,
            reason=reason,
            correlation_id=correlation_id,
            movement_id=movement_id,
        )
        await self.log(event)

    async def log_debts_consolidated(
        self,
        user_id: str,
        household_id: str,
        month: Optional[str],
        movement_count: int,
        balance_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.debts_consolidated(
            user_id=user_id,
            household_id=household_id,
            month=month,
            movement_count=movement_count,
            balance_count=balance_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_mirror_sync_failed(
        self,
        movement: Movement,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a movement that was saved but not mirrored."""
        event = AuditEventBuilder.mirror_sync_failed(
            movement=movement,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a movement create).
    Pass it through all subsequent operations.
    """
    return uuid4()
