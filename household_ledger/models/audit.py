"""
Audit Models for Household Ledger

Every mutation of the ledger is logged for audit purposes.
This provides:
1. Complete traceability of who changed which movement
2. Debugging information when things go wrong
3. The old/new values needed to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from household_ledger.models.movement import Movement, utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Movement lifecycle
    MOVEMENT_CREATED = "movement_created"
    MOVEMENT_UPDATED = "movement_updated"
    MOVEMENT_DELETED = "movement_deleted"

    # Rejections
    MOVEMENT_VALIDATION_FAILED = "movement_validation_failed"
    MOVEMENT_AUTHORIZATION_DENIED = "movement_authorization_denied"

    # Reads worth tracing
    DEBTS_CONSOLIDATED = "debts_consolidated"

    # System events
    MIRROR_SYNC_FAILED = "mirror_sync_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def movement_to_values(movement: Optional[Movement]) -> Optional[dict[str, Any]]:
    """Snapshot a movement as JSON-safe values for old/new audit fields."""
    if movement is None:
        return None
    return movement.model_dump(mode="json")


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every mutation creates one of these, successful or not.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO
    success: bool = True

    # Who and where
    user_id: Optional[str] = None
    household_id: Optional[str] = None

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'movement', 'debts')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate events of one request"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
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
            "success": self.success,
            "user_id": self.user_id,
            "household_id": self.household_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, success, user_id,
         household_id, entity_type, entity_id, correlation_id, description,
         old_values_json, new_values_json, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            str(self.success),
            self.user_id or "",
            self.household_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.old_values) if self.old_values else "",
            json.dumps(self.new_values) if self.new_values else "",
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.movement_created(movement, user_id, correlation_id)
        event = AuditEventBuilder.movement_deleted(movement, user_id, correlation_id)
    """

    @staticmethod
    def movement_created(
        movement: Movement,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MOVEMENT_CREATED,
            user_id=user_id,
            household_id=movement.household_id,
            entity_type="movement",
            entity_id=movement.id,
            correlation_id=correlation_id,
            description=f"Movement created: {movement.type.value} {movement.amount} {movement.currency}",
            new_values=movement_to_values(movement),
        )

    @staticmethod
    def movement_updated(
        old: Movement,
        new: Movement,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MOVEMENT_UPDATED,
            user_id=user_id,
            household_id=new.household_id,
            entity_type="movement",
            entity_id=new.id,
            correlation_id=correlation_id,
            description=f"Movement updated: {new.id}",
            old_values=movement_to_values(old),
            new_values=movement_to_values(new),
        )

    @staticmethod
    def movement_deleted(
        movement: Movement,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MOVEMENT_DELETED,
            user_id=user_id,
            household_id=movement.household_id,
            entity_type="movement",
            entity_id=movement.id,
            correlation_id=correlation_id,
            description=f"Movement deleted: {movement.id}",
            old_values=movement_to_values(movement),
        )

    @staticmethod
    def mutation_failed(
        event_type: AuditEventType,
        user_id: str,
        household_id: Optional[str],
        error_message: str,
        movement_id: Optional[UUID] = None,
        old: Optional[Movement] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        """A create/update/delete that reached storage and failed there."""
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.ERROR,
            success=False,
            user_id=user_id,
            household_id=household_id,
            entity_type="movement",
            entity_id=movement_id,
            correlation_id=correlation_id,
            description=f"{event_type.value} failed",
            old_values=movement_to_values(old),
            error_message=error_message,
        )

    @staticmethod
    def validation_failed(
        user_id: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
        movement_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MOVEMENT_VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            success=False,
            user_id=user_id,
            entity_type="movement",
            entity_id=movement_id,
            correlation_id=correlation_id,
            description=f"Movement validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def authorization_denied(
        user_id: str,
        household_id: Optional[str],
        reason: str,
        correlation_id: Optional[UUID] = None,
        movement_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MOVEMENT_AUTHORIZATION_DENIED,
            severity=AuditSeverity.WARNING,
            success=False,
            user_id=user_id,
            household_id=household_id,
            entity_type="movement",
            entity_id=movement_id,
            correlation_id=correlation_id,
            description="Movement rejected: reference outside the household",
            error_message=reason,
        )

    @staticmethod
    def debts_consolidated(
        user_id: str,
        household_id: str,
        month: Optional[str],
        movement_count: int,
        balance_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBTS_CONSOLIDATED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            household_id=household_id,
            entity_type="debts",
            correlation_id=correlation_id,
            description=(
                f"Consolidated {movement_count} movements into "
                f"{balance_count} balances"
            ),
            details={
                "month": month,
                "movement_count": movement_count,
                "balance_count": balance_count,
            },
        )

    @staticmethod
    def mirror_sync_failed(
        movement: Movement,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIRROR_SYNC_FAILED,
            severity=AuditSeverity.ERROR,
            success=False,
            household_id=movement.household_id,
            entity_type="movement",
            entity_id=movement.id,
            correlation_id=correlation_id,
            description="Movement saved but not mirrored to the spreadsheet",
            error_message=error_message,
            details={"service": "google_sheets"},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            success=False,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
