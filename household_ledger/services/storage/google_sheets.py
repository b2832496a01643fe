"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as a human-readable copy of the
ledger because:
1. Non-technical household members can view movements directly in Sheets
2. No database access required to browse the history
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for a household)
- No transactions, so the sheet is a MIRROR, never the source of truth
- Only created movements are mirrored; updates and deletes stay in the
  primary store

The implementation follows the abstract interfaces, so the flows never
know a spreadsheet is involved.
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from household_ledger.config import GoogleSheetsSettings, get_settings
from household_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from household_ledger.models.movement import Movement, MovementType
from household_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    MovementMirrorInterface,
    StorageError,
)


logger = structlog.get_logger()


# Column mappings for the Movements sheet
MOVEMENT_COLUMNS = [
    "id",
    "fecha",
    "tipo",
    "sub_tipo",
    "valor",
    "descripcion",
    "pagador",
    "contraparte",
    "metodo_pago",
    "categoria",
    "participantes_json",
    "is_test",
]

# Spreadsheet sub-type for each movement kind
SUB_TYPES = {
    MovementType.HOUSEHOLD: "FAMILIAR",
    MovementType.SPLIT: "COMPARTIDO",
    MovementType.DEBT_PAYMENT: "PAGO_DEUDA",
}

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "success",
    "user_id",
    "household_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "old_values_json",
    "new_values_json",
    "details_json",
    "error_message",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_movements_sheet(self) -> gspread.Worksheet:
        """Get or create the Movements worksheet."""
        return self._get_or_create_sheet(
            self._settings.movements_sheet_name,
            MOVEMENT_COLUMNS,
            rows=1000,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsMovementMirror(MovementMirrorInterface):
    """
    Appends one row per created movement.

    Names are written instead of IDs, since the sheet is read by people.
    Participants are JSON-serialized into a single cell.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        is_test: bool = False,
    ):
        self._client = client or GoogleSheetsClient()
        self._is_test = is_test

    def _movement_to_row(self, movement: Movement) -> list:
        """Convert a Movement to a spreadsheet row."""
        participants = []
        if movement.type == MovementType.SPLIT:
            participants = [
                {
                    "nombre": p.name or p.person.id,
                    "porcentaje": float(p.percentage),
                }
                for p in movement.participants
            ]

        counterparty = ""
        if movement.type == MovementType.DEBT_PAYMENT and movement.counterparty:
            counterparty = movement.counterparty_name or movement.counterparty.id

        return [
            str(movement.id),
            movement.movement_date.isoformat(),
            "gasto",  # Every movement is an expense in the sheet
            SUB_TYPES[movement.type],
            str(movement.amount),
            movement.description,
            movement.payer_name or movement.payer.id,
            counterparty,
            movement.payment_method_name or "",
            movement.category or "",
            json.dumps(participants) if participants else "",
            str(self._is_test),
        ]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def record_movement(self, movement: Movement) -> bool:
        """Append a created movement to the Movements sheet."""
        try:
            sheet = self._client.get_movements_sheet()
            row = self._movement_to_row(movement)
            sheet.append_row(row, value_input_option="RAW")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to mirror movement: {e}")

        logger.info(
            "movement_mirrored",
            movement_id=str(movement.id),
            sub_tipo=SUB_TYPES[movement.type],
        )
        return True


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        def json_or_none(index: int) -> Optional[dict]:
            value = safe_get(index)
            return json.loads(value) if value else None

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            success=safe_get(4).lower() == "true",
            user_id=safe_get(5) or None,
            household_id=safe_get(6) or None,
            entity_type=safe_get(7) or None,
            entity_id=UUID(safe_get(8)) if safe_get(8) else None,
            correlation_id=UUID(safe_get(9)) if safe_get(9) else None,
            description=safe_get(10),
            old_values=json_or_none(11),
            new_values=json_or_none(12),
            details=json_or_none(13) or {},
            error_message=safe_get(14) or None,
        )

    def _read_events(self) -> list[AuditEvent]:
        """All parseable events, header excluded."""
        try:
            all_rows = self._client.get_audit_sheet().get_all_values()[1:]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, json.JSONDecodeError) as e:
                logger.warning("audit_row_unreadable", row_id=row[0], error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event.

        Raises StorageError after retries; AuditLogger keeps that from
        reaching the main flow.
        """
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [
            e for e in self._read_events()
            if e.correlation_id == correlation_id
        ]
        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        events = [
            e for e in self._read_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._read_events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
