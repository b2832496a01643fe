"""
Tests for the Google Sheets mirror and audit storage.

gspread is replaced by MagicMock worksheets; no network access.
"""

import asyncio
import json
import pytest
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import gspread
from tenacity import wait_none

from household_ledger.config import GoogleSheetsSettings
from household_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from household_ledger.models.identity import PersonRef
from household_ledger.models.movement import Movement, MovementType, Participant
from household_ledger.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    MOVEMENT_COLUMNS,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsMovementMirror,
)
from household_ledger.services.storage.interface import StorageError


@pytest.fixture
def sheets_settings(tmp_path):
    credentials = tmp_path / "credentials.json"
    credentials.write_text("{}")
    return GoogleSheetsSettings(
        credentials_path=str(credentials),
        spreadsheet_id="spreadsheet-1",
    )


@pytest.fixture
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(GoogleSheetsMovementMirror.record_movement.retry, "wait", wait_none())
    monkeypatch.setattr(GoogleSheetsAuditStorage.append_event.retry, "wait", wait_none())


@pytest.fixture
def sheet():
    return MagicMock()


@pytest.fixture
def sheets_client(sheet):
    client = MagicMock(spec=GoogleSheetsClient)
    client.get_movements_sheet.return_value = sheet
    client.get_audit_sheet.return_value = sheet
    return client


def split_movement(**overrides) -> Movement:
    data = dict(
        household_id="h1",
        type=MovementType.SPLIT,
        description="Cena",
        amount=Decimal("100000"),
        movement_date=date(2025, 1, 10),
        payer=PersonRef.member("jose"),
        payer_name="Jose",
        payment_method_id="pm1",
        payment_method_name="Visa Jose",
        participants=[
            Participant(person=PersonRef.member("caro"), name="Caro", percentage=Decimal("0.5")),
            Participant(person=PersonRef.contact("pedro"), percentage=Decimal("0.5")),
        ],
    )
    data.update(overrides)
    return Movement(**data)


def as_record(row: list) -> dict:
    return dict(zip(MOVEMENT_COLUMNS, row))


class TestMovementRows:
    """Tests for the mirrored row format."""

    def test_split_row(self, sheets_client):
        mirror = GoogleSheetsMovementMirror(sheets_client)
        movement = split_movement()
        record = as_record(mirror._movement_to_row(movement))

        assert record["id"] == str(movement.id)
        assert record["fecha"] == "2025-01-10"
        assert record["tipo"] == "gasto"
        assert record["sub_tipo"] == "COMPARTIDO"
        assert record["valor"] == "100000"
        assert record["pagador"] == "Jose"
        assert record["contraparte"] == ""
        assert record["metodo_pago"] == "Visa Jose"
        assert record["categoria"] == ""
        assert record["is_test"] == "False"
        # Names are used when known, IDs otherwise
        assert json.loads(record["participantes_json"]) == [
            {"nombre": "Caro", "porcentaje": 0.5},
            {"nombre": "pedro", "porcentaje": 0.5},
        ]

    def test_debt_payment_row(self, sheets_client):
        mirror = GoogleSheetsMovementMirror(sheets_client, is_test=True)
        movement = Movement(
            household_id="h1",
            type=MovementType.DEBT_PAYMENT,
            description="Abono",
            amount=Decimal("20000"),
            movement_date=date(2025, 1, 20),
            payer=PersonRef.contact("pedro"),
            payer_name="Pedro",
            counterparty=PersonRef.member("jose"),
            counterparty_name="Jose",
            receiver_account_id="acc-savings",
        )
        record = as_record(mirror._movement_to_row(movement))

        assert record["sub_tipo"] == "PAGO_DEUDA"
        assert record["pagador"] == "Pedro"
        assert record["contraparte"] == "Jose"
        assert record["participantes_json"] == ""
        assert record["is_test"] == "True"

    def test_household_row(self, sheets_client):
        mirror = GoogleSheetsMovementMirror(sheets_client)
        movement = split_movement(
            type=MovementType.HOUSEHOLD,
            category="Comida",
            payer_name=None,
            participants=[],
        )
        record = as_record(mirror._movement_to_row(movement))

        assert record["sub_tipo"] == "FAMILIAR"
        assert record["categoria"] == "Comida"
        assert record["pagador"] == "jose"
        assert record["participantes_json"] == ""

    def test_row_has_one_value_per_column(self, sheets_client):
        mirror = GoogleSheetsMovementMirror(sheets_client)
        assert len(mirror._movement_to_row(split_movement())) == len(MOVEMENT_COLUMNS)


class TestRecordMovement:
    """Tests for appending rows with retries."""

    def test_appends_raw_row(self, sheets_client, sheet):
        mirror = GoogleSheetsMovementMirror(sheets_client)
        movement = split_movement()

        assert asyncio.run(mirror.record_movement(movement)) is True
        sheet.append_row.assert_called_once_with(
            mirror._movement_to_row(movement),
            value_input_option="RAW",
        )

    def test_failure_is_retried_then_raised(self, sheets_client, sheet, no_retry_wait):
        sheet.append_row.side_effect = RuntimeError("quota exceeded")
        mirror = GoogleSheetsMovementMirror(sheets_client)

        with pytest.raises(StorageError, match="quota exceeded"):
            asyncio.run(mirror.record_movement(split_movement()))
        assert sheet.append_row.call_count == 3

    def test_transient_failure_recovers(self, sheets_client, sheet, no_retry_wait):
        sheet.append_row.side_effect = [RuntimeError("timeout"), None]
        mirror = GoogleSheetsMovementMirror(sheets_client)

        assert asyncio.run(mirror.record_movement(split_movement())) is True
        assert sheet.append_row.call_count == 2


class TestGoogleSheetsClient:

    def test_creates_missing_sheet_with_headers(self, sheets_settings):
        client = GoogleSheetsClient(sheets_settings)
        spreadsheet = MagicMock()
        spreadsheet.worksheet.side_effect = gspread.WorksheetNotFound("Movimientos")
        client._spreadsheet = spreadsheet

        sheet = client.get_movements_sheet()

        spreadsheet.add_worksheet.assert_called_once_with(
            title="Movimientos",
            rows=1000,
            cols=len(MOVEMENT_COLUMNS),
        )
        assert sheet is spreadsheet.add_worksheet.return_value
        sheet.append_row.assert_called_once_with(MOVEMENT_COLUMNS)

    def test_existing_sheet_is_reused(self, sheets_settings):
        client = GoogleSheetsClient(sheets_settings)
        spreadsheet = MagicMock()
        client._spreadsheet = spreadsheet

        sheet = client.get_audit_sheet()

        spreadsheet.worksheet.assert_called_once_with("AuditLog")
        spreadsheet.add_worksheet.assert_not_called()
        assert sheet is spreadsheet.worksheet.return_value


class TestGoogleSheetsAuditStorage:
    """Tests for the audit sheet."""

    @pytest.fixture
    def event(self):
        return AuditEventBuilder.movement_created(
            split_movement(),
            user_id="jose",
            correlation_id=uuid4(),
        )

    def test_append_event(self, sheets_client, sheet, event):
        storage = GoogleSheetsAuditStorage(sheets_client)

        assert asyncio.run(storage.append_event(event)) is True
        row = sheet.append_row.call_args.args[0]
        assert len(row) == len(AUDIT_COLUMNS)
        assert row[2] == "movement_created"
        assert json.loads(row[12])["amount"] == "100000"

    def test_append_failure_raises(self, sheets_client, sheet, event, no_retry_wait):
        sheet.append_row.side_effect = RuntimeError("sheet gone")
        storage = GoogleSheetsAuditStorage(sheets_client)

        with pytest.raises(StorageError):
            asyncio.run(storage.append_event(event))

    def test_events_read_back(self, sheets_client, sheet, event):
        sheet.get_all_values.return_value = [AUDIT_COLUMNS, event.to_sheets_row()]
        storage = GoogleSheetsAuditStorage(sheets_client)

        by_correlation = asyncio.run(storage.get_events_by_correlation_id(event.correlation_id))
        by_entity = asyncio.run(storage.get_events_by_entity("movement", event.entity_id))

        assert by_correlation == [event]
        assert by_entity == [event]

    def test_unreadable_rows_are_skipped(self, sheets_client, sheet, event):
        broken = event.to_sheets_row()
        broken[0] = "not-a-uuid"
        sheet.get_all_values.return_value = [
            AUDIT_COLUMNS,
            broken,
            [],
            event.to_sheets_row(),
        ]
        storage = GoogleSheetsAuditStorage(sheets_client)

        assert asyncio.run(storage.get_recent_events()) == [event]

    def test_recent_events_newest_first(self, sheets_client, sheet):
        first = AuditEvent(event_type=AuditEventType.SYSTEM_ERROR, description="first")
        second = AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            description="second",
            timestamp=first.timestamp + timedelta(seconds=5),
        )
        sheet.get_all_values.return_value = [
            AUDIT_COLUMNS,
            first.to_sheets_row(),
            second.to_sheets_row(),
        ]
        storage = GoogleSheetsAuditStorage(sheets_client)

        recent = asyncio.run(storage.get_recent_events(limit=1))
        assert [e.description for e in recent] == ["second"]

    def test_read_failure_raises(self, sheets_client, sheet):
        sheet.get_all_values.side_effect = RuntimeError("network down")
        storage = GoogleSheetsAuditStorage(sheets_client)

        with pytest.raises(StorageError):
            asyncio.run(storage.get_recent_events())
