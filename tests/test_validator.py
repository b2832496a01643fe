"""
Tests for the two-stage movement validator.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from household_ledger.models.identity import PersonRef
from household_ledger.models.movement import (
    CreateMovementInput,
    Movement,
    MovementType,
    Participant,
    ParticipantInput,
    UpdateMovementInput,
)
from household_ledger.validation import MovementValidationError, MovementValidator


@pytest.fixture
def validator(ledger_settings):
    return MovementValidator(ledger_settings)


def household_input(**overrides) -> CreateMovementInput:
    data = dict(
        type="HOUSEHOLD",
        description="Mercado",
        amount=Decimal("120000"),
        category="Comida",
        movement_date=date.today(),
        payer_user_id="jose",
        payment_method_id="pm1",
    )
    data.update(overrides)
    return CreateMovementInput(**data)


def split_input(participants, **overrides) -> CreateMovementInput:
    data = dict(
        type="SPLIT",
        description="Cena",
        amount=Decimal("100000"),
        movement_date=date.today(),
        payer_user_id="jose",
        payment_method_id="pm1",
        participants=participants,
    )
    data.update(overrides)
    return CreateMovementInput(**data)


def debt_input(**overrides) -> CreateMovementInput:
    data = dict(
        type="DEBT_PAYMENT",
        description="Abono",
        amount=Decimal("20000"),
        movement_date=date.today(),
        payer_contact_id="pedro",
        counterparty_user_id="jose",
        receiver_account_id="acc-savings",
    )
    data.update(overrides)
    return CreateMovementInput(**data)


def share(percentage: str, user_id=None, contact_id=None) -> ParticipantInput:
    return ParticipantInput(
        participant_user_id=user_id,
        participant_contact_id=contact_id,
        percentage=Decimal(percentage),
    )


def error_codes(result) -> set[str]:
    return {issue.issue_type for issue in result.errors}


class TestStructuralValidation:
    """Stage 1: any issue rejects the input."""

    def test_valid_household(self, validator):
        result = validator.validate_create(household_input())
        assert result.is_valid
        assert result.structural_valid
        assert result.issues == []

    def test_unknown_type(self, validator):
        result = validator.validate_create(household_input(type="LOAN"))
        assert error_codes(result) == {"invalid_movement_type"}
        assert not result.structural_valid

    def test_missing_core_fields(self, validator):
        result = validator.validate_create(household_input(
            description="   ",
            amount=Decimal("0"),
            movement_date=None,
        ))
        fields = {issue.field for issue in result.errors}
        assert {"description", "amount", "movement_date"} <= fields
        assert "invalid_amount" in error_codes(result)

    def test_negative_amount(self, validator):
        result = validator.validate_create(household_input(amount=Decimal("-5")))
        assert "invalid_amount" in error_codes(result)

    def test_description_too_long(self, validator):
        result = validator.validate_create(household_input(description="x" * 501))
        assert "description_too_long" in error_codes(result)

    def test_invalid_currency(self, validator):
        result = validator.validate_create(household_input(currency="PESOS"))
        assert "invalid_currency" in error_codes(result)

    def test_payer_required(self, validator):
        result = validator.validate_create(household_input(payer_user_id=None))
        assert "payer_required" in error_codes(result)

    def test_payer_cannot_be_both(self, validator):
        result = validator.validate_create(household_input(payer_contact_id="pedro"))
        assert "payer_required" in error_codes(result)

    def test_raise_for_errors_carries_every_issue(self, validator):
        result = validator.validate_create(household_input(
            amount=Decimal("0"),
            category=None,
        ))
        with pytest.raises(MovementValidationError) as exc_info:
            result.raise_for_errors()
        codes = {issue.issue_type for issue in exc_info.value.issues}
        assert codes == {"invalid_amount", "category_required"}


class TestHouseholdRules:

    def test_category_required(self, validator):
        result = validator.validate_create(household_input(category=""))
        assert error_codes(result) == {"category_required"}

    def test_payment_method_required(self, validator):
        result = validator.validate_create(household_input(payment_method_id=None))
        assert error_codes(result) == {"payment_method_required"}

    def test_counterparty_not_allowed(self, validator):
        result = validator.validate_create(household_input(counterparty_contact_id="pedro"))
        assert error_codes(result) == {"counterparty_not_allowed"}

    def test_participants_not_allowed(self, validator):
        result = validator.validate_create(household_input(
            participants=[share("1", contact_id="pedro")],
        ))
        assert error_codes(result) == {"participants_not_allowed"}


class TestSplitRules:
    """Tests for SPLIT structural rules."""

    def test_valid_split(self, validator):
        result = validator.validate_create(split_input([
            share("0.5", user_id="jose"),
            share("0.5", contact_id="pedro"),
        ]))
        assert result.is_valid

    def test_percentage_sum_within_tolerance_accepted(self, validator):
        """1.00005 is within 1e-4 of 1."""
        result = validator.validate_create(split_input([
            share("0.5", user_id="jose"),
            share("0.50005", contact_id="pedro"),
        ]))
        assert result.is_valid

    def test_percentage_sum_outside_tolerance_rejected(self, validator):
        """1.0002 is not."""
        result = validator.validate_create(split_input([
            share("0.5", user_id="jose"),
            share("0.5002", contact_id="pedro"),
        ]))
        assert error_codes(result) == {"invalid_percentage_sum"}

    def test_percentage_sum_too_low_rejected(self, validator):
        result = validator.validate_create(split_input([
            share("0.3", contact_id="pedro"),
            share("0.3", contact_id="maria"),
        ]))
        assert error_codes(result) == {"invalid_percentage_sum"}

    def test_participants_required(self, validator):
        result = validator.validate_create(split_input([]))
        assert error_codes(result) == {"participants_required"}

    def test_participant_needs_exactly_one_identity(self, validator):
        result = validator.validate_create(split_input([
            share("0.5"),
            share("0.5", user_id="caro", contact_id="pedro"),
        ]))
        assert error_codes(result) == {"invalid_participant"}
        assert len(result.errors) == 2

    @pytest.mark.parametrize("percentage", ["0", "-0.5", "1.5"])
    def test_participant_percentage_bounds(self, validator, percentage):
        result = validator.validate_create(split_input([share(percentage, contact_id="pedro")]))
        assert error_codes(result) == {"invalid_percentage"}

    def test_category_not_allowed(self, validator):
        result = validator.validate_create(split_input(
            [share("1", contact_id="pedro")],
            category="Comida",
        ))
        assert error_codes(result) == {"category_not_allowed"}

    def test_payment_method_required_only_for_member_payer(self, validator):
        member_paid = validator.validate_create(split_input(
            [share("1", contact_id="pedro")],
            payment_method_id=None,
        ))
        assert error_codes(member_paid) == {"payment_method_required"}

        contact_paid = validator.validate_create(split_input(
            [share("1", user_id="jose")],
            payer_user_id=None,
            payer_contact_id="pedro",
            payment_method_id=None,
        ))
        assert contact_paid.is_valid

    def test_counterparty_not_allowed(self, validator):
        result = validator.validate_create(split_input(
            [share("1", contact_id="pedro")],
            counterparty_contact_id="maria",
        ))
        assert error_codes(result) == {"counterparty_not_allowed"}


class TestDebtPaymentRules:
    """Tests for DEBT_PAYMENT structural rules."""

    def test_valid_contact_payer(self, validator):
        """A contact paying needs no category and no payment method."""
        assert validator.validate_create(debt_input()).is_valid

    def test_counterparty_required(self, validator):
        result = validator.validate_create(debt_input(counterparty_user_id=None))
        assert error_codes(result) == {"counterparty_required"}

    def test_counterparty_cannot_be_both(self, validator):
        result = validator.validate_create(debt_input(counterparty_contact_id="maria"))
        assert error_codes(result) == {"counterparty_required"}

    def test_member_payer_needs_category_and_payment_method(self, validator):
        result = validator.validate_create(debt_input(
            payer_contact_id=None,
            payer_user_id="caro",
        ))
        assert error_codes(result) == {"category_required", "payment_method_required"}

    def test_participants_not_allowed(self, validator):
        result = validator.validate_create(debt_input(
            participants=[share("1", contact_id="pedro")],
        ))
        assert error_codes(result) == {"participants_not_allowed"}

    def test_same_member_on_both_sides(self, validator):
        result = validator.validate_create(debt_input(
            payer_contact_id=None,
            payer_user_id="jose",
            category="Deudas",
            payment_method_id="pm1",
        ))
        assert error_codes(result) == {"same_payer_counterparty"}

    def test_same_contact_on_both_sides(self, validator):
        result = validator.validate_create(debt_input(
            counterparty_user_id=None,
            counterparty_contact_id="pedro",
            receiver_account_id=None,
        ))
        assert error_codes(result) == {"same_payer_counterparty"}

    def test_member_and_contact_with_same_id_are_different_people(self, validator):
        result = validator.validate_create(debt_input(
            payer_contact_id="jose",
            counterparty_user_id="jose",
        ))
        assert result.is_valid

    def test_receiver_account_rejected_when_paying_a_contact(self, validator):
        result = validator.validate_create(debt_input(
            payer_contact_id=None,
            payer_user_id="jose",
            counterparty_user_id=None,
            counterparty_contact_id="pedro",
            category="Deudas",
            payment_method_id="pm1",
            receiver_account_id="acc-other",
        ))
        assert error_codes(result) == {"receiver_account_not_allowed"}

    def test_receiver_account_rejected_on_household(self, validator):
        result = validator.validate_create(household_input(receiver_account_id="acc-savings"))
        assert error_codes(result) == {"receiver_account_not_allowed"}

    def test_receiver_account_rejected_on_split(self, validator):
        result = validator.validate_create(split_input(
            [share("1", contact_id="pedro")],
            receiver_account_id="acc-savings",
        ))
        assert error_codes(result) == {"receiver_account_not_allowed"}


class TestSemanticValidation:
    """Stage 2: warnings only."""

    def test_future_date_warns(self, validator):
        result = validator.validate_create(household_input(
            movement_date=date.today() + timedelta(days=30),
        ))
        assert result.is_valid
        assert [i.issue_type for i in result.issues] == ["future_date"]

    def test_date_within_tolerance_does_not_warn(self, validator):
        result = validator.validate_create(household_input(
            movement_date=date.today() + timedelta(days=7),
        ))
        assert result.issues == []

    def test_huge_amount_warns(self, validator):
        result = validator.validate_create(household_input(amount=Decimal("2000000000")))
        assert result.is_valid
        assert [i.issue_type for i in result.issues] == ["suspicious_value"]

    def test_split_where_only_the_payer_participates_warns(self, validator):
        result = validator.validate_create(split_input([share("1", user_id="jose")]))
        assert result.is_valid
        assert [i.issue_type for i in result.issues] == ["no_debt"]

    def test_semantic_stage_skipped_when_structure_fails(self, validator):
        result = validator.validate_create(household_input(
            category=None,
            movement_date=date.today() + timedelta(days=30),
        ))
        assert all(issue.severity == "error" for issue in result.issues)


class TestUpdateValidation:

    @pytest.fixture
    def existing_split(self):
        return Movement(
            household_id="h1",
            type=MovementType.SPLIT,
            description="Cena",
            amount=Decimal("100000"),
            movement_date=date(2025, 1, 10),
            payer=PersonRef.member("jose"),
            payment_method_id="pm1",
            participants=[
                Participant(person=PersonRef.contact("pedro"), percentage=Decimal("1")),
            ],
        )

    def test_empty_update_is_valid(self, validator):
        assert validator.validate_update(UpdateMovementInput()).is_valid

    def test_amount_must_be_positive(self, validator):
        result = validator.validate_update(UpdateMovementInput(amount=Decimal("0")))
        assert error_codes(result) == {"invalid_amount"}

    def test_description_cannot_be_emptied(self, validator):
        result = validator.validate_update(UpdateMovementInput(description=""))
        assert error_codes(result) == {"missing"}

    def test_split_participants_checked(self, validator, existing_split):
        result = validator.validate_update(
            UpdateMovementInput(participants=[share("0.7", contact_id="pedro")]),
            existing_split,
        )
        assert error_codes(result) == {"invalid_percentage_sum"}

    def test_split_participants_cannot_be_emptied(self, validator, existing_split):
        result = validator.validate_update(
            UpdateMovementInput(participants=[]),
            existing_split,
        )
        assert error_codes(result) == {"participants_required"}

    def test_participants_rejected_on_non_split(self, validator, existing_split):
        household = existing_split.model_copy(update={
            "type": MovementType.HOUSEHOLD,
            "category": "Comida",
            "participants": [],
        })
        result = validator.validate_update(
            UpdateMovementInput(participants=[share("1", contact_id="pedro")]),
            household,
        )
        assert error_codes(result) == {"participants_not_allowed"}

    def test_category_rejected_on_split(self, validator, existing_split):
        result = validator.validate_update(
            UpdateMovementInput(category="Mercado"),
            existing_split,
        )
        assert error_codes(result) == {"category_not_allowed"}

    def test_clearing_category_on_split_is_valid(self, validator, existing_split):
        result = validator.validate_update(UpdateMovementInput(category=""), existing_split)
        assert result.is_valid

    def test_member_paid_split_keeps_payment_method(self, validator, existing_split):
        result = validator.validate_update(
            UpdateMovementInput(payment_method_id=""),
            existing_split,
        )
        assert error_codes(result) == {"payment_method_required"}

    def test_household_required_fields_cannot_be_blanked(self, validator):
        household = Movement(
            household_id="h1",
            type=MovementType.HOUSEHOLD,
            description="Mercado",
            amount=Decimal("120000"),
            category="Comida",
            movement_date=date(2025, 1, 5),
            payer=PersonRef.member("jose"),
            payment_method_id="pm1",
        )
        result = validator.validate_update(
            UpdateMovementInput(payment_method_id="", category=""),
            household,
        )
        assert error_codes(result) == {"category_required", "payment_method_required"}

    def test_household_untouched_fields_fall_back_to_existing(self, validator):
        household = Movement(
            household_id="h1",
            type=MovementType.HOUSEHOLD,
            description="Mercado",
            amount=Decimal("120000"),
            category="Comida",
            movement_date=date(2025, 1, 5),
            payer=PersonRef.member("jose"),
            payment_method_id="pm1",
        )
        assert validator.validate_update(
            UpdateMovementInput(amount=Decimal("130000")),
            household,
        ).is_valid

    def test_member_paid_debt_payment_keeps_payment_method(self, validator):
        payment = Movement(
            household_id="h1",
            type=MovementType.DEBT_PAYMENT,
            description="Abono",
            amount=Decimal("20000"),
            category="Deudas",
            movement_date=date(2025, 1, 20),
            payer=PersonRef.member("jose"),
            counterparty=PersonRef.contact("pedro"),
            payment_method_id="pm1",
        )
        result = validator.validate_update(
            UpdateMovementInput(payment_method_id=""),
            payment,
        )
        assert error_codes(result) == {"payment_method_required"}

    def test_receiver_account_rejected_on_split(self, validator, existing_split):
        result = validator.validate_update(
            UpdateMovementInput(receiver_account_id="acc-savings"),
            existing_split,
        )
        assert error_codes(result) == {"receiver_account_not_allowed"}

    def test_receiver_account_cannot_be_cleared_when_paying_a_member(self, validator):
        payment = Movement(
            household_id="h1",
            type=MovementType.DEBT_PAYMENT,
            description="Abono",
            amount=Decimal("20000"),
            movement_date=date(2025, 1, 20),
            payer=PersonRef.contact("pedro"),
            counterparty=PersonRef.member("jose"),
            receiver_account_id="acc-savings",
        )
        result = validator.validate_update(
            UpdateMovementInput(receiver_account_id=""),
            payment,
        )
        assert error_codes(result) == {"receiver_account_required"}


class TestUserFriendlySummary:

    def test_all_passed(self, validator):
        result = validator.validate_create(household_input())
        assert "All checks passed" in validator.get_user_friendly_summary(result)

    def test_lists_errors(self, validator):
        result = validator.validate_create(household_input(category=None))
        summary = validator.get_user_friendly_summary(result)
        assert "could not be saved" in summary
        assert "category is required" in summary
