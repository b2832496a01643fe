"""
Two-Stage Movement Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - STRUCTURAL VALIDATION:
- Known movement kind
- Required field presence (description, amount, date, payer)
- The per-kind table of required / forbidden fields
- Participant identities and percentage shares
- Any issue here is an ERROR and rejects the input

STAGE 2 - SEMANTIC VALIDATION:
- Future date detection
- Absurd amount detection
- Splits where nobody ends up owing anything
- Issues here are WARNINGS only

Stage 2 only runs when stage 1 passes.

IMPORTANT: Validation NEVER silently fixes issues and never raises while
checking. Every problem becomes a ValidationIssue whose issue_type is a
machine-readable code. Call ValidationResult.raise_for_errors() to reject.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from household_ledger.config import LedgerSettings, get_settings
from household_ledger.models.movement import (
    CreateMovementInput,
    Movement,
    MovementType,
    ParticipantInput,
    UpdateMovementInput,
)
from household_ledger.models.validation import ValidationIssue, ValidationResult


# Participant percentages must sum to 1 within this absolute tolerance
PERCENTAGE_SUM_TOLERANCE = Decimal("0.0001")

MAX_DESCRIPTION_LENGTH = 500


class MovementValidationError(Exception):
    """
    Raised when a movement input fails structural validation.

    Carries the full ValidationResult so callers can report every issue.
    """

    def __init__(self, result: ValidationResult):
        self.result = result
        self.issues = result.errors
        first = result.first_error()
        self.code = first.issue_type if first else "invalid_movement"
        messages = "; ".join(issue.message for issue in self.issues)
        super().__init__(messages or "Movement validation failed")


def _has(value: Optional[str]) -> bool:
    """Empty strings count as unset."""
    return bool(value)


def _error(
    field: str,
    issue_type: str,
    message: str,
    suggested_fix: Optional[str] = None,
) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
        suggested_fix=suggested_fix,
    )


def _warning(
    field: str,
    issue_type: str,
    message: str,
    suggested_fix: Optional[str] = None,
) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="warning",
        suggested_fix=suggested_fix,
    )


class MovementValidator:
    """
    Validates movement inputs through a two-stage pipeline.

    Stateless and free of I/O, one instance can be shared.
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        """
        Initialize validator.

        Args:
            settings: Ledger thresholds for semantic checks.
                      Loaded from the environment if None.
        """
        self._settings = settings or get_settings().ledger

    # =========================================================================
    # PARTICIPANTS
    # =========================================================================

    def _validate_participants(
        self,
        participants: list[ParticipantInput],
    ) -> list[ValidationIssue]:
        """
        Check a SPLIT participant list.

        Each participant needs exactly one identity and a share in (0, 1].
        The shares must sum to 1 within PERCENTAGE_SUM_TOLERANCE.
        """
        issues = []

        if not participants:
            issues.append(_error(
                field="participants",
                issue_type="participants_required",
                message="participants are required for SPLIT movements",
                suggested_fix="Add at least one participant with a percentage",
            ))
            return issues

        total = Decimal("0")
        shares_valid = True

        for index, participant in enumerate(participants):
            field = f"participants[{index}]"
            has_user = _has(participant.participant_user_id)
            has_contact = _has(participant.participant_contact_id)

            if not has_user and not has_contact:
                issues.append(_error(
                    field=field,
                    issue_type="invalid_participant",
                    message="participant must have either user_id or contact_id",
                ))
            elif has_user and has_contact:
                issues.append(_error(
                    field=field,
                    issue_type="invalid_participant",
                    message="participant cannot have both user_id and contact_id",
                ))

            if participant.percentage <= 0 or participant.percentage > 1:
                shares_valid = False
                issues.append(_error(
                    field=f"{field}.percentage",
                    issue_type="invalid_percentage",
                    message="participant percentage must be between 0 and 1",
                ))
            total += participant.percentage

        # Only judge the sum when every share is individually valid
        if shares_valid and abs(total - Decimal("1")) > PERCENTAGE_SUM_TOLERANCE:
            issues.append(_error(
                field="participants",
                issue_type="invalid_percentage_sum",
                message=f"participant percentages must sum to 100% (got {total:.4%})",
                suggested_fix="Adjust the shares so they add up to 100%",
            ))

        return issues

    # =========================================================================
    # PER-KIND FIELDS
    # =========================================================================

    def _validate_kind_fields(
        self,
        movement_type: MovementType,
        payer_is_member: bool,
        has_category: bool,
        has_payment_method: bool,
    ) -> list[ValidationIssue]:
        """Category and payment method rules, shared by create and update."""
        issues = []

        if movement_type == MovementType.HOUSEHOLD:
            if not has_category:
                issues.append(_error(
                    field="category",
                    issue_type="category_required",
                    message="category is required for this movement type",
                ))
            if not has_payment_method:
                issues.append(_error(
                    field="payment_method_id",
                    issue_type="payment_method_required",
                    message="payment method is required",
                ))

        elif movement_type == MovementType.SPLIT:
            if has_category:
                issues.append(_error(
                    field="category",
                    issue_type="category_not_allowed",
                    message="category not allowed for SPLIT movements",
                ))
            if payer_is_member and not has_payment_method:
                issues.append(_error(
                    field="payment_method_id",
                    issue_type="payment_method_required",
                    message="payment method is required when a member pays",
                ))

        elif movement_type == MovementType.DEBT_PAYMENT and payer_is_member:
            if not has_category:
                issues.append(_error(
                    field="category",
                    issue_type="category_required",
                    message="category is required when a member pays a debt",
                ))
            if not has_payment_method:
                issues.append(_error(
                    field="payment_method_id",
                    issue_type="payment_method_required",
                    message="payment method is required when a member pays a debt",
                ))

        return issues

    @staticmethod
    def _validate_receiver_account(
        movement_type: MovementType,
        counterparty_is_member: Optional[bool],
        has_receiver_account: bool,
    ) -> list[ValidationIssue]:
        """
        A receiver account only belongs on a DEBT_PAYMENT to a member.

        counterparty_is_member is None when the counterparty is missing or
        ambiguous; that is reported by the counterparty rules instead.
        """
        if not has_receiver_account:
            return []
        if movement_type == MovementType.DEBT_PAYMENT and counterparty_is_member is not False:
            return []
        return [_error(
            field="receiver_account_id",
            issue_type="receiver_account_not_allowed",
            message="receiver account is only allowed on a debt payment to a household member",
        )]

    # =========================================================================
    # STAGE 1
    # =========================================================================

    def _validate_structure(
        self,
        movement_input: CreateMovementInput,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Structural validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        try:
            movement_type = movement_input.movement_type()
        except ValueError:
            issues.append(_error(
                field="type",
                issue_type="invalid_movement_type",
                message=f"invalid movement type: {movement_input.type!r}",
                suggested_fix="Use HOUSEHOLD, SPLIT or DEBT_PAYMENT",
            ))
            # The per-kind table cannot be applied without a kind
            return False, issues

        if not movement_input.description:
            issues.append(_error(
                field="description",
                issue_type="missing",
                message="description is required",
            ))
        elif len(movement_input.description) > MAX_DESCRIPTION_LENGTH:
            issues.append(_error(
                field="description",
                issue_type="description_too_long",
                message=f"description cannot exceed {MAX_DESCRIPTION_LENGTH} characters",
            ))

        if movement_input.currency and not (
            len(movement_input.currency) == 3 and movement_input.currency.isalpha()
        ):
            issues.append(_error(
                field="currency",
                issue_type="invalid_currency",
                message=f"invalid currency code: {movement_input.currency!r}",
                suggested_fix="Use a three-letter ISO code such as COP",
            ))

        if movement_input.amount <= 0:
            issues.append(_error(
                field="amount",
                issue_type="invalid_amount",
                message="amount must be positive",
            ))

        if movement_input.movement_date is None:
            issues.append(_error(
                field="movement_date",
                issue_type="missing",
                message="movement_date is required",
            ))

        # Payer: exactly one of member or contact
        has_payer_user = _has(movement_input.payer_user_id)
        has_payer_contact = _has(movement_input.payer_contact_id)
        if not has_payer_user and not has_payer_contact:
            issues.append(_error(
                field="payer",
                issue_type="payer_required",
                message="exactly one payer (user or contact) is required",
            ))
        elif has_payer_user and has_payer_contact:
            issues.append(_error(
                field="payer",
                issue_type="payer_required",
                message="cannot specify both payer_user_id and payer_contact_id",
            ))

        has_counterparty_user = _has(movement_input.counterparty_user_id)
        has_counterparty_contact = _has(movement_input.counterparty_contact_id)
        has_counterparty = has_counterparty_user or has_counterparty_contact

        issues.extend(self._validate_kind_fields(
            movement_type,
            payer_is_member=has_payer_user,
            has_category=_has(movement_input.category),
            has_payment_method=_has(movement_input.payment_method_id),
        ))

        if has_counterparty_user and not has_counterparty_contact:
            counterparty_is_member = True
        elif has_counterparty_contact and not has_counterparty_user:
            counterparty_is_member = False
        else:
            counterparty_is_member = None
        issues.extend(self._validate_receiver_account(
            movement_type,
            counterparty_is_member,
            _has(movement_input.receiver_account_id),
        ))

        if movement_type == MovementType.HOUSEHOLD:
            if has_counterparty:
                issues.append(_error(
                    field="counterparty",
                    issue_type="counterparty_not_allowed",
                    message="counterparty not allowed for this movement type",
                ))
            if movement_input.participants:
                issues.append(_error(
                    field="participants",
                    issue_type="participants_not_allowed",
                    message="participants not allowed for this movement type",
                ))

        elif movement_type == MovementType.SPLIT:
            if has_counterparty:
                issues.append(_error(
                    field="counterparty",
                    issue_type="counterparty_not_allowed",
                    message="counterparty not allowed for this movement type",
                ))
            issues.extend(self._validate_participants(movement_input.participants))

        elif movement_type == MovementType.DEBT_PAYMENT:
            if not has_counterparty:
                issues.append(_error(
                    field="counterparty",
                    issue_type="counterparty_required",
                    message="counterparty is required for DEBT_PAYMENT",
                ))
            elif has_counterparty_user and has_counterparty_contact:
                issues.append(_error(
                    field="counterparty",
                    issue_type="counterparty_required",
                    message="cannot specify both counterparty_user_id and counterparty_contact_id",
                ))
            if movement_input.participants:
                issues.append(_error(
                    field="participants",
                    issue_type="participants_not_allowed",
                    message="participants not allowed for this movement type",
                ))

            # Same identity on both sides, compared within each kind
            same_member = (
                has_payer_user
                and has_counterparty_user
                and movement_input.payer_user_id == movement_input.counterparty_user_id
            )
            same_contact = (
                has_payer_contact
                and has_counterparty_contact
                and movement_input.payer_contact_id == movement_input.counterparty_contact_id
            )
            if same_member or same_contact:
                issues.append(_error(
                    field="counterparty",
                    issue_type="same_payer_counterparty",
                    message="payer and counterparty cannot be the same person",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    # =========================================================================
    # STAGE 2
    # =========================================================================

    def _validate_semantic(
        self,
        movement_date: Optional[date],
        amount: Optional[Decimal],
        movement_input: Optional[CreateMovementInput] = None,
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation.

        Checks:
        - Future dates (with tolerance)
        - Absurd amounts
        - SPLIT where every participant is the payer

        Returns warnings only.
        """
        issues = []
        today = date.today()

        max_future_date = today + timedelta(
            days=self._settings.future_date_tolerance_days
        )
        if movement_date and movement_date > max_future_date:
            issues.append(_warning(
                field="movement_date",
                issue_type="future_date",
                message=f"Movement date ({movement_date}) is in the future",
                suggested_fix="Please verify the date is correct",
            ))

        if amount and amount > self._settings.max_movement_amount:
            issues.append(_warning(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({amount:,.2f}) seems unusually high",
                suggested_fix="Please verify this amount is correct",
            ))

        if (
            movement_input is not None
            and movement_input.type == MovementType.SPLIT.value
            and movement_input.participants
        ):
            payer = movement_input.payer()
            if all(p.person() == payer for p in movement_input.participants):
                issues.append(_warning(
                    field="participants",
                    issue_type="no_debt",
                    message="Every participant is the payer, nobody will owe anything",
                ))

        return issues

    def _validate_update_against(
        self,
        update_input: UpdateMovementInput,
        existing: Movement,
    ) -> list[ValidationIssue]:
        """Per-kind rules on the movement as it will look after the update."""
        issues = []

        def merged(name: str) -> Optional[str]:
            value = getattr(update_input, name)
            return getattr(existing, name) if value is None else value

        issues.extend(self._validate_kind_fields(
            existing.type,
            payer_is_member=existing.payer.is_member,
            has_category=_has(merged("category")),
            has_payment_method=_has(merged("payment_method_id")),
        ))

        pays_member = (
            existing.type == MovementType.DEBT_PAYMENT
            and existing.counterparty is not None
            and existing.counterparty.is_member
        )
        has_receiver_account = _has(merged("receiver_account_id"))
        issues.extend(self._validate_receiver_account(
            existing.type,
            existing.counterparty.is_member if existing.counterparty else None,
            has_receiver_account,
        ))
        if pays_member and not has_receiver_account:
            issues.append(_error(
                field="receiver_account_id",
                issue_type="receiver_account_required",
                message="receiver account is required when paying a household member",
            ))

        if update_input.participants is not None:
            if existing.type == MovementType.SPLIT:
                issues.extend(self._validate_participants(update_input.participants))
            else:
                issues.append(_error(
                    field="participants",
                    issue_type="participants_not_allowed",
                    message="participants not allowed for this movement type",
                ))

        return issues

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def validate_create(
        self,
        movement_input: CreateMovementInput,
    ) -> ValidationResult:
        """
        Run full two-stage validation on a create request.

        Args:
            movement_input: The unverified input

        Returns:
            ValidationResult with all issues found
        """
        structural_valid, issues = self._validate_structure(movement_input)

        # Only run stage 2 if stage 1 passes
        if structural_valid:
            issues.extend(self._validate_semantic(
                movement_input.movement_date,
                movement_input.amount,
                movement_input,
            ))

        return ValidationResult(
            structural_valid=structural_valid,
            issues=issues,
        )

    def validate_update(
        self,
        update_input: UpdateMovementInput,
        existing: Optional[Movement] = None,
    ) -> ValidationResult:
        """
        Validate the fields present in an update request.

        Kind, payer and counterparty are immutable. When the existing
        movement is known, the updated category, payment method, receiver
        account and participants are checked against its kind, so the
        result obeys the same per-kind rules as a create. An empty string
        clears an optional field.
        """
        issues = []

        if update_input.amount is not None and update_input.amount <= 0:
            issues.append(_error(
                field="amount",
                issue_type="invalid_amount",
                message="amount must be positive",
            ))

        if update_input.description is not None and not update_input.description:
            issues.append(_error(
                field="description",
                issue_type="missing",
                message="description cannot be empty",
            ))
        elif (
            update_input.description is not None
            and len(update_input.description) > MAX_DESCRIPTION_LENGTH
        ):
            issues.append(_error(
                field="description",
                issue_type="description_too_long",
                message=f"description cannot exceed {MAX_DESCRIPTION_LENGTH} characters",
            ))

        if existing is not None:
            issues.extend(self._validate_update_against(update_input, existing))

        structural_valid = not any(issue.severity == "error" for issue in issues)

        if structural_valid:
            issues.extend(self._validate_semantic(
                update_input.movement_date,
                update_input.amount,
            ))

        return ValidationResult(
            structural_valid=structural_valid,
            issues=issues,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show to non-technical users.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed!"

        lines = []

        if result.has_errors:
            lines.append("❌ The movement could not be saved:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
