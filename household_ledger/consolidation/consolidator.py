"""
Debt Consolidation

Turns a household's movements into net balances between pairs of people:
who owes whom, how much, and which movements justify it.

HOW BALANCES ARE BUILT:
1. Every SPLIT share is a debt from the participant to the payer.
2. Every DEBT_PAYMENT reduces what the payer owes the counterparty. A
   payment larger than the debt (or with no debt at all) flips the
   direction: the counterparty now owes the payer.
3. Both directions of each pair are netted once at the end.
4. HOUSEHOLD movements never create debts.

DESIGN DECISION: Consolidation never fails on bad data. A structurally
incomplete movement (a SPLIT without participants, a DEBT_PAYMENT without
a counterparty, a participant without a positive share) is skipped and
logged. One corrupt row must not hide every other balance.

IMPORTANT: Money is Decimal end to end. The only tolerance is
BALANCE_TOLERANCE, used to decide when a pair counts as settled.
Output order is deterministic regardless of input order.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from household_ledger.models.debt import (
    DebtBalance,
    DebtConsolidation,
    DebtMovementDetail,
    DebtSummary,
)
from household_ledger.models.identity import PersonRef
from household_ledger.models.movement import Movement, MovementType


logger = structlog.get_logger()

# Net amounts within this distance of zero count as settled
BALANCE_TOLERANCE = Decimal("0.01")

ZERO = Decimal("0")

DebtKey = tuple[PersonRef, PersonRef]


def _detail_sort_key(detail: DebtMovementDetail) -> tuple:
    return (detail.movement_date, str(detail.movement_id), detail.amount)


class DebtConsolidator:
    """
    Computes net pairwise balances from a batch of movements.

    Pure: no I/O, and the input movements are never modified.
    """

    def __init__(
        self,
        default_currency: str = "COP",
        tolerance: Decimal = BALANCE_TOLERANCE,
    ):
        self._default_currency = default_currency
        self._tolerance = tolerance

    # =========================================================================
    # ACCUMULATION
    # =========================================================================

    def _accumulate(
        self,
        movements: Iterable[Movement],
    ) -> tuple[
        dict[DebtKey, Decimal],
        dict[DebtKey, list[DebtMovementDetail]],
        dict[PersonRef, str],
        set[str],
    ]:
        """
        Single pass over the movements.

        Returns: (balances, provenance, names, currencies). Keys are
        (debtor, creditor).
        """
        balances: dict[DebtKey, Decimal] = defaultdict(lambda: ZERO)
        provenance: dict[DebtKey, list[DebtMovementDetail]] = defaultdict(list)
        names: dict[PersonRef, str] = {}
        currencies: set[str] = set()

        def remember(person: PersonRef, name: Optional[str]) -> None:
            if name:
                names[person] = name

        for movement in movements:
            if movement.type == MovementType.SPLIT:
                if not movement.participants:
                    logger.warning(
                        "consolidation_skipped_movement",
                        movement_id=str(movement.id),
                        reason="split without participants",
                    )
                    continue

                currencies.add(movement.currency)
                remember(movement.payer, movement.payer_name)

                for participant in movement.participants:
                    if participant.percentage <= 0:
                        logger.warning(
                            "consolidation_skipped_participant",
                            movement_id=str(movement.id),
                            participant_id=str(participant.id),
                            reason="non-positive share",
                        )
                        continue

                    # The payer does not owe themselves
                    if participant.person == movement.payer:
                        continue

                    remember(participant.person, participant.name)
                    share = movement.amount * participant.percentage
                    key = (participant.person, movement.payer)
                    balances[key] += share
                    provenance[key].append(DebtMovementDetail(
                        movement_id=movement.id,
                        description=movement.description,
                        amount=share,
                        movement_date=movement.movement_date,
                        type=movement.type,
                        payer=movement.payer,
                        payer_name=movement.payer_name,
                        counterparty=participant.person,
                    ))

            elif movement.type == MovementType.DEBT_PAYMENT:
                if movement.counterparty is None:
                    logger.warning(
                        "consolidation_skipped_movement",
                        movement_id=str(movement.id),
                        reason="debt payment without counterparty",
                    )
                    continue

                currencies.add(movement.currency)
                remember(movement.payer, movement.payer_name)
                remember(movement.counterparty, movement.counterparty_name)

                # Paying reduces what the payer owes the counterparty
                key = (movement.payer, movement.counterparty)
                balances[key] -= movement.amount
                provenance[key].append(DebtMovementDetail(
                    movement_id=movement.id,
                    description=movement.description,
                    amount=-movement.amount,
                    movement_date=movement.movement_date,
                    type=movement.type,
                    payer=movement.payer,
                    payer_name=movement.payer_name,
                    counterparty=movement.counterparty,
                ))

        return balances, provenance, names, currencies

    # =========================================================================
    # NETTING
    # =========================================================================

    def _net(
        self,
        balances: dict[DebtKey, Decimal],
        provenance: dict[DebtKey, list[DebtMovementDetail]],
        names: dict[PersonRef, str],
        currency: str,
    ) -> list[DebtBalance]:
        """Net both directions of every pair exactly once."""
        pairs = {
            tuple(sorted(key, key=PersonRef.sort_key))
            for key in balances
        }

        results = []
        for a, b in pairs:
            net = balances.get((a, b), ZERO) - balances.get((b, a), ZERO)
            forward = provenance.get((a, b), [])
            backward = provenance.get((b, a), [])
            details = sorted(forward + backward, key=_detail_sort_key)

            if net > self._tolerance:
                debtor, creditor, amount = a, b, net
            elif net < -self._tolerance:
                debtor, creditor, amount = b, a, -net
            elif details:
                # Settled within the period. The debtor of record is the
                # side whose shares increased the debt the most.
                increased_a = sum((d.amount for d in forward if d.amount > 0), ZERO)
                increased_b = sum((d.amount for d in backward if d.amount > 0), ZERO)
                if increased_a >= increased_b:
                    debtor, creditor = a, b
                else:
                    debtor, creditor = b, a
                amount = ZERO
            else:
                continue

            results.append(DebtBalance(
                debtor=debtor,
                debtor_name=names.get(debtor),
                creditor=creditor,
                creditor_name=names.get(creditor),
                amount=amount,
                currency=currency,
                movements=details,
            ))

        results.sort(key=lambda bal: (bal.debtor.sort_key(), bal.creditor.sort_key()))
        return results

    @staticmethod
    def _summarize(
        balances: list[DebtBalance],
        member_ids: Iterable[str],
    ) -> DebtSummary:
        """
        Split balances into debts with people outside the household.

        Balances between two members, or between two outsiders, are
        internal to one side and not counted.
        """
        members = set(member_ids)

        def is_member(person: PersonRef) -> bool:
            return person.is_member and person.id in members

        summary = DebtSummary()
        for balance in balances:
            debtor_is_member = is_member(balance.debtor)
            creditor_is_member = is_member(balance.creditor)
            if debtor_is_member and not creditor_is_member:
                summary.we_owe += balance.amount
            elif creditor_is_member and not debtor_is_member:
                summary.they_owe_us += balance.amount
        return summary

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def consolidate(
        self,
        movements: Iterable[Movement],
        member_ids: Optional[Iterable[str]] = None,
        month: Optional[str] = None,
    ) -> DebtConsolidation:
        """
        Consolidate movements into net balances.

        Args:
            movements: Persisted movements, in any order
            member_ids: Current household member user IDs. When given,
                        a household-vs-outsiders summary is included.
            month: Echoed back on the result (YYYY-MM)

        Returns:
            DebtConsolidation with balances sorted by (debtor, creditor)
        """
        balances, provenance, names, currencies = self._accumulate(movements)

        if len(currencies) > 1:
            logger.warning(
                "consolidation_mixed_currencies",
                currencies=sorted(currencies),
                reported_as=self._default_currency,
            )
        currency = (
            next(iter(currencies)) if len(currencies) == 1
            else self._default_currency
        )

        results = self._net(balances, provenance, names, currency)

        summary = None
        if member_ids is not None:
            summary = self._summarize(results, member_ids)

        return DebtConsolidation(
            balances=results,
            summary=summary,
            month=month,
        )


def consolidate_debts(
    movements: Iterable[Movement],
    member_ids: Optional[Iterable[str]] = None,
    month: Optional[str] = None,
    default_currency: str = "COP",
) -> DebtConsolidation:
    """Convenience wrapper around DebtConsolidator.consolidate."""
    return DebtConsolidator(default_currency=default_currency).consolidate(
        movements,
        member_ids=member_ids,
        month=month,
    )
