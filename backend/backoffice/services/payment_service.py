# Overview: Validates a tendered payment set against a sale total and classifies the outcome.

"""
Payment Allocator

WHY: A sale may be paid with several tenders. Whatever was collected, the
difference from the target must land somewhere: nowhere (exact), as customer
debt (short), or as customer advance (over). Without a customer there is
nowhere to park a difference, so only exact payment is accepted.

All amounts are integer cents, so "exact" needs no tolerance.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import InvalidPaymentSet


# =============================================================================
# TENDER TYPES (CONSTANTS)
# =============================================================================

TENDER_CASH = "CASH"
TENDER_CARD = "CARD"
TENDER_MOBILE = "MOBILE"
TENDER_BANK_TRANSFER = "BANK_TRANSFER"
TENDER_STORE_CREDIT = "STORE_CREDIT"

VALID_TENDER_TYPES = [
    TENDER_CASH,
    TENDER_CARD,
    TENDER_MOBILE,
    TENDER_BANK_TRANSFER,
    TENDER_STORE_CREDIT,
]


# =============================================================================
# OUTCOMES AND PAYMENT STATUS (CONSTANTS)
# =============================================================================

OUTCOME_EXACT = "EXACT"
OUTCOME_CREDIT = "CREDIT"  # underpaid, customer owes the balance
OUTCOME_ADVANCE = "ADVANCE"  # overpaid, customer holds the surplus

PAYMENT_STATUS_PAID = "PAID"
PAYMENT_STATUS_PARTIAL = "PARTIAL"
PAYMENT_STATUS_OVERPAID = "OVERPAID"

_STATUS_BY_OUTCOME = {
    OUTCOME_EXACT: PAYMENT_STATUS_PAID,
    OUTCOME_CREDIT: PAYMENT_STATUS_PARTIAL,
    OUTCOME_ADVANCE: PAYMENT_STATUS_OVERPAID,
}


@dataclass(frozen=True)
class TenderedPayment:
    method: str
    amount_cents: int
    reference: str | None = None


@dataclass(frozen=True)
class Allocation:
    target_cents: int
    collected_cents: int
    balance_cents: int  # > 0 debt, < 0 advance
    outcome: str

    @property
    def payment_status(self) -> str:
        return _STATUS_BY_OUTCOME[self.outcome]


def store_credit_total(payments: list[TenderedPayment]) -> int:
    return sum(p.amount_cents for p in payments if p.method == TENDER_STORE_CREDIT)


def allocate_payments(
    target_cents: int,
    payments: list[TenderedPayment],
    *,
    has_customer: bool,
) -> Allocation:
    """
    Check tendered payments against the target and derive the balance.

    Args:
        target_cents: payable after discounts plus tax
        payments: tenders in request order
        has_customer: whether a customer is attached to the sale

    Returns:
        Allocation with collected + balance == target

    Raises:
        InvalidPaymentSet: bad tender, empty payment list for a non-zero total,
            store credit without a customer, or any mismatch without a customer
    """
    for index, payment in enumerate(payments):
        if payment.method not in VALID_TENDER_TYPES:
            raise InvalidPaymentSet(
                f"Invalid payment method: {payment.method}. Must be one of {VALID_TENDER_TYPES}",
                details={"payment": index, "method": payment.method},
            )
        if payment.amount_cents <= 0:
            raise InvalidPaymentSet(
                "Payment amount must be positive",
                details={"payment": index, "amount_cents": payment.amount_cents},
            )

    if not payments and target_cents > 0:
        raise InvalidPaymentSet("At least one payment is required", details={"target_cents": target_cents})

    if store_credit_total(payments) and not has_customer:
        raise InvalidPaymentSet("Store credit payments require a customer")

    collected = sum(p.amount_cents for p in payments)
    balance = target_cents - collected

    if balance == 0:
        outcome = OUTCOME_EXACT
    elif balance > 0:
        outcome = OUTCOME_CREDIT
    else:
        outcome = OUTCOME_ADVANCE

    if outcome != OUTCOME_EXACT and not has_customer:
        what = "Underpayment" if outcome == OUTCOME_CREDIT else "Overpayment"
        raise InvalidPaymentSet(
            f"{what} requires a customer to carry the balance",
            details={
                "target_cents": target_cents,
                "collected_cents": collected,
                "balance_cents": balance,
            },
        )

    return Allocation(
        target_cents=target_cents,
        collected_cents=collected,
        balance_cents=balance,
        outcome=outcome,
    )
