# Overview: Customer balance ledger; running debt/advance with netting and exact reversal.

"""
Customer Balance Ledger

WHY: A sale paid short leaves the customer owing; a sale paid over leaves the
shop holding money for the customer. Both are tracked on the Customer row and
journaled in CustomerTransaction.

NETTING:
Debt and advance are never both positive. An incoming debt is first taken out
of any advance, and only the remainder becomes debt; an incoming advance first
pays down any debt. Because netting is symmetric, reverse(x) is apply(-x) and
restores the previous (debt, advance) pair exactly.

Mutations flush but do not commit; settlement owns the transaction.
"""

from __future__ import annotations

from ..errors import InvalidPaymentSet, ValidationError
from ..extensions import db
from ..models import Customer, CustomerTransaction
from ..time_utils import utcnow
from .concurrency import lock_for_update


TXN_DEBT_INC = "DEBT_INC"
TXN_DEBT_DEC = "DEBT_DEC"
TXN_ADVANCE_INC = "ADVANCE_INC"
TXN_ADVANCE_DEC = "ADVANCE_DEC"


def get_customer(customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if customer is None:
        raise ValidationError(f"Customer {customer_id} not found", details={"customer_id": customer_id})
    return customer


def find_customer(customer_id: int | None = None, phone: str | None = None) -> Customer | None:
    """
    Look up the customer a sale refers to, without creating one.

    By id when given (unknown id is an error), else by phone.
    """
    if customer_id is not None:
        return get_customer(customer_id)
    phone = (phone or "").strip()
    if phone:
        return db.session.query(Customer).filter_by(phone=phone).first()
    return None


def resolve_customer(
    customer_id: int | None = None,
    name: str | None = None,
    phone: str | None = None,
) -> Customer | None:
    """
    Find the sale's customer, creating one from name + phone when no match exists.

    Returns None when the request identifies no customer at all.
    """
    customer = find_customer(customer_id, phone)
    if customer is not None:
        return customer

    name = (name or "").strip()
    phone = (phone or "").strip()
    if not (name and phone):
        return None

    customer = Customer(
        name=name,
        phone=phone,
        total_debt_cents=0,
        total_advance_cents=0,
        total_purchases_cents=0,
        total_paid_cents=0,
    )
    db.session.add(customer)
    db.session.flush()
    return customer


def _locked_customer(customer_id: int) -> Customer:
    customer = lock_for_update(
        db.session.query(Customer).filter_by(id=customer_id).populate_existing()
    ).first()
    if customer is None:
        raise ValidationError(f"Customer {customer_id} not found", details={"customer_id": customer_id})
    return customer


def _journal(
    customer: Customer,
    transaction_type: str,
    amount_cents: int,
    sale_ref: str | None,
    description: str | None,
) -> CustomerTransaction:
    txn = CustomerTransaction(
        customer_id=customer.id,
        transaction_type=transaction_type,
        amount_cents=amount_cents,
        sale_ref=sale_ref,
        description=description,
        occurred_at=utcnow(),
    )
    db.session.add(txn)
    return txn


def apply_balance_delta(
    customer_id: int,
    balance_cents: int,
    *,
    sale_ref: str | None = None,
    description: str | None = None,
) -> list[CustomerTransaction]:
    """
    Apply a signed balance to the customer.

    balance_cents > 0 raises debt (netted against advance first);
    balance_cents < 0 raises advance (netted against debt first).

    Returns:
        The journal rows written (empty for a zero delta)
    """
    if balance_cents == 0:
        return []

    customer = _locked_customer(customer_id)
    debt, advance = customer.balance_snapshot()
    txns: list[CustomerTransaction] = []

    if balance_cents > 0:
        from_advance = min(advance, balance_cents)
        to_debt = balance_cents - from_advance
        if from_advance:
            advance -= from_advance
            txns.append(_journal(customer, TXN_ADVANCE_DEC, from_advance, sale_ref, description or "Balance settled from advance"))
        if to_debt:
            debt += to_debt
            txns.append(_journal(customer, TXN_DEBT_INC, to_debt, sale_ref, description or "Credit sale balance"))
    else:
        incoming = -balance_cents
        to_debt = min(debt, incoming)
        to_advance = incoming - to_debt
        if to_debt:
            debt -= to_debt
            txns.append(_journal(customer, TXN_DEBT_DEC, to_debt, sale_ref, description or "Overpayment applied to debt"))
        if to_advance:
            advance += to_advance
            txns.append(_journal(customer, TXN_ADVANCE_INC, to_advance, sale_ref, description or "Overpayment held as advance"))

    customer.total_debt_cents = debt
    customer.total_advance_cents = advance
    db.session.flush()
    return txns


def reverse(
    customer_id: int,
    balance_cents: int,
    *,
    sale_ref: str | None = None,
) -> list[CustomerTransaction]:
    """Undo apply_balance_delta(customer_id, balance_cents) exactly."""
    return apply_balance_delta(
        customer_id,
        -balance_cents,
        sale_ref=sale_ref,
        description=f"Reversal for sale {sale_ref}" if sale_ref else "Balance reversal",
    )


def redeem_store_credit(
    customer_id: int,
    amount_cents: int,
    *,
    sale_ref: str | None = None,
) -> CustomerTransaction | None:
    """
    Spend the customer's advance as a STORE_CREDIT tender.

    Raises:
        InvalidPaymentSet: the advance does not cover the amount
    """
    if amount_cents <= 0:
        return None

    customer = _locked_customer(customer_id)
    if (customer.total_advance_cents or 0) < amount_cents:
        raise InvalidPaymentSet(
            "Store credit exceeds customer advance",
            details={
                "customer_id": customer_id,
                "requested_cents": amount_cents,
                "available_cents": customer.total_advance_cents or 0,
            },
        )

    customer.total_advance_cents -= amount_cents
    txn = _journal(customer, TXN_ADVANCE_DEC, amount_cents, sale_ref, "Store credit redeemed")
    db.session.flush()
    return txn


def reverse_store_credit(
    customer_id: int,
    amount_cents: int,
    *,
    sale_ref: str | None = None,
) -> CustomerTransaction | None:
    if amount_cents <= 0:
        return None

    customer = _locked_customer(customer_id)
    customer.total_advance_cents += amount_cents
    txn = _journal(customer, TXN_ADVANCE_INC, amount_cents, sale_ref, "Store credit redemption reversed")
    db.session.flush()
    return txn


def record_purchase(customer_id: int, total_cents: int, paid_cents: int) -> Customer:
    """Roll a committed sale into the customer's purchase aggregates."""
    customer = _locked_customer(customer_id)
    customer.total_purchases_cents = (customer.total_purchases_cents or 0) + total_cents
    customer.total_paid_cents = (customer.total_paid_cents or 0) + paid_cents
    db.session.flush()
    return customer


def get_recent_transactions(customer_id: int, limit: int = 20) -> list[CustomerTransaction]:
    return (
        db.session.query(CustomerTransaction)
        .filter_by(customer_id=customer_id)
        .order_by(CustomerTransaction.occurred_at.desc(), CustomerTransaction.id.desc())
        .limit(limit)
        .all()
    )
