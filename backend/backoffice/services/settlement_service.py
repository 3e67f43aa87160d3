# Overview: Sale settlement; turns a cart + payments into one committed Sale or nothing at all.

"""
Sale Settlement

WHY: Totals, payments, stock and customer balances must move together. A
sale that decremented stock but failed to record the customer's debt (or the
reverse) is a silent, compounding error, so settlement either commits every
effect with the Sale row or leaves no trace.

PROTOCOL:
1. Price the cart (discount calculator) and add tax to get the target.
2. Allocate payments against the target. Failure here touches nothing.
3. Under per-key locks, decrement stock item by item in request order. On the
   first failure restore what was taken, newest first.
4. Apply customer effects: store credit redemption, then the balance delta.
   On failure undo them and restore stock.
5. Persist the Sale with items and payments and commit. A failed commit rolls
   the whole DB transaction back, which undoes steps 3-4 with it.

STATES:
    BUILDING -> STOCK_RESERVED -> SETTLED
    BUILDING -> FAILED
    STOCK_RESERVED -> ROLLED_BACK -> FAILED

LOCKING:
Stock rows are serialized per (product, size) and customers per id/phone via
the app's KeyedLockRegistry, acquired in sorted order with a timeout. Row
locks (SELECT ... FOR UPDATE, or BEGIN IMMEDIATE on SQLite) extend the same
guarantee across processes. Database lock contention is retried from scratch
and surfaces as SettlementTimeout when it persists.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import PersistenceFailure, SettlementError, SettlementTimeout, ValidationError
from ..extensions import db
from ..models import Payment, Product, Sale, SaleItem
from ..money import percent_of
from ..time_utils import utcnow
from ..validation import SaleRequest
from . import customer_service, inventory_service
from .concurrency import begin_immediate, get_lock_registry, run_with_retry
from .discount_service import DISCOUNT_AMOUNT, DiscountResult, LineInput, calculate_totals
from .payment_service import Allocation, allocate_payments, store_credit_total


STATE_BUILDING = "BUILDING"
STATE_STOCK_RESERVED = "STOCK_RESERVED"
STATE_SETTLED = "SETTLED"
STATE_ROLLED_BACK = "ROLLED_BACK"
STATE_FAILED = "FAILED"

_TRANSITIONS = {
    STATE_BUILDING: {STATE_STOCK_RESERVED, STATE_FAILED},
    STATE_STOCK_RESERVED: {STATE_SETTLED, STATE_ROLLED_BACK},
    STATE_ROLLED_BACK: {STATE_FAILED},
    STATE_SETTLED: set(),
    STATE_FAILED: set(),
}

SALE_STATUS_COMMITTED = "COMMITTED"


@dataclass
class Reservation:
    product_id: int
    size_key: str
    quantity: int


@dataclass
class SettlementAttempt:
    """Working state of one settlement; discarded whether it succeeds or not."""
    request: SaleRequest
    sale_number: str
    state: str = STATE_BUILDING
    products: dict[int, Product] = field(default_factory=dict)
    size_keys: list[str] = field(default_factory=list)
    totals: DiscountResult | None = None
    tax_cents: int = 0
    allocation: Allocation | None = None
    customer_id: int | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    reserved: list[Reservation] = field(default_factory=list)
    store_credit_redeemed_cents: int = 0
    balance_applied_cents: int = 0

    def transition(self, new_state: str) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal settlement transition {self.state} -> {new_state}")
        self.state = new_state

    @property
    def target_cents(self) -> int:
        return self.totals.payable_before_tax_cents + self.tax_cents

    def lock_keys(self, customer_phone: str | None) -> list[tuple]:
        keys: list[tuple] = [
            ("stock", item.product_id, size_key)
            for item, size_key in zip(self.request.items, self.size_keys)
        ]
        if self.customer_id is not None:
            keys.append(("customer", self.customer_id))
        if customer_phone:
            keys.append(("customer-phone", customer_phone))
        return keys


def next_sale_number() -> str:
    prefix = current_app.config.get("SALE_NUMBER_PREFIX", "SALE")
    return f"{prefix}-{utcnow():%Y%m%d%H%M%S}-{uuid.uuid4().hex[:6].upper()}"


def compute_tax(payable_cents: int, tax_cents: int | None = None) -> int:
    """Flat tax: the request's amount when given, else the configured rate."""
    if tax_cents is not None:
        return tax_cents
    rate_bps = int(current_app.config.get("SALE_TAX_RATE_BPS", 0) or 0)
    if rate_bps <= 0:
        return 0
    return percent_of(payable_cents, Decimal(rate_bps) / Decimal(100))


# =============================================================================
# STEPS
# =============================================================================

def _price_cart(attempt: SettlementAttempt) -> None:
    """Step 1: load products, resolve stock keys, compute totals and tax."""
    request = attempt.request
    if not request.items:
        raise ValidationError("At least one item is required", details={"field": "items"})

    for index, item in enumerate(request.items):
        product = attempt.products.get(item.product_id)
        if product is None:
            product = inventory_service.get_product(item.product_id)
            attempt.products[item.product_id] = product
        if not product.is_active:
            raise ValidationError(
                f"Product {product.name} is inactive",
                details={"line": index, "product_id": product.id},
            )
        attempt.size_keys.append(inventory_service.resolve_size_key(product, item.size))

    attempt.totals = calculate_totals(
        [
            LineInput(unit_price_cents=item.unit_price_cents, quantity=item.quantity, discount=item.discount)
            for item in request.items
        ],
        request.bill_discount,
    )
    attempt.tax_cents = compute_tax(attempt.totals.payable_before_tax_cents, request.tax_cents)


def _allocate(attempt: SettlementAttempt) -> None:
    """Step 2: find the customer (read-only) and check payments against the target."""
    request = attempt.request
    customer = customer_service.find_customer(request.customer_id, request.customer_phone)
    if customer is not None:
        attempt.customer_id = customer.id
    has_customer = customer is not None or request.can_create_customer

    attempt.allocation = allocate_payments(
        attempt.target_cents,
        request.payments,
        has_customer=has_customer,
    )


def _reserve_stock(attempt: SettlementAttempt) -> None:
    """Step 3: decrement stock in request order."""
    for item, size_key in zip(attempt.request.items, attempt.size_keys):
        inventory_service.reserve_and_decrement(
            item.product_id,
            size_key,
            item.quantity,
            sale_ref=attempt.sale_number,
        )
        attempt.reserved.append(Reservation(item.product_id, size_key, item.quantity))
        if attempt.state == STATE_BUILDING:
            attempt.transition(STATE_STOCK_RESERVED)


def _apply_customer_effects(attempt: SettlementAttempt) -> None:
    """Step 4: redeem store credit, then carry the balance as debt or advance."""
    request = attempt.request
    allocation = attempt.allocation

    customer = customer_service.resolve_customer(
        request.customer_id,
        request.customer_name,
        request.customer_phone,
    )
    if customer is None:
        if allocation.balance_cents or store_credit_total(request.payments):
            # Only reachable if the customer vanished between allocation and locking
            raise ValidationError("Customer not found for balance", details={"customer_phone": request.customer_phone})
        return
    attempt.customer_id = customer.id
    attempt.customer_name = customer.name
    attempt.customer_phone = customer.phone

    store_credit = store_credit_total(request.payments)
    if store_credit:
        customer_service.redeem_store_credit(customer.id, store_credit, sale_ref=attempt.sale_number)
        attempt.store_credit_redeemed_cents = store_credit

    if allocation.balance_cents:
        customer_service.apply_balance_delta(
            customer.id,
            allocation.balance_cents,
            sale_ref=attempt.sale_number,
            description=f"Sale {attempt.sale_number}",
        )
        attempt.balance_applied_cents = allocation.balance_cents

    # Money applied to this sale; an overpayment surplus is advance, not payment
    applied = allocation.collected_cents - max(0, -allocation.balance_cents)
    customer_service.record_purchase(customer.id, attempt.target_cents, applied)


def _build_sale(attempt: SettlementAttempt) -> Sale:
    """Step 5 payload: the Sale aggregate with its items and payments."""
    request = attempt.request
    totals = attempt.totals
    allocation = attempt.allocation
    now = utcnow()

    sale = Sale(
        sale_number=attempt.sale_number,
        status=SALE_STATUS_COMMITTED,
        payment_status=allocation.payment_status,
        subtotal_cents=totals.subtotal_cents,
        item_discount_cents=totals.item_discount_total_cents,
        bill_discount_type=request.bill_discount.type,
        bill_discount_value=_discount_value_for_storage(request.bill_discount),
        bill_discount_cents=totals.bill_discount_applied_cents,
        tax_cents=attempt.tax_cents,
        total_cents=attempt.target_cents,
        collected_cents=allocation.collected_cents,
        balance_cents=allocation.balance_cents,
        customer_id=attempt.customer_id,
        customer_name=attempt.customer_name or request.customer_name,
        customer_phone=attempt.customer_phone or request.customer_phone,
        notes=request.notes,
        created_at=now,
        committed_at=now,
    )

    for line_number, (item, size_key, line) in enumerate(
        zip(request.items, attempt.size_keys, totals.lines), start=1
    ):
        sale.items.append(SaleItem(
            line_number=line_number,
            product_id=item.product_id,
            size=size_key,
            quantity=item.quantity,
            unit_price_cents=item.unit_price_cents,
            discount_type=item.discount.type,
            discount_value=_discount_value_for_storage(item.discount),
            discount_cents=line.discount_cents,
            gross_cents=line.gross_cents,
            subtotal_cents=line.net_cents,
        ))

    for payment in request.payments:
        sale.payments.append(Payment(
            method=payment.method,
            amount_cents=payment.amount_cents,
            reference=payment.reference,
            created_at=now,
        ))

    return sale


def _discount_value_for_storage(discount) -> Decimal | None:
    # PERCENTAGE stays a percent; AMOUNT is stored in currency units like the request
    if discount.is_empty:
        return None
    if discount.type == DISCOUNT_AMOUNT:
        return Decimal(int(discount.value)) / Decimal(100)
    return Decimal(discount.value)


# =============================================================================
# COMPENSATION
# =============================================================================

def _compensate(attempt: SettlementAttempt) -> None:
    """Undo customer effects, then restore stock newest-first."""
    if attempt.customer_id is not None:
        if attempt.balance_applied_cents:
            customer_service.reverse(attempt.customer_id, attempt.balance_applied_cents, sale_ref=attempt.sale_number)
            attempt.balance_applied_cents = 0
        if attempt.store_credit_redeemed_cents:
            customer_service.reverse_store_credit(
                attempt.customer_id, attempt.store_credit_redeemed_cents, sale_ref=attempt.sale_number
            )
            attempt.store_credit_redeemed_cents = 0

    while attempt.reserved:
        reservation = attempt.reserved.pop()
        inventory_service.restore(
            reservation.product_id,
            reservation.size_key,
            reservation.quantity,
            sale_ref=attempt.sale_number,
        )


def _fail(attempt: SettlementAttempt, exc: SettlementError) -> SettlementError:
    if attempt.state == STATE_STOCK_RESERVED:
        _compensate(attempt)
        attempt.transition(STATE_ROLLED_BACK)
    # Compensation happened in-transaction; the rollback discards its journal rows too
    db.session.rollback()
    attempt.transition(STATE_FAILED)
    current_app.logger.warning(
        "Settlement %s failed: %s (%s)", attempt.sale_number, exc.message, exc.code
    )
    return exc


# =============================================================================
# ENTRY POINT
# =============================================================================

def _settle_once(request: SaleRequest) -> Sale:
    attempt = SettlementAttempt(request=request, sale_number=next_sale_number())
    config = current_app.config

    try:
        _price_cart(attempt)
        _allocate(attempt)
    except SettlementError as exc:
        raise _fail(attempt, exc)

    registry = get_lock_registry()
    try:
        with registry.hold(attempt.lock_keys(request.customer_phone), config["SETTLEMENT_LOCK_TIMEOUT_SECONDS"]):
            # Reads above ran outside any write transaction; start one now
            db.session.rollback()
            begin_immediate()

            try:
                _reserve_stock(attempt)
                _apply_customer_effects(attempt)
            except SettlementError as exc:
                raise _fail(attempt, exc)

            try:
                sale = _build_sale(attempt)
                db.session.add(sale)
                db.session.commit()
            except (OperationalError, StaleDataError):
                raise
            except SQLAlchemyError as exc:
                db.session.rollback()
                attempt.transition(STATE_ROLLED_BACK)
                attempt.transition(STATE_FAILED)
                current_app.logger.error("Settlement %s could not be persisted: %s", attempt.sale_number, exc)
                raise PersistenceFailure(
                    "Sale could not be saved; no stock or balance changes were kept",
                    details={"sale_number": attempt.sale_number},
                ) from exc
    except SettlementTimeout as exc:
        if attempt.state != STATE_FAILED:
            raise _fail(attempt, exc)
        raise

    attempt.transition(STATE_SETTLED)
    current_app.logger.info(
        "Sale %s committed: total=%s collected=%s balance=%s customer=%s",
        sale.sale_number,
        sale.total_cents,
        sale.collected_cents,
        sale.balance_cents,
        sale.customer_id,
    )
    return sale


def settle_sale(request: SaleRequest) -> Sale:
    """
    Settle a sale atomically.

    Returns:
        The committed Sale (items and payments attached)

    Raises:
        ValidationError, InvalidPaymentSet, InsufficientStock, UnknownSize:
            business rule failures; resubmitting unchanged will fail again
        SettlementTimeout: lock contention; safe to resubmit
        PersistenceFailure: the final commit failed; nothing was kept
    """
    attempts = int(current_app.config.get("SETTLEMENT_RETRY_ATTEMPTS", 3))
    try:
        return run_with_retry(lambda: _settle_once(request), attempts=attempts)
    except (OperationalError, StaleDataError) as exc:
        db.session.rollback()
        current_app.logger.warning("Settlement gave up after %s attempts: %s", attempts, exc)
        raise SettlementTimeout(
            "Stock or customer records are busy; resubmit the sale",
            details={"attempts": attempts},
        ) from exc


def get_sale(sale_id: int) -> Sale | None:
    return db.session.query(Sale).filter_by(id=sale_id).first()


def list_sales(
    *,
    status: str | None = None,
    start=None,
    end=None,
    page: int = 1,
    limit: int = 100,
) -> tuple[list[Sale], int]:
    """Committed sales, newest first, with the unpaginated count."""
    query = db.session.query(Sale)
    if status:
        query = query.filter(Sale.status == status)
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    if end is not None:
        query = query.filter(Sale.created_at <= end)

    total = query.count()
    sales = (
        query.order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return sales, total
