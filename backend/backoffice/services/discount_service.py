# Overview: Pure discount arithmetic for sale lines and the whole bill.

"""
Discount Calculator

All amounts are integer cents. PERCENTAGE values are percents in [0, 100];
AMOUNT values are cents. No database access, no side effects.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..errors import ValidationError
from ..money import percent_of


DISCOUNT_PERCENTAGE = "PERCENTAGE"
DISCOUNT_AMOUNT = "AMOUNT"

VALID_DISCOUNT_TYPES = [DISCOUNT_PERCENTAGE, DISCOUNT_AMOUNT]


@dataclass(frozen=True)
class Discount:
    type: str | None = None
    value: Decimal | int = 0

    @property
    def is_empty(self) -> bool:
        return self.type is None or not self.value


@dataclass(frozen=True)
class LineInput:
    unit_price_cents: int
    quantity: int
    discount: Discount = Discount()


@dataclass(frozen=True)
class LineTotals:
    gross_cents: int
    discount_cents: int
    net_cents: int


@dataclass(frozen=True)
class DiscountResult:
    lines: list[LineTotals]
    subtotal_cents: int
    item_discount_total_cents: int
    bill_discount_applied_cents: int
    payable_before_tax_cents: int


def _validate_discount(discount: Discount, label: str) -> None:
    if discount.type is None:
        return
    if discount.type not in VALID_DISCOUNT_TYPES:
        raise ValidationError(
            f"{label} discount type must be one of {VALID_DISCOUNT_TYPES}",
            details={"discount_type": discount.type},
        )
    value = Decimal(discount.value)
    if discount.type == DISCOUNT_PERCENTAGE and not (0 <= value <= 100):
        raise ValidationError(
            f"{label} percentage discount must be between 0 and 100",
            details={"discount_value": str(discount.value)},
        )
    if value < 0:
        raise ValidationError(
            f"{label} discount cannot be negative",
            details={"discount_value": str(discount.value)},
        )


def apply_discount(amount_cents: int, discount: Discount) -> int:
    """Cents taken off `amount_cents`; never more than the amount itself."""
    if discount.is_empty or amount_cents <= 0:
        return 0
    if discount.type == DISCOUNT_PERCENTAGE:
        off = percent_of(amount_cents, Decimal(discount.value))
    else:
        off = int(discount.value)
    return max(0, min(off, amount_cents))


def calculate_totals(lines: list[LineInput], bill_discount: Discount | None = None) -> DiscountResult:
    """
    Net every line after its own discount, sum to the subtotal, then take the
    bill discount off the subtotal.

    Raises:
        ValidationError: negative price or quantity, or an out-of-range discount
    """
    bill_discount = bill_discount or Discount()
    _validate_discount(bill_discount, "Bill")

    totals: list[LineTotals] = []
    for index, line in enumerate(lines):
        if line.unit_price_cents < 0:
            raise ValidationError("Price cannot be negative", details={"line": index})
        if line.quantity < 0:
            raise ValidationError("Quantity cannot be negative", details={"line": index})
        _validate_discount(line.discount, "Item")

        gross = line.unit_price_cents * line.quantity
        off = apply_discount(gross, line.discount)
        totals.append(LineTotals(gross_cents=gross, discount_cents=off, net_cents=gross - off))

    subtotal = sum(t.net_cents for t in totals)
    bill_off = apply_discount(subtotal, bill_discount)

    return DiscountResult(
        lines=totals,
        subtotal_cents=subtotal,
        item_discount_total_cents=sum(t.discount_cents for t in totals),
        bill_discount_applied_cents=bill_off,
        payable_before_tax_cents=subtotal - bill_off,
    )
