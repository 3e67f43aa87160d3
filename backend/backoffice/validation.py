from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import ValidationError
from .money import to_cents, to_decimal
from .services.discount_service import (
    DISCOUNT_AMOUNT,
    DISCOUNT_PERCENTAGE,
    VALID_DISCOUNT_TYPES,
    Discount,
)
from .services.payment_service import TenderedPayment


MAX_LINE_QUANTITY = 100_000
MAX_NOTES_LENGTH = 2000


@dataclass(frozen=True)
class SaleItemRequest:
    product_id: int
    size: str | None
    quantity: int
    unit_price_cents: int
    discount: Discount = Discount()


@dataclass(frozen=True)
class SaleRequest:
    """Normalized sale request; all money in cents."""
    items: list[SaleItemRequest]
    payments: list[TenderedPayment] = field(default_factory=list)
    customer_id: int | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    bill_discount: Discount = Discount()
    tax_cents: int | None = None
    notes: str | None = None

    @property
    def can_create_customer(self) -> bool:
        return bool(self.customer_name and self.customer_phone)


def _coerce_id(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer id", details={"field": field_name})
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    raise ValidationError(f"{field_name} must be an integer id", details={"field": field_name})


def _coerce_quantity(value: Any, field_name: str) -> int:
    # Reject floats and scientific notation; quantities are whole units
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer", details={"field": field_name})
    if isinstance(value, str):
        stripped = value.strip()
        digits = stripped[1:] if stripped.startswith("-") else stripped
        if not digits.isdecimal():
            raise ValidationError(f"{field_name} must be an integer", details={"field": field_name})
        value = int(stripped)
    if not isinstance(value, int):
        raise ValidationError(f"{field_name} must be an integer", details={"field": field_name})
    if value <= 0:
        raise ValidationError(f"{field_name} must be positive", details={"field": field_name})
    if value > MAX_LINE_QUANTITY:
        raise ValidationError(f"{field_name} cannot exceed {MAX_LINE_QUANTITY}", details={"field": field_name})
    return value


def _optional_str(value: Any, field_name: str, max_length: int = 255) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string", details={"field": field_name})
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{field_name} exceeds max length {max_length}", details={"field": field_name})
    return value or None


def parse_discount(value: Any, discount_type: Any, field_name: str) -> Discount:
    """
    Build a Discount from the request's (discount, discountType) pair.

    A missing type with a non-zero value means AMOUNT (bill level only; item
    lines without a type carry no discount). PERCENTAGE keeps the
    percent as a Decimal; AMOUNT converts currency units to cents.
    """
    if value is None or value == 0 or value == "":
        return Discount()

    if discount_type is None:
        discount_type = DISCOUNT_AMOUNT
    if discount_type not in VALID_DISCOUNT_TYPES:
        raise ValidationError(
            f"{field_name}Type must be one of {VALID_DISCOUNT_TYPES}",
            details={"field": f"{field_name}Type"},
        )

    if discount_type == DISCOUNT_PERCENTAGE:
        percent = to_decimal(value, field_name)
        if percent < 0 or percent > 100:
            raise ValidationError(f"{field_name} percentage must be between 0 and 100", details={"field": field_name})
        return Discount(type=DISCOUNT_PERCENTAGE, value=percent)

    cents = to_cents(value, field_name)
    if cents < 0:
        raise ValidationError(f"{field_name} cannot be negative", details={"field": field_name})
    return Discount(type=DISCOUNT_AMOUNT, value=cents)


def _parse_item(raw: Any, index: int) -> SaleItemRequest:
    prefix = f"items[{index}]"
    if not isinstance(raw, dict):
        raise ValidationError(f"{prefix} must be an object", details={"field": prefix})
    if "productId" not in raw:
        raise ValidationError(f"{prefix}.productId is required", details={"field": f"{prefix}.productId"})
    if "price" not in raw:
        raise ValidationError(f"{prefix}.price is required", details={"field": f"{prefix}.price"})

    price_cents = to_cents(raw["price"], f"{prefix}.price")
    if price_cents <= 0:
        raise ValidationError(f"{prefix}.price must be positive", details={"field": f"{prefix}.price"})

    # Line discounts apply only with an explicit type
    discount = Discount()
    if raw.get("discountType") is not None:
        discount = parse_discount(raw.get("discount"), raw["discountType"], f"{prefix}.discount")

    return SaleItemRequest(
        product_id=_coerce_id(raw["productId"], f"{prefix}.productId"),
        size=_optional_str(raw.get("size"), f"{prefix}.size", max_length=32),
        quantity=_coerce_quantity(raw.get("quantity"), f"{prefix}.quantity"),
        unit_price_cents=price_cents,
        discount=discount,
    )


def _parse_payment(raw: Any, index: int) -> TenderedPayment:
    prefix = f"payments[{index}]"
    if not isinstance(raw, dict):
        raise ValidationError(f"{prefix} must be an object", details={"field": prefix})
    method = raw.get("method")
    if not isinstance(method, str) or not method.strip():
        raise ValidationError(f"{prefix}.method is required", details={"field": f"{prefix}.method"})
    if "amount" not in raw:
        raise ValidationError(f"{prefix}.amount is required", details={"field": f"{prefix}.amount"})

    # Amount sign and method membership are the payment allocator's call
    return TenderedPayment(
        method=method.strip().upper(),
        amount_cents=to_cents(raw["amount"], f"{prefix}.amount"),
        reference=_optional_str(raw.get("reference"), f"{prefix}.reference", max_length=128),
    )


def parse_sale_request(payload: Any) -> SaleRequest:
    """
    Validate + normalize a sale request body.

    Shape:
        {items: [{productId, size?, quantity, price, discount?, discountType?}],
         payments: [{amount, method, reference?}],
         customerId?, customerName?, customerPhone?,
         discount?, discountType?, tax?, notes?}
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one item is required", details={"field": "items"})

    raw_payments = payload.get("payments")
    if raw_payments is None:
        raw_payments = []
    if not isinstance(raw_payments, list):
        raise ValidationError("payments must be a list", details={"field": "payments"})

    customer_id = payload.get("customerId")
    if customer_id in ("", None):
        customer_id = None
    else:
        customer_id = _coerce_id(customer_id, "customerId")

    tax_cents = None
    if payload.get("tax") is not None:
        tax_cents = to_cents(payload["tax"], "tax")
        if tax_cents < 0:
            raise ValidationError("tax cannot be negative", details={"field": "tax"})

    return SaleRequest(
        items=[_parse_item(raw, i) for i, raw in enumerate(raw_items)],
        payments=[_parse_payment(raw, i) for i, raw in enumerate(raw_payments)],
        customer_id=customer_id,
        customer_name=_optional_str(payload.get("customerName"), "customerName"),
        customer_phone=_optional_str(payload.get("customerPhone"), "customerPhone", max_length=32),
        bill_discount=parse_discount(payload.get("discount"), payload.get("discountType"), "discount"),
        tax_cents=tax_cents,
        notes=_optional_str(payload.get("notes"), "notes", max_length=MAX_NOTES_LENGTH),
    )
