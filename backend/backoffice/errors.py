# Overview: Typed failures raised by the settlement engine and its ledgers.

"""
Settlement failure taxonomy.

Every failure is terminal for the attempt that raised it: by the time one of
these reaches a caller, any stock or balance mutation made by that attempt has
already been compensated. `retryable` tells the caller whether resubmitting the
same request unchanged can succeed (lock contention) or not (business rule).
"""

from __future__ import annotations


class SettlementError(Exception):
    """Base class for settlement failures."""

    code = "SETTLEMENT_ERROR"
    http_status = 400
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "retryable": self.retryable,
            "details": self.details,
        }


class ValidationError(SettlementError):
    """Malformed cart or payments; raised before any mutation."""

    code = "VALIDATION_ERROR"


class InvalidPaymentSet(SettlementError):
    code = "INVALID_PAYMENT_SET"


class InsufficientStock(SettlementError):
    code = "INSUFFICIENT_STOCK"
    http_status = 409

    def __init__(self, product_id: int, size: str, requested: int, available: int, product_name: str | None = None):
        label = product_name or f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {label} ({size}). Available: {available}, Requested: {requested}",
            details={
                "product_id": product_id,
                "size": size,
                "requested": requested,
                "available": available,
            },
        )
        self.product_id = product_id
        self.size = size
        self.requested = requested
        self.available = available


class UnknownSize(SettlementError):
    code = "UNKNOWN_SIZE"
    http_status = 422

    def __init__(self, product_id: int, size: str | None, known_sizes: list[str] | None = None):
        if size:
            message = f"Size {size} not found for product {product_id}"
        else:
            message = f"Size is required for product {product_id}"
        super().__init__(
            message,
            details={"product_id": product_id, "size": size, "known_sizes": known_sizes or []},
        )
        self.product_id = product_id
        self.size = size


class SettlementTimeout(SettlementError):
    """Lock contention; the whole request may be resubmitted."""

    code = "SETTLEMENT_TIMEOUT"
    http_status = 503
    retryable = True


class PersistenceFailure(SettlementError):
    """The final commit failed; all side effects were rolled back."""

    code = "PERSISTENCE_FAILURE"
    http_status = 500
