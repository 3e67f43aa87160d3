# Overview: Service-layer operations for per-size stock; encapsulates business logic and database work.

# backend/backoffice/services/inventory_service.py

from ..errors import InsufficientStock, UnknownSize, ValidationError
from ..extensions import db
from ..models import FREE_SIZE, Product, ProductSizeStock, StockMovement
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
"""
Inventory Ledger Invariants (authoritative)

Stock model:
- Sellable quantity is stored per (product, size) on ProductSizeStock.
- Free-size products have exactly one row, keyed by the FREE sentinel.
- quantity >= 0 always; every decrement checks availability on a locked row
  and either applies in full or raises InsufficientStock without mutating.

History:
- Every quantity change appends a StockMovement in the same DB transaction,
  recording before/after quantities.

Transactions:
- reserve_and_decrement and restore only flush; the caller (settlement) owns
  the transaction and the commit.
- adjust_stock is a standalone operation and commits itself.
"""


MOVEMENT_SALE = "SALE"
MOVEMENT_SALE_RESTORE = "SALE_RESTORE"
MOVEMENT_ADJUST_ADD = "ADJUST_ADD"
MOVEMENT_ADJUST_REDUCE = "ADJUST_REDUCE"

ADJUST_ADD = "ADD"
ADJUST_REDUCE = "REDUCE"

ADJUSTMENT_REASONS = [
    "NEW_STOCK_ARRIVAL",
    "DAMAGED_ITEM",
    "LOST_THEFT",
    "MANUAL_CORRECTION",
    "RETURN_FROM_CUSTOMER",
    "OTHER",
]


def get_product(product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None:
        raise ValidationError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def resolve_size_key(product: Product, size: str | None) -> str:
    """
    Map a requested size to the stock key.

    Free-size products always use FREE, whatever the request says. Sized
    products must name one of their own sizes.
    """
    if product.free_size:
        return FREE_SIZE

    labels = product.size_labels()
    if not size or size not in labels:
        raise UnknownSize(product.id, size, known_sizes=labels)
    return size


def _locked_stock_row(product_id: int, size_key: str) -> ProductSizeStock:
    # populate_existing: the row may already sit in the identity map from an earlier read
    row = lock_for_update(
        db.session.query(ProductSizeStock)
        .filter_by(product_id=product_id, size=size_key)
        .populate_existing()
    ).first()
    if row is None:
        raise UnknownSize(product_id, size_key)
    return row


def _record_movement(
    row: ProductSizeStock,
    movement_type: str,
    quantity: int,
    before: int,
    *,
    sale_ref: str | None = None,
    reason: str | None = None,
    note: str | None = None,
) -> StockMovement:
    movement = StockMovement(
        product_id=row.product_id,
        size=row.size,
        movement_type=movement_type,
        quantity=quantity,
        before_quantity=before,
        after_quantity=row.quantity,
        sale_ref=sale_ref,
        reason=reason,
        note=note,
        occurred_at=utcnow(),
    )
    db.session.add(movement)
    return movement


def reserve_and_decrement(
    product_id: int,
    size_key: str,
    quantity: int,
    *,
    sale_ref: str | None = None,
) -> StockMovement:
    """
    Take `quantity` units from (product, size) if that many are on hand.

    Raises:
        InsufficientStock: fewer than `quantity` available (nothing changed)
        UnknownSize: no stock row for the key
    """
    if quantity <= 0:
        raise ValidationError("Quantity must be positive", details={"quantity": quantity})

    row = _locked_stock_row(product_id, size_key)
    before = row.quantity
    if before < quantity:
        product = db.session.query(Product).filter_by(id=product_id).first()
        raise InsufficientStock(
            product_id,
            size_key,
            requested=quantity,
            available=before,
            product_name=product.name if product else None,
        )

    row.quantity = before - quantity
    movement = _record_movement(
        row,
        MOVEMENT_SALE,
        -quantity,
        before,
        sale_ref=sale_ref,
        note=f"Sale {sale_ref}" if sale_ref else None,
    )
    db.session.flush()
    return movement


def restore(
    product_id: int,
    size_key: str,
    quantity: int,
    *,
    sale_ref: str | None = None,
) -> StockMovement:
    """Put back units taken by reserve_and_decrement within the same settlement."""
    row = _locked_stock_row(product_id, size_key)
    before = row.quantity
    row.quantity = before + quantity
    movement = _record_movement(
        row,
        MOVEMENT_SALE_RESTORE,
        quantity,
        before,
        sale_ref=sale_ref,
        note=f"Restore for failed sale {sale_ref}" if sale_ref else None,
    )
    db.session.flush()
    return movement


def adjust_stock(
    product_id: int,
    size: str | None,
    adjustment_type: str,
    quantity: int,
    reason: str,
    note: str | None = None,
) -> StockMovement:
    """
    Manual stock adjustment (receiving, damage, corrections).

    Raises:
        ValidationError: bad type, reason or quantity
        UnknownSize: size not defined for the product
        InsufficientStock: REDUCE below zero
    """
    if adjustment_type not in (ADJUST_ADD, ADJUST_REDUCE):
        raise ValidationError("type must be ADD or REDUCE", details={"type": adjustment_type})
    if reason not in ADJUSTMENT_REASONS:
        raise ValidationError(f"reason must be one of {ADJUSTMENT_REASONS}", details={"reason": reason})
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer", details={"quantity": quantity})

    def _op():
        product = get_product(product_id)
        size_key = resolve_size_key(product, size)
        row = _locked_stock_row(product_id, size_key)
        before = row.quantity

        if adjustment_type == ADJUST_ADD:
            row.quantity = before + quantity
            movement_type = MOVEMENT_ADJUST_ADD
            delta = quantity
        else:
            if before < quantity:
                raise InsufficientStock(product_id, size_key, requested=quantity, available=before, product_name=product.name)
            row.quantity = before - quantity
            movement_type = MOVEMENT_ADJUST_REDUCE
            delta = -quantity

        movement = _record_movement(row, movement_type, delta, before, reason=reason, note=note)
        db.session.commit()
        return movement

    try:
        return run_with_retry(_op)
    except (InsufficientStock, UnknownSize, ValidationError):
        db.session.rollback()
        raise


def get_stock(product_id: int) -> list[ProductSizeStock]:
    get_product(product_id)
    return (
        db.session.query(ProductSizeStock)
        .filter_by(product_id=product_id)
        .order_by(ProductSizeStock.id)
        .all()
    )


def get_stock_history(product_id: int, limit: int = 100) -> list[StockMovement]:
    get_product(product_id)
    return (
        db.session.query(StockMovement)
        .filter_by(product_id=product_id)
        .order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )
