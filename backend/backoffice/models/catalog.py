from __future__ import annotations

from ..extensions import db
from ..money import format_cents
from ..time_utils import to_utc_z


FREE_SIZE = "FREE"


class Product(db.Model):
    """
    Product master data.

    Products are edited administratively and are never mutated by a sale.
    Sellable quantity lives on ProductSizeStock, one row per size label, or a
    single FREE row when the product has no size dimension.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=True, index=True)

    free_size = db.Column(db.Boolean, nullable=False, default=False)

    cost_price_cents = db.Column(db.BigInteger, nullable=False, default=0)
    selling_price_cents = db.Column(db.BigInteger, nullable=False)

    # Scannable code; optional but unique when present
    barcode = db.Column(db.String(64), nullable=True, unique=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    sizes = db.relationship(
        "ProductSizeStock",
        backref=db.backref("product", lazy=True),
        lazy=True,
        order_by="ProductSizeStock.id",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} free_size={self.free_size}>"

    def size_labels(self) -> list[str]:
        return [row.size for row in self.sizes]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "free_size": self.free_size,
            "cost_price_cents": self.cost_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "selling_price": format_cents(self.selling_price_cents),
            "barcode": self.barcode,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductSizeStock(db.Model):
    """
    Per-(product, size) sellable quantity.

    Quantity is never negative; the check constraint backs up the ledger's
    check-and-decrement. Only inventory_service writes this table.
    """
    __tablename__ = "product_size_stock"
    __table_args__ = (
        db.UniqueConstraint("product_id", "size", name="uq_product_size_stock_product_size"),
        db.CheckConstraint("quantity >= 0", name="ck_product_size_stock_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    size = db.Column(db.String(32), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "size": self.size,
            "quantity": self.quantity,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only history of quantity changes.

    Written in the same DB transaction as the ProductSizeStock update it
    describes, so a rolled-back settlement leaves no movement behind.

    MOVEMENT TYPES:
    - SALE: decrement for a sale line
    - SALE_RESTORE: compensation for a SALE within a failed settlement
    - ADJUST_ADD / ADJUST_REDUCE: manual stock adjustment
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    size = db.Column(db.String(32), nullable=False)

    movement_type = db.Column(db.String(32), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    before_quantity = db.Column(db.Integer, nullable=False)
    after_quantity = db.Column(db.Integer, nullable=False)

    # Sale number rather than FK: the movement is written before the sale row exists
    sale_ref = db.Column(db.String(64), nullable=True, index=True)
    reason = db.Column(db.String(32), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "size": self.size,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "before_quantity": self.before_quantity,
            "after_quantity": self.after_quantity,
            "sale_ref": self.sale_ref,
            "reason": self.reason,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
