from __future__ import annotations

from ..extensions import db
from ..money import format_cents
from ..time_utils import to_utc_z


def _decimal_str(value):
    return None if value is None else str(value)


class Sale(db.Model):
    """
    Committed sale (aggregate root).

    Written once by the settlement service as the last step of a settlement;
    there is no draft state in the table. All amounts are in cents.

    INVARIANTS:
    - total = subtotal - bill_discount + tax
    - sum(payments.amount) + balance = total
    - balance > 0 is customer debt, balance < 0 is customer advance
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_number = db.Column(db.String(64), nullable=False, unique=True)

    status = db.Column(db.String(16), nullable=False, default="COMMITTED", index=True)
    payment_status = db.Column(db.String(16), nullable=False, index=True)  # PAID, PARTIAL, OVERPAID

    subtotal_cents = db.Column(db.BigInteger, nullable=False)
    item_discount_cents = db.Column(db.BigInteger, nullable=False, default=0)

    bill_discount_type = db.Column(db.String(16), nullable=True)  # PERCENTAGE, AMOUNT
    bill_discount_value = db.Column(db.Numeric(12, 2), nullable=True)  # percent, or currency units
    bill_discount_cents = db.Column(db.BigInteger, nullable=False, default=0)

    tax_cents = db.Column(db.BigInteger, nullable=False, default=0)
    total_cents = db.Column(db.BigInteger, nullable=False)
    collected_cents = db.Column(db.BigInteger, nullable=False)
    balance_cents = db.Column(db.BigInteger, nullable=False, default=0)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    committed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        backref=db.backref("sale", lazy=True),
        lazy=True,
        order_by="SaleItem.line_number",
        cascade="all, delete-orphan",
    )
    payments = db.relationship(
        "Payment",
        backref=db.backref("sale", lazy=True),
        lazy=True,
        order_by="Payment.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_number": self.sale_number,
            "status": self.status,
            "payment_status": self.payment_status,
            "subtotal_cents": self.subtotal_cents,
            "item_discount_cents": self.item_discount_cents,
            "bill_discount_type": self.bill_discount_type,
            "bill_discount_value": _decimal_str(self.bill_discount_value),
            "bill_discount_cents": self.bill_discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "collected_cents": self.collected_cents,
            "balance_cents": self.balance_cents,
            "subtotal": format_cents(self.subtotal_cents),
            "tax": format_cents(self.tax_cents),
            "total": format_cents(self.total_cents),
            "balance_amount": format_cents(self.balance_cents),
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "committed_at": to_utc_z(self.committed_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class SaleItem(db.Model):
    """Line on a committed sale; unit price is captured at sale time."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "line_number", name="uq_sale_items_sale_line"),
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    size = db.Column(db.String(32), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.BigInteger, nullable=False)

    discount_type = db.Column(db.String(16), nullable=True)
    discount_value = db.Column(db.Numeric(12, 2), nullable=True)
    discount_cents = db.Column(db.BigInteger, nullable=False, default=0)

    gross_cents = db.Column(db.BigInteger, nullable=False)
    subtotal_cents = db.Column(db.BigInteger, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "size": self.size,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_type": self.discount_type,
            "discount_value": _decimal_str(self.discount_value),
            "discount_cents": self.discount_cents,
            "gross_cents": self.gross_cents,
            "subtotal_cents": self.subtotal_cents,
            "subtotal": format_cents(self.subtotal_cents),
        }


class Payment(db.Model):
    """
    Tender applied to a committed sale.

    METHODS: CASH, CARD, MOBILE, BANK_TRANSFER, STORE_CREDIT.
    A sale may carry several payments (split tender); the set is immutable
    once the sale is committed.
    """
    __tablename__ = "sale_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_sale_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    method = db.Column(db.String(32), nullable=False, index=True)
    amount_cents = db.Column(db.BigInteger, nullable=False)
    reference = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "method": self.method,
            "amount_cents": self.amount_cents,
            "amount": format_cents(self.amount_cents),
            "reference": self.reference,
            "created_at": to_utc_z(self.created_at),
        }
