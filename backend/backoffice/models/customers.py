from __future__ import annotations

from ..extensions import db
from ..money import format_cents
from ..time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer with running balance aggregates.

    total_debt_cents is what the customer owes the shop; total_advance_cents
    is what the shop holds for the customer. Both are non-negative and at most
    one of them is positive: the balance ledger nets them on every change.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.CheckConstraint("total_debt_cents >= 0", name="ck_customers_debt_non_negative"),
        db.CheckConstraint("total_advance_cents >= 0", name="ck_customers_advance_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True, unique=True)

    total_debt_cents = db.Column(db.BigInteger, nullable=False, default=0)
    total_advance_cents = db.Column(db.BigInteger, nullable=False, default=0)

    # Denormalized aggregates (updated when sales are committed)
    total_purchases_cents = db.Column(db.BigInteger, nullable=False, default=0)
    total_paid_cents = db.Column(db.BigInteger, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def balance_snapshot(self) -> tuple[int, int]:
        return (self.total_debt_cents or 0, self.total_advance_cents or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "total_debt_cents": self.total_debt_cents,
            "total_advance_cents": self.total_advance_cents,
            "total_debt": format_cents(self.total_debt_cents),
            "total_advance": format_cents(self.total_advance_cents),
            "total_purchases_cents": self.total_purchases_cents,
            "total_paid_cents": self.total_paid_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class CustomerTransaction(db.Model):
    """
    Append-only ledger of customer balance effects.

    TRANSACTION TYPES:
    - DEBT_INC / DEBT_DEC: debt raised or paid down
    - ADVANCE_INC / ADVANCE_DEC: advance taken or consumed

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "customer_transactions"
    __table_args__ = (
        db.Index("ix_customer_txns_customer_occurred", "customer_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)
    amount_cents = db.Column(db.BigInteger, nullable=False)

    sale_ref = db.Column(db.String(64), nullable=True, index=True)
    description = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    customer = db.relationship("Customer", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "transaction_type": self.transaction_type,
            "amount_cents": self.amount_cents,
            "amount": format_cents(self.amount_cents),
            "sale_ref": self.sale_ref,
            "description": self.description,
            "occurred_at": to_utc_z(self.occurred_at),
        }
