from __future__ import annotations

from enum import Enum as PyEnum

from sqlalchemy import event

from ..extensions import db
from radstock.time_utils import to_utc_z, utcnow


class SaleStatus(PyEnum):
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"

    @property
    def is_terminal(self) -> bool:
        return self is not SaleStatus.COMPLETED


class Sale(db.Model):
    """
    Completed point-of-sale transaction.

    Created fully formed by sales_service.create_sale; afterwards only
    `status` changes, and only COMPLETED -> CANCELLED or COMPLETED -> REFUNDED.
    All amounts are in cents.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("sale_number", name="uq_sales_sale_number"),
        db.Index("ix_sales_sale_date", "sale_date"),
        db.Index("ix_sales_customer_date", "customer_id", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g. "RS20261019143005417")
    sale_number = db.Column(db.String(50), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    processed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_amount_cents = db.Column(db.Integer, nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(20), nullable=False, default="Cash")
    notes = db.Column(db.String(500), nullable=True)

    status = db.Column(
        db.Enum(SaleStatus, native_enum=False, length=16),
        nullable=False,
        default=SaleStatus.COMPLETED,
        index=True,
    )

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    processed_by = db.relationship("User")
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Sale id={self.id} sale_number={self.sale_number!r} status={self.status.value}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_number": self.sale_number,
            "customer_id": self.customer_id,
            "processed_by_user_id": self.processed_by_user_id,
            "subtotal_cents": self.subtotal_cents,
            "tax_amount_cents": self.tax_amount_cents,
            "total_amount_cents": self.total_amount_cents,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "status": self.status.value,
            "sale_date": to_utc_z(self.sale_date),
            "created_at": to_utc_z(self.created_at),
        }


class SaleItem(db.Model):
    """One line of a sale. Immutable once written."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    radiator_id = db.Column(db.Integer, db.ForeignKey("radiators.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    sale = db.relationship("Sale", back_populates="items")
    radiator = db.relationship("Radiator")
    warehouse = db.relationship("Warehouse")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "radiator_id": self.radiator_id,
            "warehouse_id": self.warehouse_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
        }


@event.listens_for(SaleItem, "before_update")
def _reject_sale_item_update(mapper, connection, target: SaleItem) -> None:
    raise ValueError("sale items are immutable")
