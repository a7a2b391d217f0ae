from __future__ import annotations

from enum import Enum as PyEnum

from sqlalchemy import event

from ..extensions import db
from radstock.time_utils import to_utc_z, utcnow


class MovementType(PyEnum):
    INCOMING = "INCOMING"
    OUTGOING = "OUTGOING"


class ChangeType(PyEnum):
    SALE = "SALE"
    REFUND = "REFUND"
    ADJUSTMENT = "ADJUSTMENT"
    MANUAL = "MANUAL"


class StockLevel(db.Model):
    """
    Current on-hand quantity for one (radiator, warehouse) pair.

    Exactly one row per pair once stock has ever moved there; a missing row
    reads as quantity 0. Only ledger_service writes to this table, and every
    write is paired with a StockHistory row in the same transaction.

    version_id gives optimistic locking on top of SELECT ... FOR UPDATE, so a
    concurrent writer that lost the race raises StaleDataError and is retried.
    """
    __tablename__ = "stock_levels"
    __table_args__ = (
        db.UniqueConstraint("radiator_id", "warehouse_id", name="uq_stock_levels_radiator_warehouse"),
        db.CheckConstraint("quantity >= 0", name="ck_stock_levels_quantity_nonnegative"),
        db.Index("ix_stock_levels_warehouse_quantity", "warehouse_id", "quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    radiator_id = db.Column(db.Integer, db.ForeignKey("radiators.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    radiator = db.relationship("Radiator", backref=db.backref("stock_levels", lazy=True))
    warehouse = db.relationship("Warehouse", backref=db.backref("stock_levels", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<StockLevel radiator_id={self.radiator_id} "
            f"warehouse_id={self.warehouse_id} quantity={self.quantity}>"
        )


class StockHistory(db.Model):
    """
    One immutable movement record per ledger mutation.

    INVARIANT: for every (radiator, warehouse) pair,
        StockLevel.quantity == SUM(StockHistory.quantity_change)
    Rows are never updated or deleted (enforced by the mapper events below).
    """
    __tablename__ = "stock_history"
    __table_args__ = (
        db.Index("ix_stock_history_radiator_warehouse", "radiator_id", "warehouse_id"),
        db.Index("ix_stock_history_radiator_created", "radiator_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    radiator_id = db.Column(db.Integer, db.ForeignKey("radiators.id"), nullable=False)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False)

    old_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)
    quantity_change = db.Column(db.Integer, nullable=False)

    movement_type = db.Column(db.Enum(MovementType, native_enum=False, length=16), nullable=False)
    change_type = db.Column(db.Enum(ChangeType, native_enum=False, length=16), nullable=False, index=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    warehouse = db.relationship("Warehouse")
    sale = db.relationship("Sale")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "radiator_id": self.radiator_id,
            "warehouse_id": self.warehouse_id,
            "old_quantity": self.old_quantity,
            "new_quantity": self.new_quantity,
            "quantity_change": self.quantity_change,
            "movement_type": self.movement_type.value,
            "change_type": self.change_type.value,
            "sale_id": self.sale_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(StockHistory, "before_update")
def _reject_history_update(mapper, connection, target: StockHistory) -> None:
    raise ValueError("stock history is append-only")


@event.listens_for(StockHistory, "before_delete")
def _reject_history_delete(mapper, connection, target: StockHistory) -> None:
    raise ValueError("stock history is append-only")
