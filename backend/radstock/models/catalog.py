from __future__ import annotations

from ..extensions import db


class Radiator(db.Model):
    """
    Radiator (SKU) master data.

    PRICING:
    - retail_price_cents is required.
    - trade_price_cents / cost_price_cents are optional. NULL means "not set",
      which is not the same thing as a price of 0.

    Stock quantities are NOT stored here; see StockLevel.
    """
    __tablename__ = "radiators"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_radiators_code"),
        db.Index("ix_radiators_brand_name", "brand", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    code = db.Column(db.String(50), nullable=False)
    brand = db.Column(db.String(100), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    year = db.Column(db.Integer, nullable=False)

    retail_price_cents = db.Column(db.Integer, nullable=False, default=0)
    trade_price_cents = db.Column(db.Integer, nullable=True)
    cost_price_cents = db.Column(db.Integer, nullable=True)

    is_price_overridable = db.Column(db.Boolean, nullable=False, default=True)
    max_discount_percent = db.Column(db.Integer, nullable=True, default=20)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Radiator id={self.id} code={self.code!r} name={self.name!r}>"

    def to_summary_dict(self) -> dict:
        return {
            "id": self.id,
            "brand": self.brand,
            "code": self.code,
            "name": self.name,
            "year": self.year,
        }


class Warehouse(db.Model):
    """Physical stock location. Codes are short (e.g. "AKL", "WLG") and unique."""
    __tablename__ = "warehouses"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_warehouses_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(10), nullable=False)
    name = db.Column(db.String(100), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Warehouse id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
        }
