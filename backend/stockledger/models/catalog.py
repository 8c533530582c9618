from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


def _money(value) -> str | None:
    return None if value is None else str(value)


class Product(db.Model):
    """
    Product master data.

    Owned by catalog management; the ledger reads products but never mutates them.

    VARIANTS:
    group_id links variants of one logical product (same name/price template,
    distinct sku/size/color). It is an opaque tag here.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("gst_rate >= 0 AND gst_rate <= 28", name="ck_products_gst_rate"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)

    # Selling price is tax-inclusive
    price = db.Column(db.Numeric(12, 2), nullable=False)
    cost_price = db.Column(db.Numeric(12, 2), nullable=True)
    gst_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    hsn_code = db.Column(db.String(16), nullable=True)

    # Warehouse stock at or below this level is reported as low
    min_stock_alert = db.Column(db.Integer, nullable=False, default=0)

    size = db.Column(db.String(32), nullable=True)
    color = db.Column(db.String(32), nullable=True)
    group_id = db.Column(db.String(64), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "price": _money(self.price),
            "cost_price": _money(self.cost_price),
            "gst_rate": _money(self.gst_rate),
            "hsn_code": self.hsn_code,
            "min_stock_alert": self.min_stock_alert,
            "size": self.size,
            "color": self.color,
            "group_id": self.group_id,
            "created_at": to_utc_z(self.created_at),
        }
