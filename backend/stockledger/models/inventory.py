from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

TX_TYPE_PURCHASE = "PURCHASE"
TX_TYPE_SALE = "SALE"
TX_TYPE_TRANSFER_OUT = "TRANSFER_OUT"
TX_TYPE_TRANSFER_IN = "TRANSFER_IN"
TX_TYPES = (TX_TYPE_PURCHASE, TX_TYPE_SALE, TX_TYPE_TRANSFER_OUT, TX_TYPE_TRANSFER_IN)

TX_STATUS_PENDING = "PENDING"
TX_STATUS_COMPLETED = "COMPLETED"


class InventoryRecord(db.Model):
    """
    Authoritative stock count for one product at one location.

    INVARIANTS:
    - quantity never goes negative (CHECK constraint backs the conditional update)
    - only inventory_service.adjust_quantity mutates quantity
    - created lazily on the first stock movement into a location
    """
    __tablename__ = "inventory_records"
    __table_args__ = (
        db.UniqueConstraint("product_id", "location_id", name="uq_inventory_product_location"),
        db.CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<InventoryRecord product_id={self.product_id} location_id={self.location_id} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "location_id": self.location_id,
            "quantity": self.quantity,
            "updated_at": to_utc_z(self.updated_at),
        }


class Transaction(db.Model):
    """
    Append-only stock movement ledger.

    The only permitted update is a TRANSFER_OUT moving PENDING -> COMPLETED on receipt.
    sale_price is the effective (post-discount) unit price of a SALE line.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transactions_quantity_positive"),
        db.Index("ix_transactions_type_status", "type", "status"),
        db.Index("ix_transactions_type_created", "type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    from_location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True, index=True)
    to_location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=TX_STATUS_COMPLETED)

    sale_price = db.Column(db.Numeric(14, 4), nullable=True)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    invoice_id = db.Column(db.String(64), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product", lazy="joined")
    from_location = db.relationship("Location", foreign_keys=[from_location_id])
    to_location = db.relationship("Location", foreign_keys=[to_location_id])

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} type={self.type} status={self.status} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "from_location_id": self.from_location_id,
            "to_location_id": self.to_location_id,
            "quantity": self.quantity,
            "status": self.status,
            "sale_price": None if self.sale_price is None else str(self.sale_price),
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "invoice_id": self.invoice_id,
            "created_at": to_utc_z(self.created_at),
        }
