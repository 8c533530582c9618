from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

LOCATION_TYPE_WAREHOUSE = "WAREHOUSE"
LOCATION_TYPE_STORE = "STORE"
LOCATION_TYPES = (LOCATION_TYPE_WAREHOUSE, LOCATION_TYPE_STORE)


class Location(db.Model):
    """
    A stocking point: the single central warehouse or a point-of-sale store.

    Immutable once inventory or transactions reference it.
    """
    __tablename__ = "locations"
    __table_args__ = (
        db.CheckConstraint("type IN ('WAREHOUSE', 'STORE')", name="ck_locations_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(16), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_warehouse(self) -> bool:
        return self.type == LOCATION_TYPE_WAREHOUSE

    def __repr__(self) -> str:
        return f"<Location id={self.id} name={self.name!r} type={self.type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "created_at": to_utc_z(self.created_at),
        }
