# Overview: Read-only catalog and location lookups consumed by the ledger core.

from __future__ import annotations

from sqlalchemy.orm import Session

from ..errors import InvalidInput, NotFound
from ..models import Location, Product
from ..models.locations import LOCATION_TYPE_STORE, LOCATION_TYPE_WAREHOUSE


def get_product(session: Session, product_id: int) -> Product:
    product = session.get(Product, product_id)
    if product is None:
        raise NotFound(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def get_location(session: Session, location_id: int) -> Location:
    location = session.get(Location, location_id)
    if location is None:
        raise NotFound(f"Location {location_id} not found", details={"location_id": location_id})
    return location


def get_store(session: Session, location_id: int) -> Location:
    """Fetch a location and require it to be a point-of-sale store."""
    location = get_location(session, location_id)
    if location.type != LOCATION_TYPE_STORE:
        raise InvalidInput(
            f"Location {location_id} is a {location.type}, not a STORE",
            details={"location_id": location_id, "type": location.type},
        )
    return location


def find_warehouse(session: Session) -> Location:
    """
    Return the single central warehouse.

    Raises:
        NotFound: no warehouse has been configured
    """
    warehouse = (
        session.query(Location)
        .filter_by(type=LOCATION_TYPE_WAREHOUSE)
        .order_by(Location.id)
        .first()
    )
    if warehouse is None:
        raise NotFound("Warehouse location not found")
    return warehouse


def list_locations(session: Session, location_type: str | None = None) -> list[Location]:
    q = session.query(Location)
    if location_type:
        q = q.filter_by(type=location_type)
    return q.order_by(Location.id).all()
