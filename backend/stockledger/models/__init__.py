from .locations import Location
from .catalog import Product
from .inventory import InventoryRecord, Transaction

__all__ = [
    'Location',
    'Product',
    'InventoryRecord', 'Transaction',
]
