from .outlets import Outlet, Product
from .inventory import InventoryMovement, StockLevel
from .registers import RegisterSession, RegisterLedgerEntry
from .orders import Order, OrderLine, DocumentSequence

__all__ = [
    'Outlet', 'Product',
    'InventoryMovement', 'StockLevel',
    'RegisterSession', 'RegisterLedgerEntry',
    'Order', 'OrderLine', 'DocumentSequence',
]
