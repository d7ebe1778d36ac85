from .inventory import Supplier, Product, StockMovement, ProductStatus, MovementType
from .sales import Sale, SaleItem
from .auth import User, SessionToken

__all__ = [
    'Supplier', 'Product', 'StockMovement', 'ProductStatus', 'MovementType',
    'Sale', 'SaleItem',
    'User', 'SessionToken',
]
