from .catalog import Product
from .sales import Sale, SaleItem
from .auth import User, SessionToken
from .ledger import ChangeEvent

__all__ = [
    'Product',
    'Sale', 'SaleItem',
    'User', 'SessionToken',
    'ChangeEvent',
]
