from .auth import User
from .inventory import Product, Sale

__all__ = [
    'User',
    'Product', 'Sale',
]
