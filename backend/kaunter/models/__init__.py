from .tenancy import Company
from .auth import User
from .catalog import Item
from .orders import Order, OrderItem

__all__ = [
    'Company',
    'User',
    'Item',
    'Order', 'OrderItem',
]
