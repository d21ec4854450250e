from .auth import User, UserSession
from .catalog import Item
from .purchases import Purchase

__all__ = [
    'User', 'UserSession',
    'Item',
    'Purchase',
]
