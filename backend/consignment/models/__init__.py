from .catalog import Brand, Size, Partner
from .auth import User, SessionToken
from .items import Item
from .sales import Sale, Payment

__all__ = [
    'Brand', 'Size', 'Partner',
    'User', 'SessionToken',
    'Item',
    'Sale', 'Payment',
]
