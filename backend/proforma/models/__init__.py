from .catalog import Brand, Category, Product, PriceTier
from .accounts import User
from .content import Story
from .requests import Request, RequestLine, RequestSequence
from .activity import ActivityEvent

__all__ = [
    'Brand', 'Category', 'Product', 'PriceTier',
    'User',
    'Story',
    'Request', 'RequestLine', 'RequestSequence',
    'ActivityEvent',
]
