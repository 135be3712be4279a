from .auth import Admin, SessionToken, ADMIN_ROLES, ADMIN_STATUSES
from .inventory import Product
from .sales import Purchase, PurchaseItem, PAYMENT_STATUSES, PAYMENT_METHODS

__all__ = [
    'Admin', 'SessionToken', 'ADMIN_ROLES', 'ADMIN_STATUSES',
    'Product',
    'Purchase', 'PurchaseItem', 'PAYMENT_STATUSES', 'PAYMENT_METHODS',
]
