from .users import User, USER_ROLES
from .catalog import Product, ProductVariant
from .inventory import InventoryEntry, ENTRY_TYPES
from .orders import Order, OrderItem, ORDER_STATUSES, PAYMENT_STATUSES, PAYMENT_METHODS, SHIPPING_FIELDS
from .invoices import Invoice, DocumentSequence

__all__ = [
    'User', 'USER_ROLES',
    'Product', 'ProductVariant',
    'InventoryEntry', 'ENTRY_TYPES',
    'Order', 'OrderItem', 'ORDER_STATUSES', 'PAYMENT_STATUSES', 'PAYMENT_METHODS', 'SHIPPING_FIELDS',
    'Invoice', 'DocumentSequence',
]
