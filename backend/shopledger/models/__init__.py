from .auth import User, SessionToken
from .inventory import Product
from .ledger import Transaction, PaymentRecord

__all__ = [
    'User', 'SessionToken',
    'Product',
    'Transaction', 'PaymentRecord',
]
