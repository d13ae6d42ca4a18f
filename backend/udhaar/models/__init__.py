from .tenancy import Merchant
from .auth import SessionToken
from .customers import Customer
from .inventory import Product
from .invoices import Invoice, InvoiceItem
from .ledger import LedgerEvent, LedgerDiscrepancy

__all__ = [
    'Merchant', 'SessionToken',
    'Customer', 'Product',
    'Invoice', 'InvoiceItem',
    'LedgerEvent', 'LedgerDiscrepancy',
]
