from .tenancy import Outlet
from .customers import Customer
from .inventory import Product, StockAdjustment
from .documents import (
    InvoiceDocument,
    InvoiceLine,
    DocumentSequence,
    ActivityEvent,
    KIND_INVOICE,
    KIND_QUOTE,
    DOCUMENT_KINDS,
)
from .accounting import Account, JournalEntry, JournalLine, ACCOUNT_TYPES, JOURNAL_STATUS_POSTED

__all__ = [
    'Outlet', 'Customer',
    'Product', 'StockAdjustment',
    'InvoiceDocument', 'InvoiceLine', 'DocumentSequence', 'ActivityEvent',
    'KIND_INVOICE', 'KIND_QUOTE', 'DOCUMENT_KINDS',
    'Account', 'JournalEntry', 'JournalLine', 'ACCOUNT_TYPES', 'JOURNAL_STATUS_POSTED',
]
