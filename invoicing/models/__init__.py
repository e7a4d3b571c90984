"""Models package - exports all SQLAlchemy models."""
from invoicing.models.company import Company
from invoicing.models.app_user import AppUser
from invoicing.models.item import Item
from invoicing.models.invoice import Invoice
from invoicing.models.invoice_line import InvoiceLine

__all__ = [
    'Company', 'AppUser',
    'Item', 'Invoice', 'InvoiceLine',
]
