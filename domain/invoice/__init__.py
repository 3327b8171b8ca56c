"""Invoice domain exports."""
from .entity import Invoice, InvoiceLine, InvoiceStatus
from .repository import InvoiceRepository

__all__ = ["Invoice", "InvoiceLine", "InvoiceStatus", "InvoiceRepository"]
