"""Infrastructure models package exports."""
from .base import Base, metadata
from .booking import BookingModel
from .transaction import TransactionModel
from .invoice import InvoiceModel

__all__ = [
    "Base",
    "metadata",
    "BookingModel",
    "TransactionModel",
    "InvoiceModel",
]
