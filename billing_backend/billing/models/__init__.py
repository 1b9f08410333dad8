# billing/models/__init__.py

"""
BILLING MODELS PACKAGE EXPORTS
"""

from .invoice import Invoice
from .payment import Payment

__all__ = [
    "Invoice",
    "Payment",
]
