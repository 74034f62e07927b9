"""Domain models for the invoice kernel."""

from invoice_kernel.models.invoice import (
    Invoice,
    InvoiceItem,
    InvoiceItemTax,
    InvoiceStatus,
    InvoiceTax,
)
from invoice_kernel.models.setting import Setting

__all__ = [
    "Invoice",
    "InvoiceItem",
    "InvoiceItemTax",
    "InvoiceStatus",
    "InvoiceTax",
    "Setting",
]
