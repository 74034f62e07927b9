"""
invoice_services -- Package init and public API.

Responsibility:
    Stateful orchestration that composes the pure engines
    (invoice_engines/) with database sessions, settings and the clock.
    This is the only layer that may hold a session AND call an engine.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction:
        invoice_services/ -> invoice_engines/  (allowed)
        invoice_services/ -> invoice_kernel/   (allowed)
        invoice_services/ -> invoice_config/   (allowed)
        invoice_engines/  -> invoice_services/ (FORBIDDEN)
        invoice_kernel/   -> invoice_services/ (FORBIDDEN)
"""

from invoice_services.invoice_service import (
    InvoiceInfo,
    InvoiceItemInfo,
    InvoiceService,
    InvoiceTaxInfo,
    ItemTaxInfo,
)

__all__ = [
    "InvoiceInfo",
    "InvoiceItemInfo",
    "InvoiceService",
    "InvoiceTaxInfo",
    "ItemTaxInfo",
]
