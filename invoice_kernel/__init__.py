"""
Invoice Kernel

Persistence and validation core of the invoicing system:
- Strict decoding of create/update invoice requests
- Decimal money helpers (cent rounding, half away from zero)
- ORM models for invoices, line items, taxes and settings
- Flush-only services; callers own the transaction
- Structured JSON logging and a typed exception hierarchy
"""

__version__ = "0.1.0"
