"""
Pure domain layer.

Request objects, Decimal helpers and the injectable clock.  Nothing
here touches the ORM or the database, and only SystemClock reads the
wall clock.
"""

from invoice_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from invoice_kernel.domain.invoice_input import (
    InvoiceRequest,
    ItemRequest,
    TaxRequest,
    parse_invoice_request,
)
from invoice_kernel.domain.status import InvoiceStatus
from invoice_kernel.domain.values import (
    CENT,
    HUNDRED,
    ONE,
    ZERO,
    parse_decimal,
    round_money,
    to_bool,
    to_decimal,
    to_quantity,
)

__all__ = [
    # clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # request decoding
    "InvoiceRequest",
    "ItemRequest",
    "TaxRequest",
    "parse_invoice_request",
    "InvoiceStatus",
    # values
    "CENT",
    "HUNDRED",
    "ONE",
    "ZERO",
    "parse_decimal",
    "round_money",
    "to_bool",
    "to_decimal",
    "to_quantity",
]
