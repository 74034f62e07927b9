"""
Module: invoice_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for the
    services and scripts.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import invoice_kernel.domain.values and the kernel logger.
    MUST NOT import invoice_kernel.services or invoice_kernel.models.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Dates and random sources are passed in as explicit parameters.
    - Decimal-only arithmetic: floats are converted through ``str`` on entry.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from invoice_engines import InvoicePolicy, LineItem, compute_invoice_totals
    from invoice_engines import NumberingPolicy, next_invoice_number
"""

from invoice_engines.numbering import (
    NumberingPolicy,
    draft_invoice_number,
    is_draft_number,
    next_invoice_number,
    random_token,
    render_pattern,
)
from invoice_engines.totals import (
    AssessedTax,
    InvoicePolicy,
    InvoiceTotals,
    ItemTaxBreakdown,
    LineItem,
    LineTotals,
    PerLineTotalsResult,
    RoundingMode,
    TaxAssessment,
    TaxSummaryRow,
    TotalsResult,
    allocate_discount,
    compute_invoice_totals,
    compute_per_line_totals,
    compute_uniform_totals,
    has_per_line_taxes,
    resolve_discount,
    uniform_tax_summary,
)
from invoice_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # numbering
    "NumberingPolicy",
    "draft_invoice_number",
    "is_draft_number",
    "next_invoice_number",
    "random_token",
    "render_pattern",
    # totals
    "AssessedTax",
    "InvoicePolicy",
    "InvoiceTotals",
    "ItemTaxBreakdown",
    "LineItem",
    "LineTotals",
    "PerLineTotalsResult",
    "RoundingMode",
    "TaxAssessment",
    "TaxSummaryRow",
    "TotalsResult",
    "allocate_discount",
    "compute_invoice_totals",
    "compute_per_line_totals",
    "compute_uniform_totals",
    "has_per_line_taxes",
    "resolve_discount",
    "uniform_tax_summary",
    # tracer
    "compute_input_fingerprint",
    "traced_engine",
]
