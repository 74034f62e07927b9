"""
Typed views over the settings store.

The settings table holds strings.  ``InvoiceDefaults`` is the policy the
invoice service falls back to when a request omits a field.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal

from invoice_kernel.domain.values import ZERO, to_bool, to_decimal

VALID_ROUNDING_MODES = ("line", "total")


@dataclass(frozen=True)
class InvoiceDefaults:
    """Defaults applied to create/update requests."""

    tax_rate: Decimal = ZERO
    rounding_mode: str = "line"
    prices_include_tax: bool = False
    currency: str = "USD"
    payment_terms: str = "Due in 30 days"

    @classmethod
    def from_settings(cls, settings: Mapping[str, str]) -> InvoiceDefaults:
        """
        Build defaults from the settings mapping.

        A non-numeric ``defaultTaxRate`` counts as 0; an unknown
        ``defaultRoundingMode`` falls back to "line".
        """
        mode = str(settings.get("defaultRoundingMode") or cls.rounding_mode).strip().lower()
        if mode not in VALID_ROUNDING_MODES:
            mode = cls.rounding_mode
        return cls(
            tax_rate=to_decimal(settings.get("defaultTaxRate")),
            rounding_mode=mode,
            prices_include_tax=to_bool(settings.get("defaultPricesIncludeTax")),
            currency=(settings.get("currency") or "").strip() or cls.currency,
            payment_terms=settings.get("paymentTerms") or cls.payment_terms,
        )
