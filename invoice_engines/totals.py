"""
Totals Engine - Calculate invoice subtotal, discount, tax and total.

Two tax modes, chosen by the caller from the line items:
    - Uniform: one invoice-wide tax rate.
    - Per-line: every line item carries its own tax assessments.

Two rounding modes (uniform mode only, see compute_per_line_totals):
    - line:  round each line's tax and total to cents, then sum.
    - total: sum unrounded, round once at the aggregate level.

Two pricing modes:
    - exclusive: tax is added on top of the discounted amount.
    - inclusive: unit prices already embed tax; tax is carved out and the
      total equals the discounted gross.

Pure functions with no I/O.  Numeric input is coerced, never rejected:
unusable quantities, prices, rates and discounts count as zero, and so do
magnitudes of 1e29 or more.  Arithmetic runs under ``money_context()`` so
large but storable figures still round to cents.

Usage:
    from decimal import Decimal
    from invoice_engines.totals import LineItem, compute_uniform_totals

    result = compute_uniform_totals(
        items=[LineItem(quantity=Decimal("2"), unit_price=Decimal("50"))],
        tax_rate=Decimal("10"),
    )
    print(result.total)  # Decimal("110.00")
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from invoice_engines.tracer import traced_engine
from invoice_kernel.domain.values import (
    HUNDRED,
    ONE,
    ZERO,
    money_context,
    round_money,
    to_bool,
    to_decimal,
    to_quantity,
)
from invoice_kernel.logging_config import get_logger

logger = get_logger("engines.totals")


class RoundingMode(str, Enum):
    """Where amounts are rounded to currency precision."""

    LINE = "line"  # Per line item, before summation
    TOTAL = "total"  # Once, after summation

    @classmethod
    def coerce(cls, value: object) -> RoundingMode:
        """Lenient lookup: unknown or missing values fall back to LINE."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.LINE


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaxAssessment:
    """
    One tax applied to a single line item.

    The percent is not clamped; whether the tax is embedded in the price
    comes from the invoice-level prices_include_tax flag.
    """

    percent: Decimal
    tax_definition_id: str | None = None
    note: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "percent", to_decimal(self.percent))


@dataclass(frozen=True)
class LineItem:
    """
    Invoice line as seen by the engine.

    Quantity is coerced to a non-negative Decimal; unit price may be
    negative (credit lines).
    """

    quantity: Decimal
    unit_price: Decimal
    note: str | None = None
    taxes: tuple[TaxAssessment, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity", to_quantity(self.quantity))
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price))
        object.__setattr__(self, "taxes", tuple(self.taxes))

    @property
    def gross(self) -> Decimal:
        """quantity x unit_price, unrounded."""
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class InvoicePolicy:
    """Invoice-level parameters for the totals calculation."""

    discount_percentage: Decimal = ZERO
    discount_amount: Decimal = ZERO
    tax_rate: Decimal = ZERO  # Percent; uniform mode only
    prices_include_tax: bool = False
    rounding_mode: RoundingMode = RoundingMode.LINE

    def __post_init__(self) -> None:
        object.__setattr__(self, "discount_percentage", to_decimal(self.discount_percentage))
        object.__setattr__(self, "discount_amount", to_decimal(self.discount_amount))
        object.__setattr__(self, "tax_rate", to_decimal(self.tax_rate))
        object.__setattr__(self, "prices_include_tax", to_bool(self.prices_include_tax))
        object.__setattr__(self, "rounding_mode", RoundingMode.coerce(self.rounding_mode))


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineTotals:
    """Rounded figures for one line in uniform mode with line rounding."""

    gross: Decimal
    discount: Decimal
    taxable: Decimal
    tax: Decimal
    total: Decimal


@dataclass(frozen=True)
class TotalsResult:
    """
    Uniform-mode result.

    ``lines`` is empty when the aggregate (total-rounding) branch ran.
    """

    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    rounding_mode: RoundingMode = RoundingMode.LINE
    prices_include_tax: bool = False
    lines: tuple[LineTotals, ...] = ()


@dataclass(frozen=True)
class AssessedTax:
    """Calculated amount for one TaxAssessment."""

    percent: Decimal  # Rounded to 2 dp
    amount: Decimal
    included: bool = False
    tax_definition_id: str | None = None
    note: str | None = None


@dataclass(frozen=True)
class ItemTaxBreakdown:
    """Per-item detail in per-line mode."""

    taxable: Decimal
    discount: Decimal
    taxes: tuple[AssessedTax, ...] = ()

    @property
    def tax_total(self) -> Decimal:
        return sum((t.amount for t in self.taxes), ZERO)


@dataclass(frozen=True)
class TaxSummaryRow:
    """Invoice-level tax line, grouped by rate."""

    percent: Decimal
    taxable: Decimal
    amount: Decimal
    tax_definition_id: str | None = None


@dataclass(frozen=True)
class PerLineTotalsResult:
    """Per-line-mode result with item breakdown and rate summary."""

    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    items: tuple[ItemTaxBreakdown, ...] = ()
    summary: tuple[TaxSummaryRow, ...] = ()
    rounding_mode: RoundingMode = RoundingMode.LINE
    prices_include_tax: bool = False

    @property
    def summary_total(self) -> Decimal:
        return sum((row.amount for row in self.summary), ZERO)


InvoiceTotals = TotalsResult | PerLineTotalsResult


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


@money_context()
def resolve_discount(
    subtotal: Decimal,
    discount_percentage: Decimal | int | str = ZERO,
    discount_amount: Decimal | int | str = ZERO,
) -> Decimal:
    """
    Effective (unrounded) invoice discount.

    A positive percentage wins over the absolute amount.  The result is
    clamped to [0, subtotal]; a non-positive subtotal allows no discount.
    """
    percentage = to_decimal(discount_percentage)
    if percentage > ZERO:
        raw = subtotal * percentage / HUNDRED
    else:
        raw = to_decimal(discount_amount)
    upper = subtotal if subtotal > ZERO else ZERO
    return min(max(raw, ZERO), upper)


@money_context()
def allocate_discount(
    grosses: Sequence[Decimal],
    discount: Decimal,
) -> tuple[Decimal, ...]:
    """
    Spread an invoice discount over lines in proportion to their gross.

    Every line but the last gets its rounded proportional share; the last
    line takes round(discount) minus everything already handed out, so the
    allocations always sum to the rounded discount.  A zero subtotal gets
    no allocation at all.
    """
    if not grosses:
        return ()
    subtotal = sum(grosses, ZERO)
    if subtotal == ZERO:
        return tuple(ZERO for _ in grosses)

    target = round_money(discount)
    last = len(grosses) - 1
    distributed = ZERO
    allocations: list[Decimal] = []
    for idx, gross in enumerate(grosses):
        if idx == last:
            allocations.append(target - distributed)
            break
        share = round_money(discount * gross / subtotal)
        distributed += share
        allocations.append(share)
    return tuple(allocations)


def _net_of_tax(amount: Decimal, rate: Decimal) -> Decimal:
    """Strip an embedded tax of ``rate`` (fraction) from ``amount``."""
    if rate > ZERO:
        return amount / (ONE + rate)
    return amount


def _uniform_line(
    gross: Decimal,
    discount: Decimal,
    rate: Decimal,
    prices_include_tax: bool,
) -> LineTotals:
    after_discount = max(gross - discount, ZERO)
    if prices_include_tax:
        net = _net_of_tax(after_discount, rate)
        tax = round_money(after_discount - net)
        total = round_money(after_discount)
    else:
        net = after_discount
        tax = round_money(after_discount * rate)
        total = round_money(after_discount + tax)
    return LineTotals(
        gross=round_money(gross),
        discount=discount,
        taxable=round_money(net),
        tax=tax,
        total=total,
    )


def has_per_line_taxes(items: Sequence[LineItem]) -> bool:
    """True when any line declares at least one tax assessment."""
    return any(item.taxes for item in items)


# ---------------------------------------------------------------------------
# Engine entry points
# ---------------------------------------------------------------------------


def _trace_summary(result: TotalsResult | PerLineTotalsResult) -> dict[str, str]:
    return {"total": str(result.total), "tax_amount": str(result.tax_amount)}


@traced_engine(
    "totals.uniform",
    "1.0",
    fingerprint_fields=(
        "items",
        "discount_percentage",
        "discount_amount",
        "tax_rate",
        "prices_include_tax",
        "rounding_mode",
    ),
    summarize=_trace_summary,
)
@money_context()
def compute_uniform_totals(
    items: Sequence[LineItem],
    discount_percentage: Decimal | int | str = ZERO,
    discount_amount: Decimal | int | str = ZERO,
    tax_rate: Decimal | int | str = ZERO,
    prices_include_tax: bool = False,
    rounding_mode: RoundingMode | str = RoundingMode.LINE,
) -> TotalsResult:
    """
    Totals with a single invoice-wide tax rate.

    Args:
        items: Line items (quantity, unit price).
        discount_percentage: Percent discount; takes precedence when > 0.
        discount_amount: Absolute discount, used when no percentage.
        tax_rate: Tax rate in percent; negative rates count as zero.
        prices_include_tax: True if unit prices already embed the tax.
        rounding_mode: "line" rounds per line before summing (only when
            the subtotal is positive); "total" rounds once.

    Returns:
        TotalsResult with all amounts rounded to cents.
    """
    mode = RoundingMode.coerce(rounding_mode)
    include = to_bool(prices_include_tax)
    rate = max(to_decimal(tax_rate), ZERO) / HUNDRED

    grosses = [item.gross for item in items]
    subtotal = sum(grosses, ZERO)
    final_discount = resolve_discount(subtotal, discount_percentage, discount_amount)

    logger.debug("uniform_totals_started", extra={
        "item_count": len(grosses),
        "subtotal": str(subtotal),
        "discount": str(final_discount),
        "tax_rate": str(rate),
        "prices_include_tax": include,
        "rounding_mode": mode.value,
    })

    lines: tuple[LineTotals, ...] = ()
    if mode is RoundingMode.LINE and subtotal > ZERO:
        discounts = allocate_discount(grosses, final_discount)
        lines = tuple(
            _uniform_line(gross, discount, rate, include)
            for gross, discount in zip(grosses, discounts)
        )
        tax_amount = sum((line.tax for line in lines), ZERO)
        total = sum((line.total for line in lines), ZERO)
    else:
        after_discount = subtotal - final_discount
        if include:
            net = _net_of_tax(after_discount, rate)
            tax_amount = round_money(after_discount - net)
            total = round_money(after_discount)
        else:
            tax_amount = round_money(after_discount * rate)
            total = round_money(after_discount + tax_amount)

    result = TotalsResult(
        subtotal=round_money(subtotal),
        discount_amount=round_money(final_discount),
        tax_amount=round_money(tax_amount),
        total=round_money(total),
        rounding_mode=mode,
        prices_include_tax=include,
        lines=lines,
    )

    logger.info("uniform_totals_completed", extra={
        "subtotal": str(result.subtotal),
        "discount_amount": str(result.discount_amount),
        "tax_amount": str(result.tax_amount),
        "total": str(result.total),
        "line_rounded": bool(lines),
    })
    return result


@traced_engine(
    "totals.per_line",
    "1.0",
    fingerprint_fields=(
        "items",
        "discount_percentage",
        "discount_amount",
        "prices_include_tax",
        "rounding_mode",
    ),
    summarize=_trace_summary,
)
@money_context()
def compute_per_line_totals(
    items: Sequence[LineItem],
    discount_percentage: Decimal | int | str = ZERO,
    discount_amount: Decimal | int | str = ZERO,
    prices_include_tax: bool = False,
    rounding_mode: RoundingMode | str = RoundingMode.LINE,
) -> PerLineTotalsResult:
    """
    Totals where each line carries its own tax assessments.

    The discount is always allocated per line and every figure is rounded
    per line: ``rounding_mode`` is recorded on the result but "total" does
    not change the arithmetic.

    For each item the taxable base is the discounted gross, or, when
    prices include tax, the discounted gross divided by one plus the sum
    of the item's rates.  Each assessment is rounded on its own.  The
    summary groups assessments by rounded percent across all items.

    Returns:
        PerLineTotalsResult with per-item breakdown and a summary sorted
        by ascending percent.
    """
    mode = RoundingMode.coerce(rounding_mode)
    include = to_bool(prices_include_tax)
    if mode is RoundingMode.TOTAL:
        logger.debug("per_line_rounding_mode_ignored", extra={
            "rounding_mode": mode.value,
        })

    grosses = [item.gross for item in items]
    subtotal = sum(grosses, ZERO)
    final_discount = resolve_discount(subtotal, discount_percentage, discount_amount)
    discounts = allocate_discount(grosses, final_discount)

    breakdown: list[ItemTaxBreakdown] = []
    summary: dict[Decimal, list[Decimal]] = {}
    tax_amount = ZERO
    total = ZERO

    for item, gross, discount in zip(items, grosses, discounts):
        after_discount = max(gross - discount, ZERO)
        rate_sum = sum((t.percent for t in item.taxes), ZERO) / HUNDRED
        net = _net_of_tax(after_discount, rate_sum) if include else after_discount

        assessed: list[AssessedTax] = []
        for tax in item.taxes:
            percent = round_money(tax.percent)
            amount = round_money(net * tax.percent / HUNDRED)
            assessed.append(
                AssessedTax(
                    percent=percent,
                    amount=amount,
                    included=include,
                    tax_definition_id=tax.tax_definition_id,
                    note=tax.note,
                )
            )
            row = summary.setdefault(percent, [ZERO, ZERO])
            row[0] = round_money(row[0] + net)
            row[1] = round_money(row[1] + amount)

        item_tax = round_money(sum((t.amount for t in assessed), ZERO))
        breakdown.append(
            ItemTaxBreakdown(
                taxable=round_money(net),
                discount=discount,
                taxes=tuple(assessed),
            )
        )
        if include:
            total = round_money(total + after_discount)
        else:
            total = round_money(total + net + item_tax)
        tax_amount = round_money(tax_amount + item_tax)

    rows = tuple(
        TaxSummaryRow(percent=percent, taxable=taxable, amount=amount)
        for percent, (taxable, amount) in sorted(summary.items())
    )

    result = PerLineTotalsResult(
        subtotal=round_money(subtotal),
        discount_amount=round_money(final_discount),
        tax_amount=round_money(tax_amount),
        total=round_money(total),
        items=tuple(breakdown),
        summary=rows,
        rounding_mode=mode,
        prices_include_tax=include,
    )

    logger.info("per_line_totals_completed", extra={
        "item_count": len(breakdown),
        "subtotal": str(result.subtotal),
        "discount_amount": str(result.discount_amount),
        "tax_amount": str(result.tax_amount),
        "total": str(result.total),
        "summary_rows": len(rows),
    })
    return result


def compute_invoice_totals(
    items: Sequence[LineItem],
    policy: InvoicePolicy,
) -> InvoiceTotals:
    """
    Pick the tax mode from the items and run the matching engine.

    Per-line mode when any item declares taxes (policy.tax_rate is then
    ignored), uniform mode otherwise.
    """
    if has_per_line_taxes(items):
        return compute_per_line_totals(
            items,
            discount_percentage=policy.discount_percentage,
            discount_amount=policy.discount_amount,
            prices_include_tax=policy.prices_include_tax,
            rounding_mode=policy.rounding_mode,
        )
    return compute_uniform_totals(
        items,
        discount_percentage=policy.discount_percentage,
        discount_amount=policy.discount_amount,
        tax_rate=policy.tax_rate,
        prices_include_tax=policy.prices_include_tax,
        rounding_mode=policy.rounding_mode,
    )


@money_context()
def uniform_tax_summary(
    result: TotalsResult,
    tax_rate: Decimal | int | str,
    tax_definition_id: str | None = None,
) -> TaxSummaryRow:
    """
    Single invoice-level tax row for a uniform-mode invoice.

    Taxable base is subtotal minus discount, with the embedded tax removed
    when prices include tax.  The amount is the result's tax_amount.
    """
    percent = max(to_decimal(tax_rate), ZERO)
    after_discount = result.subtotal - result.discount_amount
    taxable = after_discount
    if result.prices_include_tax:
        taxable = _net_of_tax(after_discount, percent / HUNDRED)
    return TaxSummaryRow(
        percent=round_money(percent),
        taxable=round_money(taxable),
        amount=result.tax_amount,
        tax_definition_id=tax_definition_id,
    )
