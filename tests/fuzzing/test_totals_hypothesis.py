"""
Property-based tests for the totals engines.

Properties checked over generated invoices:
- Every monetary output has exactly two decimal places
- Without a discount, totals are exact: subtotal + tax (exclusive) or
  subtotal (inclusive)
- With a discount, totals stay within a cent per line of the identity
- Discount allocations sum to the rounded discount
- Per-line summary amounts sum to the invoice tax
- The engines are deterministic
- Figures up to the storable limit (and beyond it) never raise and
  still come out in cents
"""

from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from invoice_engines.totals import (
    LineItem,
    TaxAssessment,
    allocate_discount,
    compute_per_line_totals,
    compute_uniform_totals,
)
from invoice_kernel.domain.values import CENT, round_money

FUZZ_SETTINGS = settings(
    max_examples=200,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)

prices = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("99999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
# Whole quantities keep every line gross in cents
quantities = st.integers(min_value=0, max_value=1000).map(Decimal)
rates = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("30"),
    places=3,
    allow_nan=False,
    allow_infinity=False,
)
percentages = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("100"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
rounding_modes = st.sampled_from(["line", "total"])

# Near the Numeric(38, 9) ceiling: 1000 x 9.99e25 stays below 1e29
large_prices = st.decimals(
    min_value=Decimal("1e20"),
    max_value=Decimal("9.99e25"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
# Numeric(9, 4) percentages
large_rates = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("99999.9999"),
    places=4,
    allow_nan=False,
    allow_infinity=False,
)
oversized = st.decimals(
    min_value=Decimal("1e29"),
    max_value=Decimal("1e60"),
    allow_nan=False,
    allow_infinity=False,
)


@composite
def plain_items(draw, max_size=8):
    """Items without their own taxes."""
    count = draw(st.integers(min_value=1, max_value=max_size))
    return [
        LineItem(quantity=draw(quantities), unit_price=draw(prices))
        for _ in range(count)
    ]


@composite
def taxed_items(draw, max_size=6):
    """Items carrying one to three tax assessments each."""
    count = draw(st.integers(min_value=1, max_value=max_size))
    items = []
    for _ in range(count):
        taxes = tuple(
            TaxAssessment(percent=draw(rates))
            for _ in range(draw(st.integers(min_value=1, max_value=3)))
        )
        items.append(LineItem(quantity=draw(quantities), unit_price=draw(prices), taxes=taxes))
    return items


@composite
def large_items(draw, max_size=8):
    """Items priced close to the storage limit, some with huge tax rates."""
    count = draw(st.integers(min_value=1, max_value=max_size))
    items = []
    for _ in range(count):
        taxes = tuple(
            TaxAssessment(percent=draw(large_rates))
            for _ in range(draw(st.integers(min_value=0, max_value=2)))
        )
        items.append(LineItem(quantity=draw(quantities), unit_price=draw(large_prices), taxes=taxes))
    return items

def _is_cents(value: Decimal) -> bool:
    return value == value.quantize(CENT)


class TestUniformProperties:

    @given(items=plain_items(), rate=rates, mode=rounding_modes)
    @FUZZ_SETTINGS
    def test_exclusive_total_without_discount(self, items, rate, mode):
        """total == subtotal + tax, exactly."""
        result = compute_uniform_totals(items, tax_rate=rate, rounding_mode=mode)

        assert result.total == result.subtotal + result.tax_amount
        for amount in (result.subtotal, result.discount_amount, result.tax_amount, result.total):
            assert _is_cents(amount)

    @given(items=plain_items(), rate=rates, mode=rounding_modes)
    @FUZZ_SETTINGS
    def test_inclusive_total_without_discount(self, items, rate, mode):
        """Inclusive totals never add tax on top."""
        result = compute_uniform_totals(
            items,
            tax_rate=rate,
            prices_include_tax=True,
            rounding_mode=mode,
        )

        assert result.total == result.subtotal
        assert result.tax_amount >= 0

    @given(
        items=plain_items(),
        discount=percentages,
        rate=rates,
        mode=rounding_modes,
        include=st.booleans(),
    )
    @FUZZ_SETTINGS
    def test_discounted_total_close_to_identity(self, items, discount, rate, mode, include):
        """Rounding may move the total by at most a cent per line."""
        result = compute_uniform_totals(
            items,
            discount_percentage=discount,
            tax_rate=rate,
            prices_include_tax=include,
            rounding_mode=mode,
        )

        expected = result.subtotal - result.discount_amount
        if not include:
            expected += result.tax_amount
        assert abs(result.total - expected) <= CENT * len(items)
        assert result.discount_amount <= result.subtotal

    @given(items=plain_items(), discount=percentages, rate=rates, mode=rounding_modes)
    @FUZZ_SETTINGS
    def test_deterministic(self, items, discount, rate, mode):
        kwargs = dict(discount_percentage=discount, tax_rate=rate, rounding_mode=mode)

        assert compute_uniform_totals(items, **kwargs) == compute_uniform_totals(items, **kwargs)


class TestAllocationProperties:

    @given(
        grosses=st.lists(prices, min_size=1, max_size=12),
        fraction=st.decimals(min_value=Decimal("0"), max_value=Decimal("1"), places=4),
    )
    @FUZZ_SETTINGS
    def test_allocations_sum_to_rounded_discount(self, grosses, fraction):
        discount = sum(grosses, Decimal("0")) * fraction
        shares = allocate_discount(grosses, discount)

        assert len(shares) == len(grosses)
        assert sum(shares, Decimal("0")) == round_money(discount)


class TestPerLineProperties:

    @given(items=taxed_items(), discount=percentages, include=st.booleans())
    @FUZZ_SETTINGS
    def test_summary_matches_item_taxes(self, items, discount, include):
        """Rows and items account for the same tax."""
        result = compute_per_line_totals(
            items,
            discount_percentage=discount,
            prices_include_tax=include,
        )

        item_tax = sum((b.tax_total for b in result.items), Decimal("0"))
        assert item_tax == result.tax_amount
        assert result.summary_total == result.tax_amount
        assert _is_cents(result.total)

    @given(items=taxed_items())
    @FUZZ_SETTINGS
    def test_inclusive_total_is_subtotal(self, items):
        result = compute_per_line_totals(items, prices_include_tax=True)

        assert result.total == result.subtotal


class TestLargeMagnitudeProperties:

    @given(items=large_items(), rate=large_rates, mode=rounding_modes, include=st.booleans())
    @FUZZ_SETTINGS
    def test_uniform_totals_near_limit(self, items, rate, mode, include):
        plain = [LineItem(quantity=i.quantity, unit_price=i.unit_price) for i in items]
        result = compute_uniform_totals(
            plain,
            tax_rate=rate,
            prices_include_tax=include,
            rounding_mode=mode,
        )

        for amount in (result.subtotal, result.tax_amount, result.total):
            assert _is_cents(amount)
        if include:
            assert result.total == result.subtotal
        else:
            assert result.total == result.subtotal + result.tax_amount

    @given(items=large_items(), discount=percentages, include=st.booleans())
    @FUZZ_SETTINGS
    def test_per_line_totals_near_limit(self, items, discount, include):
        result = compute_per_line_totals(
            items,
            discount_percentage=discount,
            prices_include_tax=include,
        )

        assert result.summary_total == result.tax_amount
        for amount in (result.subtotal, result.discount_amount, result.tax_amount, result.total):
            assert _is_cents(amount)

    @given(price=oversized, rate=oversized, discount=oversized)
    @FUZZ_SETTINGS
    def test_oversized_inputs_count_as_zero(self, price, rate, discount):
        items = [
            LineItem(quantity=1, unit_price=price),
            LineItem(quantity=1, unit_price=10, taxes=(TaxAssessment(percent=rate),)),
        ]

        per_line = compute_per_line_totals(items, discount_amount=discount)
        uniform = compute_uniform_totals(items[:1], tax_rate=rate, discount_amount=discount)

        assert per_line.subtotal == Decimal("10.00")
        assert per_line.tax_amount == Decimal("0.00")
        assert uniform.total == Decimal("0.00")
