"""
Tests for per-line tax mode.

Covers:
- Multiple assessments on one item
- Inclusive pricing with several rates
- Summary grouping by rounded percent
- Discount allocation before tax
- Rounding mode recorded but not applied
"""

from decimal import Decimal

from invoice_engines.totals import (
    LineItem,
    RoundingMode,
    TaxAssessment,
    TaxSummaryRow,
    compute_per_line_totals,
)


def taxed(quantity, unit_price, *assessments) -> LineItem:
    taxes = []
    for entry in assessments:
        if isinstance(entry, tuple):
            percent, definition_id = entry
        else:
            percent, definition_id = entry, None
        taxes.append(TaxAssessment(percent=Decimal(str(percent)), tax_definition_id=definition_id))
    return LineItem(
        quantity=Decimal(str(quantity)),
        unit_price=Decimal(str(unit_price)),
        taxes=tuple(taxes),
    )


class TestMultipleAssessments:
    """Each assessment is computed on the item's taxable base."""

    def test_two_taxes_on_one_item(self):
        result = compute_per_line_totals([taxed(1, 100, 5, 10)])

        amounts = [t.amount for t in result.items[0].taxes]
        assert amounts == [Decimal("5.00"), Decimal("10.00")]
        assert result.summary == (
            TaxSummaryRow(percent=Decimal("5.00"), taxable=Decimal("100.00"), amount=Decimal("5.00")),
            TaxSummaryRow(percent=Decimal("10.00"), taxable=Decimal("100.00"), amount=Decimal("10.00")),
        )
        assert result.tax_amount == Decimal("15.00")
        assert result.total == Decimal("115.00")

    def test_item_tax_total(self):
        result = compute_per_line_totals([taxed(1, 100, 5, 10)])

        assert result.items[0].tax_total == Decimal("15.00")
        assert result.summary_total == result.tax_amount

    def test_assessment_keeps_definition_and_note(self):
        item = LineItem(
            quantity=Decimal("1"),
            unit_price=Decimal("40"),
            taxes=(TaxAssessment(percent=Decimal("20"), tax_definition_id="vat", note="standard"),),
        )
        result = compute_per_line_totals([item])

        assessed = result.items[0].taxes[0]
        assert assessed.tax_definition_id == "vat"
        assert assessed.note == "standard"
        assert assessed.included is False
        assert assessed.amount == Decimal("8.00")

    def test_untaxed_item_contributes_net(self):
        result = compute_per_line_totals([taxed(1, 100, 5), taxed(2, 25)])

        assert result.items[1].taxes == ()
        assert result.tax_amount == Decimal("5.00")
        assert result.total == Decimal("155.00")

    def test_negative_percent_not_clamped(self):
        result = compute_per_line_totals([taxed(1, 100, -5)])

        assert result.tax_amount == Decimal("-5.00")
        assert result.total == Decimal("95.00")


class TestInclusivePricing:
    """Embedded taxes are carved out using the item's combined rate."""

    def test_combined_rate_carve_out(self):
        result = compute_per_line_totals([taxed(1, 115, 5, 10)], prices_include_tax=True)

        breakdown = result.items[0]
        assert breakdown.taxable == Decimal("100.00")
        assert [t.amount for t in breakdown.taxes] == [Decimal("5.00"), Decimal("10.00")]
        assert all(t.included for t in breakdown.taxes)
        assert result.tax_amount == Decimal("15.00")
        assert result.total == Decimal("115.00")

    def test_total_is_discounted_gross(self):
        result = compute_per_line_totals(
            [taxed(1, 110, 10), taxed(1, 110, 10)],
            discount_amount=Decimal("22"),
            prices_include_tax=True,
        )

        assert result.total == Decimal("198.00")
        assert result.tax_amount == Decimal("18.00")
        assert result.summary[0].taxable == Decimal("180.00")


class TestSummaryGrouping:
    """Rows are keyed by rounded percent and sorted ascending."""

    def test_same_rate_different_definitions_merge(self):
        result = compute_per_line_totals([
            taxed(1, 100, (10, "state")),
            taxed(1, 50, (10, "city")),
        ])

        assert len(result.summary) == 1
        row = result.summary[0]
        assert row.taxable == Decimal("150.00")
        assert row.amount == Decimal("15.00")
        assert row.tax_definition_id is None

    def test_sorted_by_percent(self):
        result = compute_per_line_totals([taxed(1, 100, 20), taxed(1, 100, 7)])

        assert [row.percent for row in result.summary] == [Decimal("7.00"), Decimal("20.00")]

    def test_percent_rounded_to_cents(self):
        result = compute_per_line_totals([taxed(1, 100, "8.875")])

        assert result.items[0].taxes[0].percent == Decimal("8.88")
        assert result.items[0].taxes[0].amount == Decimal("8.88")
        assert result.summary[0].percent == Decimal("8.88")


class TestDiscounts:
    """The invoice discount is spread over items before tax."""

    def test_discount_allocation_then_tax(self):
        result = compute_per_line_totals(
            [taxed(1, 60, 10), taxed(1, 40, 10)],
            discount_amount=Decimal("10"),
        )

        assert [b.discount for b in result.items] == [Decimal("6.00"), Decimal("4.00")]
        assert result.summary == (
            TaxSummaryRow(percent=Decimal("10.00"), taxable=Decimal("90.00"), amount=Decimal("9.00")),
        )
        assert result.tax_amount == Decimal("9.00")
        assert result.total == Decimal("99.00")

    def test_percentage_discount(self):
        result = compute_per_line_totals(
            [taxed(4, 25, 10)],
            discount_percentage=Decimal("50"),
        )

        assert result.discount_amount == Decimal("50.00")
        assert result.total == Decimal("55.00")


class TestRoundingModeIgnored:
    """Per-line mode always rounds per line."""

    def setup_method(self):
        self.items = [taxed(1, "1.05", 5), taxed(1, "1.05", 5), taxed(1, "1.05", 5)]

    def test_total_mode_matches_line_mode(self):
        line = compute_per_line_totals(self.items, rounding_mode="line")
        total = compute_per_line_totals(self.items, rounding_mode="total")

        assert total.tax_amount == line.tax_amount == Decimal("0.15")
        assert total.total == line.total == Decimal("3.30")
        assert total.rounding_mode is RoundingMode.TOTAL

    def test_ignored_mode_is_logged(self, captured_logs):
        compute_per_line_totals(self.items, rounding_mode="total")

        logs = captured_logs()
        ignored = [r for r in logs if r["message"] == "per_line_rounding_mode_ignored"]
        assert len(ignored) == 1
        assert ignored[0]["rounding_mode"] == "total"


class TestLargeMagnitudes:

    def test_huge_percent_does_not_overflow(self):
        result = compute_per_line_totals([taxed(1, 100, "1e27")])

        assert result.tax_amount == Decimal("1000000000000000000000000000.00")
        assert result.total == Decimal("1000000000000000000000000100.00")
        assert result.summary[0].amount == result.tax_amount

    def test_huge_percent_inclusive(self):
        result = compute_per_line_totals([taxed(1, 100, "1e27")], prices_include_tax=True)

        assert result.total == Decimal("100.00")
        assert result.tax_amount == Decimal("100.00")

    def test_percent_out_of_range_counts_as_zero(self):
        result = compute_per_line_totals([taxed(2, "5e27", "1e30")])

        assert result.subtotal == Decimal("10000000000000000000000000000.00")
        assert result.tax_amount == Decimal("0.00")


class TestEmpty:
    def test_no_items(self):
        result = compute_per_line_totals([])

        assert result.items == ()
        assert result.summary == ()
        assert result.total == Decimal("0.00")
