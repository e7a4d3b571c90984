"""
Unit tests for line and invoice total computation.
"""

from decimal import Decimal

import pytest

from invoicing.core.computation import (
    Totals, clamp_percentage, compute_line_amount, compute_totals, round2, to_decimal
)
from invoicing.core.draft import InvoiceLine


class TestLineAmount:
    """Tests for compute_line_amount."""

    def test_widget_example(self):
        """3 x 100 with 10% discount is 270."""
        line = InvoiceLine(row_no=1, item_id=7, quantity=3, rate=Decimal('100'), discount_pct=Decimal('10'))
        assert compute_line_amount(line) == Decimal('270')

    def test_accepts_wire_dict(self):
        """Test computing from a wire-shaped line dict."""
        line = {'quantity': 2, 'rate': '12.50', 'discountPct': 20}
        assert compute_line_amount(line) == Decimal('20')

    @pytest.mark.parametrize('rate', [None, '', 'abc', float('nan')])
    def test_malformed_rate_counts_as_zero(self, rate):
        """Test that a missing or malformed rate counts as zero."""
        assert compute_line_amount({'quantity': 4, 'rate': rate, 'discountPct': 0}) == Decimal('0')

    @pytest.mark.parametrize('quantity', [None, '', 'x', 0, -3])
    def test_quantity_below_one_counts_as_one(self, quantity):
        """Test that quantity below one is treated as one."""
        assert compute_line_amount({'quantity': quantity, 'rate': 10, 'discountPct': 0}) == Decimal('10')

    def test_discount_is_clamped(self):
        """Test that discounts outside 0..100 are clamped."""
        assert compute_line_amount({'quantity': 1, 'rate': 50, 'discountPct': 150}) == Decimal('0')
        assert compute_line_amount({'quantity': 1, 'rate': 50, 'discountPct': -5}) == Decimal('50')

    def test_monotonic_in_quantity_and_rate(self):
        """Test that the amount never drops as quantity or rate grows."""
        amounts_by_qty = [compute_line_amount({'quantity': q, 'rate': 9.99, 'discountPct': 5}) for q in range(1, 20)]
        amounts_by_rate = [compute_line_amount({'quantity': 3, 'rate': r, 'discountPct': 5}) for r in range(0, 200, 7)]
        assert amounts_by_qty == sorted(amounts_by_qty)
        assert amounts_by_rate == sorted(amounts_by_rate)

    def test_non_increasing_in_discount(self):
        """Test that the amount never grows as the discount grows."""
        amounts = [compute_line_amount({'quantity': 3, 'rate': 40, 'discountPct': d}) for d in range(0, 101, 5)]
        assert amounts == sorted(amounts, reverse=True)
        assert amounts[-1] == Decimal('0')


class TestTotals:
    """Tests for compute_totals."""

    def test_widget_invoice_with_five_percent_tax(self):
        """Test the single widget line with 5% tax."""
        lines = [InvoiceLine(row_no=1, item_id=7, quantity=3, rate=Decimal('100'), discount_pct=Decimal('10'))]
        totals = compute_totals(lines, 5)

        assert totals.sub_total == Decimal('270')
        assert totals.tax_amount == Decimal('13.5')
        assert totals.invoice_amount == Decimal('283.5')

    def test_sub_total_is_sum_of_lines(self):
        """Test that the subtotal is the sum of line amounts."""
        lines = [
            {'quantity': 2, 'rate': '10.10', 'discountPct': 0},
            {'quantity': 1, 'rate': '5.05', 'discountPct': 50},
        ]
        totals = compute_totals(lines, 0)
        assert totals.sub_total == sum(compute_line_amount(line) for line in lines)
        assert totals.tax_amount == Decimal('0')

    def test_recomputation_is_idempotent(self):
        """Test that computing twice gives identical totals."""
        lines = [{'quantity': 7, 'rate': '3.33', 'discountPct': '12.5'}]
        assert compute_totals(lines, '18') == compute_totals(lines, '18')

    def test_empty_lines(self):
        """Test totals of an empty line collection."""
        assert compute_totals([], 10) == Totals(Decimal('0'), Decimal('0'), Decimal('0'))

    def test_malformed_tax_counts_as_zero(self):
        """Test that malformed tax counts as zero."""
        totals = compute_totals([{'quantity': 1, 'rate': 10, 'discountPct': 0}], 'ten')
        assert totals.invoice_amount == totals.sub_total

    def test_rounding_only_at_the_edge(self):
        """Full precision inside, half-up cents in to_dict()."""
        totals = compute_totals([{'quantity': 1, 'rate': '0.125', 'discountPct': 0}], 0)
        assert totals.sub_total == Decimal('0.125')
        assert totals.to_dict() == {'subTotal': 0.13, 'taxAmount': 0.0, 'invoiceAmount': 0.13}


class TestHelpers:
    """Tests for the conversion and rounding helpers."""

    def test_to_decimal(self):
        """Test converting wire and user input to Decimal."""
        assert to_decimal('  2.50 ') == Decimal('2.50')
        assert to_decimal(True) == Decimal('0')
        assert to_decimal('inf') == Decimal('0')
        assert to_decimal(None, Decimal('1')) == Decimal('1')

    def test_round2_half_up(self):
        """Test that display rounding is half-up."""
        assert round2('2.345') == Decimal('2.35')
        assert round2('garbage') == Decimal('0.00')

    def test_clamp_percentage(self):
        """Test clamping percentages into 0..100."""
        assert clamp_percentage(101) == Decimal('100')
        assert clamp_percentage('-1') == Decimal('0')
