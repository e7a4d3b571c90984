"""
Unit tests for the validation engine.
"""

from datetime import date
from decimal import Decimal

import pytest

from invoicing.core.catalog import CatalogItem, CatalogLookup
from invoicing.core.draft import InvoiceDraft
from invoicing.core.validation import validate_invoice, validate_item
from invoicing.exceptions import InputValidationError


@pytest.fixture
def catalog():
    return CatalogLookup([
        CatalogItem(item_id=7, item_name='Widget', sales_rate=Decimal('100'), discount_pct=Decimal('10')),
    ])


@pytest.fixture
def valid_draft(catalog):
    return (
        InvoiceDraft.blank(date(2025, 3, 1))
        .set_field('invoice_no', '1001')
        .set_field('customer_name', 'Ravi Kumar')
        .set_field('tax_percentage', Decimal('5'))
        .update_line(0, 'item_id', 7, catalog=catalog)
        .update_line(0, 'quantity', 3)
    )


class TestInvoiceValidation:
    """Document and line rules."""

    def test_valid_draft(self, valid_draft, catalog):
        """Test that a complete draft passes and yields coerced data."""
        report = validate_invoice(valid_draft, catalog)
        assert report.is_valid
        assert report.errors == {}
        assert report.data['invoiceNo'] == '1001'
        assert report.data['invoiceDate'] == date(2025, 3, 1)
        assert report.data['lines'][0]['quantity'] == 3

    def test_required_header_fields(self, valid_draft):
        """Test the required header fields."""
        draft = valid_draft.set_field('invoice_no', '').set_field('customer_name', '  ').set_field('invoice_date', None)
        report = validate_invoice(draft)

        assert report.error_for('invoiceNo') == 'Invoice number is required'
        assert report.error_for('customerName') == 'Customer name is required'
        assert report.error_for('invoiceDate') == 'Invoice date is required'

    def test_invoice_number_must_be_digits(self, valid_draft):
        """Test that the invoice number is digits only."""
        report = validate_invoice(valid_draft.set_field('invoice_no', 'INV-1'))
        assert report.error_for('invoiceNo') == 'Invoice number must contain only numbers'

    def test_only_first_error_per_field(self, valid_draft):
        """Test that only the first broken rule of a field is reported."""
        report = validate_invoice(valid_draft.set_field('invoice_no', 'x' * 60))
        assert report.error_for('invoiceNo') == 'Invoice number must contain only numbers'

    def test_tax_range(self, valid_draft):
        """Test the tax percentage range."""
        report = validate_invoice(valid_draft.set_field('tax_percentage', Decimal('101')))
        assert report.error_for('taxPercentage') == 'Tax must be between 0 and 100'

    def test_text_lengths(self, valid_draft):
        """Test the address and city length limits."""
        draft = valid_draft.set_field('city', 'c' * 51).set_field('address', 'a' * 201)
        report = validate_invoice(draft)
        assert report.error_for('city') == 'City must be less than 50 characters'
        assert report.error_for('address') == 'Address must be less than 200 characters'

    def test_line_without_item(self, valid_draft):
        """Test that a line without an item is reported on that line only."""
        report = validate_invoice(valid_draft.add_line())
        assert report.error_for('lines[1].itemID') == 'Please select an item'
        assert report.error_for('lines[0].itemID') is None

    def test_line_quantity_and_rate(self, valid_draft):
        """Test the quantity minimum and the required rate."""
        draft = valid_draft.update_line(0, 'quantity', 0).update_line(0, 'rate', None)
        report = validate_invoice(draft)
        assert report.error_for('lines[0].quantity') == 'Quantity must be at least 1'
        assert report.error_for('lines[0].rate') == 'Rate is required'

    def test_fractional_quantity_is_rejected(self, valid_draft):
        """Test that a fractional quantity is rejected, not truncated."""
        report = validate_invoice(valid_draft.update_line(0, 'quantity', '2.5'))
        assert report.error_for('lines[0].quantity') == 'Not a valid integer value.'

    def test_line_discount_range(self, valid_draft):
        """Test the line discount range."""
        report = validate_invoice(valid_draft.update_line(0, 'discount_pct', Decimal('-1')))
        assert report.error_for('lines[0].discountPct') == 'Discount must be between 0 and 100'

    def test_amounts_are_limited_to_two_decimals(self, valid_draft):
        """Test that rate, discount and tax cannot carry more precision than is stored."""
        draft = (
            valid_draft
            .update_line(0, 'rate', Decimal('0.125'))
            .update_line(0, 'discount_pct', Decimal('10.005'))
            .set_field('tax_percentage', Decimal('5.555'))
        )
        report = validate_invoice(draft)

        assert report.error_for('lines[0].rate') == 'Rate can have at most 2 decimal places'
        assert report.error_for('lines[0].discountPct') == 'Discount can have at most 2 decimal places'
        assert report.error_for('taxPercentage') == 'Tax can have at most 2 decimal places'

    def test_trailing_zeros_are_not_extra_decimals(self, valid_draft):
        """Test that 0.120 is accepted as a two-decimal rate."""
        report = validate_invoice(valid_draft.update_line(0, 'rate', '0.120'))
        assert report.error_for('lines[0].rate') is None

    def test_quantity_upper_bound(self, valid_draft):
        """Test that a quantity beyond the storable range is reported on the line."""
        report = validate_invoice(valid_draft.update_line(0, 'quantity', 10 ** 20))
        assert report.error_for('lines[0].quantity') == 'Quantity must be at most 1000000000'

    def test_item_missing_from_catalog(self, valid_draft, catalog):
        """Test that an item outside the catalog snapshot is reported."""
        report = validate_invoice(valid_draft.update_line(0, 'item_id', 99, catalog=catalog), catalog)
        assert report.error_for('lines[0].itemID') == 'Selected item does not exist'

    def test_empty_line_list(self):
        """Test that an invoice needs at least one line."""
        payload = {
            'invoiceNo': 1, 'invoiceDate': '2025-03-01', 'customerName': 'Ravi',
            'taxPercentage': 0, 'lines': [],
        }
        report = validate_invoice(payload)
        assert report.error_for('lines') == 'At least one line item is required'

    def test_wire_payload_with_bad_date(self):
        """Test that an unparseable date is reported."""
        payload = {
            'invoiceNo': 1, 'invoiceDate': '31/02/2025', 'customerName': 'Ravi',
            'lines': [{'rowNo': 1, 'itemID': 7, 'quantity': 1, 'rate': 10}],
        }
        report = validate_invoice(payload)
        assert 'invoiceDate' in report.errors

    def test_raise_for_errors(self, valid_draft):
        """Test raising InputValidationError from a failed report."""
        report = validate_invoice(valid_draft.set_field('customer_name', ''))
        with pytest.raises(InputValidationError) as exc_info:
            report.raise_for_errors()
        assert exc_info.value.errors == {'customerName': 'Customer name is required'}
        assert exc_info.value.status_code == 422


class TestItemValidation:
    """Tests for catalog item rules."""

    def test_valid_item(self):
        """Test that a complete item passes."""
        report = validate_item({'itemName': 'Widget', 'salesRate': 100, 'discountPct': 10})
        assert report.is_valid
        assert report.data['salesRate'] == Decimal('100')

    def test_item_rules(self):
        """Test the first error of every item field."""
        report = validate_item({'itemName': '', 'salesRate': -1, 'discountPct': 120, 'description': 'd' * 501})
        assert report.errors == {
            'itemName': 'Item name is required',
            'salesRate': 'Sales rate must be 0 or greater',
            'discountPct': 'Discount must be between 0 and 100',
            'description': 'Description must be less than 500 characters',
        }

    def test_item_name_length(self):
        """Test the item name length limit."""
        report = validate_item({'itemName': 'n' * 51, 'salesRate': 1})
        assert report.error_for('itemName') == 'Item name must be less than 50 characters'

    def test_item_amount_places(self):
        """Test that item amounts are limited to two decimals."""
        report = validate_item({'itemName': 'Bolt', 'salesRate': '2.555', 'discountPct': '1.001'})
        assert report.errors == {
            'salesRate': 'Sales rate can have at most 2 decimal places',
            'discountPct': 'Discount can have at most 2 decimal places',
        }
