"""
Unit tests for the immutable invoice draft.
"""

from datetime import date
from decimal import Decimal

import pytest

from invoicing.core.catalog import CatalogItem, CatalogLookup
from invoicing.core.draft import LAST_LINE_WARNING, InvoiceDraft, InvoiceLine


@pytest.fixture
def catalog():
    return CatalogLookup([
        CatalogItem(item_id=7, item_name='Widget', description='Standard widget',
                    sales_rate=Decimal('100'), discount_pct=Decimal('10')),
        CatalogItem(item_id=8, item_name='Gadget', description='Pocket gadget',
                    sales_rate=Decimal('40'), discount_pct=Decimal('0')),
    ])


def three_line_draft():
    draft = InvoiceDraft.blank(date(2025, 3, 1)).add_line().add_line()
    for index, rate in enumerate((10, 20, 30)):
        draft = draft.update_line(index, 'rate', Decimal(rate))
    return draft


class TestLines:
    """Tests for add/remove/update of lines."""

    def test_blank_draft_has_one_line(self):
        """Test that a new draft starts with one blank line."""
        draft = InvoiceDraft.blank()
        assert len(draft.lines) == 1
        assert draft.lines[0].row_no == 1
        assert draft.lines[0].quantity == 1
        assert not draft.is_persisted

    def test_add_line_returns_new_draft(self):
        """Test that adding a line leaves the original draft untouched."""
        draft = InvoiceDraft.blank()
        bigger = draft.add_line()
        assert len(draft.lines) == 1
        assert [line.row_no for line in bigger.lines] == [1, 2]

    def test_remove_middle_line_renumbers(self):
        """Removing line 2 of 3 turns old line 3 into row 2."""
        draft = three_line_draft()
        smaller = draft.remove_line(1)

        assert [line.row_no for line in smaller.lines] == [1, 2]
        assert [line.rate for line in smaller.lines] == [Decimal(10), Decimal(30)]

    def test_remove_last_remaining_line_is_refused(self):
        """Test that the only line cannot be removed."""
        draft = InvoiceDraft.blank()
        result = draft.remove_line(0)

        assert result.lines == draft.lines
        assert result.notice == LAST_LINE_WARNING

    def test_draft_never_empty_after_any_sequence(self):
        """Test that no sequence of removals empties the draft."""
        draft = three_line_draft()
        for _ in range(5):
            draft = draft.remove_line(0)
            assert len(draft.lines) >= 1
            assert [line.row_no for line in draft.lines] == list(range(1, len(draft.lines) + 1))

    def test_add_after_remove_does_not_collide(self):
        """Test that a new row number never collides with an existing one."""
        draft = three_line_draft().remove_line(0).add_line()
        row_numbers = [line.row_no for line in draft.lines]
        assert len(set(row_numbers)) == len(row_numbers)

    def test_remove_out_of_range(self):
        """Test removing a line that does not exist."""
        with pytest.raises(IndexError):
            InvoiceDraft.blank().remove_line(3)

    def test_unknown_line_field(self):
        """Test updating a field lines do not have."""
        with pytest.raises(ValueError):
            InvoiceDraft.blank().update_line(0, 'colour', 'red')


class TestCatalogDefaults:
    """Selecting an item copies its defaults onto the line."""

    def test_selecting_item_applies_catalog_values(self, catalog):
        """Test that picking an item copies its description, rate and discount."""
        draft = InvoiceDraft.blank().update_line(0, 'item_id', 7, catalog=catalog)
        line = draft.lines[0]

        assert line.item_id == 7
        assert line.description == 'Standard widget'
        assert line.rate == Decimal('100')
        assert line.discount_pct == Decimal('10')

    def test_selecting_item_overwrites_manual_edits(self, catalog):
        """Test that picking an item discards manual edits on that line."""
        draft = (
            InvoiceDraft.blank()
            .update_line(0, 'item_id', 7, catalog=catalog)
            .update_line(0, 'rate', Decimal('95'))
            .update_line(0, 'description', 'Custom text')
            .update_line(0, 'item_id', 8, catalog=catalog)
        )
        line = draft.lines[0]
        assert line.description == 'Pocket gadget'
        assert line.rate == Decimal('40')
        assert line.discount_pct == Decimal('0')

    def test_unknown_item_is_stored_untouched(self, catalog):
        """Test that an item missing from the catalog is kept for validation to catch."""
        draft = InvoiceDraft.blank().update_line(0, 'rate', Decimal('5')).update_line(0, 'item_id', 99, catalog=catalog)
        assert draft.lines[0].item_id == 99
        assert draft.lines[0].rate == Decimal('5')

    def test_quantity_is_kept_when_item_changes(self, catalog):
        """Test that changing the item keeps the quantity."""
        draft = InvoiceDraft.blank().update_line(0, 'quantity', 3).update_line(0, 'item_id', 7, catalog=catalog)
        assert draft.lines[0].quantity == 3
        assert draft.lines[0].line_amount == Decimal('270')


class TestDerivedTotals:
    """Tests for totals derived from the lines."""

    def test_totals_follow_edits(self, catalog):
        """Test that totals follow every edit."""
        draft = (
            InvoiceDraft.blank()
            .update_line(0, 'item_id', 7, catalog=catalog)
            .update_line(0, 'quantity', 3)
            .set_field('tax_percentage', Decimal('5'))
        )
        assert draft.sub_total == Decimal('270')
        assert draft.tax_amount == Decimal('13.5')
        assert draft.invoice_amount == Decimal('283.5')

        cheaper = draft.update_line(0, 'quantity', 1)
        assert cheaper.sub_total == Decimal('90')
        assert draft.sub_total == Decimal('270')

    def test_half_typed_input_keeps_totals_rendering(self):
        """Test that half-typed numbers do not break the totals."""
        draft = InvoiceDraft.blank().update_line(0, 'rate', '12.').update_line(0, 'quantity', '')
        assert draft.sub_total == Decimal('12')


class TestPayload:
    """Tests for the wire format."""

    def test_create_payload_has_no_identity(self, catalog):
        """Test the create payload wire names without identity."""
        draft = (
            InvoiceDraft.blank(date(2025, 3, 1))
            .set_field('invoice_no', '1001')
            .set_field('customer_name', 'Ravi')
            .set_field('tax_percentage', Decimal('5'))
            .update_line(0, 'item_id', 7, catalog=catalog)
            .update_line(0, 'quantity', 3)
        )
        payload = draft.to_payload()

        assert 'invoiceID' not in payload
        assert 'updatedOn' not in payload
        assert payload['invoiceNo'] == 1001
        assert payload['invoiceDate'] == '2025-03-01'
        assert payload['subTotal'] == 270.0
        assert payload['taxAmount'] == 13.5
        assert payload['invoiceAmount'] == 283.5
        assert payload['lines'] == [{
            'rowNo': 1, 'itemID': 7, 'description': 'Standard widget',
            'quantity': 3, 'rate': 100, 'discountPct': 10,
        }]

    def test_update_payload_carries_token(self):
        """Test that the update payload carries id and updatedOn."""
        draft = InvoiceDraft.blank().persisted(12, '2025-03-01T10:00:00.000001')
        payload = draft.to_payload(include_identity=True)
        assert payload['invoiceID'] == 12
        assert payload['updatedOn'] == '2025-03-01T10:00:00.000001'

    def test_payload_rows_are_dense(self):
        """Test that payload rows are numbered 1..N."""
        draft = three_line_draft()
        draft = draft.__class__(lines=(draft.lines[0], InvoiceLine(row_no=9)), invoice_date=draft.invoice_date)
        assert [line['rowNo'] for line in draft.to_payload()['lines']] == [1, 2]

    def test_from_record_round_trip(self):
        """Test hydrating a draft from a fetched invoice."""
        record = {
            'invoiceID': 5,
            'invoiceNo': '42',
            'invoiceDate': '2025-02-14T00:00:00',
            'customerName': 'Meera',
            'taxPercentage': 18.0,
            'updatedOn': '2025-02-14T09:30:00.123456',
            'lines': [
                {'rowNo': 2, 'itemID': 8, 'description': 'b', 'quantity': 1, 'rate': 40.0, 'discountPct': 0.0},
                {'rowNo': 1, 'itemID': 7, 'description': 'a', 'quantity': 2, 'rate': 100.0, 'discountPct': 10.0},
            ],
        }
        draft = InvoiceDraft.from_record(record)

        assert draft.is_persisted
        assert draft.invoice_date == date(2025, 2, 14)
        assert draft.updated_on == '2025-02-14T09:30:00.123456'
        assert [line.item_id for line in draft.lines] == [7, 8]
        assert draft.sub_total == Decimal('220')
