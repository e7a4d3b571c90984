"""Invoice Draft State - immutable invoice being composed in memory.

Every operation returns a new ``InvoiceDraft``; nothing is mutated in place.
Derived values (line amounts, subtotal, tax, invoice amount) are properties
recomputed from the lines on each access, so they can never go stale.
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Tuple

from invoicing.core.catalog import CatalogLookup
from invoicing.core.computation import ZERO, Totals, compute_line_amount, compute_totals, round2, to_decimal

logger = logging.getLogger(__name__)

LAST_LINE_WARNING = 'Invoice must have at least one line item'

LINE_FIELDS = ('item_id', 'description', 'quantity', 'rate', 'discount_pct')
HEADER_FIELDS = ('invoice_no', 'invoice_date', 'customer_name', 'address', 'city', 'tax_percentage', 'notes')


def parse_date(value: Any) -> Optional[date]:
    """Accept a date, a datetime or an ISO string ('2025-01-31' or '2025-01-31T00:00:00')."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def _int_or_zero(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def json_number(value: Any) -> Any:
    """Decimals become JSON numbers; anything else (incl. half-typed text) is passed through."""
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    return value


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass(frozen=True)
class InvoiceLine:
    """One row of a draft. ``line_amount`` is derived, not stored."""

    row_no: int
    item_id: int = 0
    description: str = ''
    quantity: Any = 1
    rate: Any = ZERO
    discount_pct: Any = ZERO

    @property
    def line_amount(self) -> Decimal:
        return compute_line_amount(self)

    @classmethod
    def from_payload(cls, data: dict) -> 'InvoiceLine':
        return cls(
            row_no=int(data.get('rowNo') or 0),
            item_id=_int_or_zero(data.get('itemID')),
            description=data.get('description') or '',
            quantity=data.get('quantity', 1),
            rate=to_decimal(data.get('rate')),
            discount_pct=to_decimal(data.get('discountPct')),
        )

    def to_payload(self, row_no: Optional[int] = None) -> dict:
        return {
            'rowNo': self.row_no if row_no is None else row_no,
            'itemID': self.item_id,
            'description': self.description,
            'quantity': json_number(self.quantity),
            'rate': json_number(self.rate),
            'discountPct': json_number(self.discount_pct),
        }


@dataclass(frozen=True)
class InvoiceDraft:
    """
    Invoice being composed or edited.

    ``invoice_id`` and ``updated_on`` are absent until the first successful
    save; ``updated_on`` is the optimistic-concurrency token sent back on
    update. ``notice`` carries the user-facing message produced by the last
    operation (e.g. a rejected removal) and is not part of equality.
    """

    lines: Tuple[InvoiceLine, ...]
    invoice_id: Optional[int] = None
    invoice_no: str = ''
    invoice_date: Optional[date] = None
    customer_name: str = ''
    address: str = ''
    city: str = ''
    tax_percentage: Any = ZERO
    notes: str = ''
    updated_on: Optional[str] = None
    notice: Optional[str] = field(default=None, compare=False)

    # -- construction -------------------------------------------------------

    @classmethod
    def blank(cls, invoice_date: Optional[date] = None) -> 'InvoiceDraft':
        """Fresh draft with a single blank line."""
        return cls(lines=(InvoiceLine(row_no=1),), invoice_date=invoice_date or date.today())

    @classmethod
    def from_record(cls, record: dict) -> 'InvoiceDraft':
        """Hydrate from a fetched invoice, keeping its updatedOn token."""
        lines = tuple(
            InvoiceLine.from_payload(row)
            for row in sorted(record.get('lines') or [], key=lambda row: row.get('rowNo') or 0)
        )
        if not lines:
            lines = (InvoiceLine(row_no=1),)
        invoice_no = record.get('invoiceNo')
        return cls(
            lines=lines,
            invoice_id=record.get('invoiceID'),
            invoice_no='' if invoice_no is None else str(invoice_no),
            invoice_date=parse_date(record.get('invoiceDate')),
            customer_name=record.get('customerName') or '',
            address=record.get('address') or '',
            city=record.get('city') or '',
            tax_percentage=to_decimal(record.get('taxPercentage')),
            notes=record.get('notes') or '',
            updated_on=record.get('updatedOn'),
        )

    # -- derived values -----------------------------------------------------

    @property
    def is_persisted(self) -> bool:
        return self.invoice_id is not None

    @property
    def totals(self) -> Totals:
        return compute_totals(self.lines, self.tax_percentage)

    @property
    def sub_total(self) -> Decimal:
        return self.totals.sub_total

    @property
    def tax_amount(self) -> Decimal:
        return self.totals.tax_amount

    @property
    def invoice_amount(self) -> Decimal:
        return self.totals.invoice_amount

    # -- operations ---------------------------------------------------------

    def add_line(self) -> 'InvoiceDraft':
        """Append a blank line numbered one past the highest existing row."""
        next_row = max((line.row_no for line in self.lines), default=0) + 1
        return replace(self, lines=self.lines + (InvoiceLine(row_no=next_row),), notice=None)

    def remove_line(self, index: int) -> 'InvoiceDraft':
        """
        Remove the line at ``index`` and renumber the rest 1..N.

        Removing the only line is refused: the same lines come back with
        ``notice`` set to a warning for the user.
        """
        self._check_index(index)
        if len(self.lines) == 1:
            logger.warning(f"[DRAFT] Refused to remove the last line of invoice {self.invoice_no or '(new)'}")
            return replace(self, notice=LAST_LINE_WARNING)
        remaining = self.lines[:index] + self.lines[index + 1:]
        return replace(self, lines=_renumber(remaining), notice=None)

    def update_line(self, index: int, field_name: str, value: Any,
                    catalog: Optional[CatalogLookup] = None) -> 'InvoiceDraft':
        """
        Set one field on one line.

        Setting ``item_id`` also copies description, rate and discount from
        the catalog entry for that item, overwriting whatever the user typed
        into those fields on this line. An id missing from the catalog is
        stored as-is and left for validation to reject.
        """
        self._check_index(index)
        if field_name not in LINE_FIELDS:
            raise ValueError(f"Unknown line field: {field_name}")

        line = self.lines[index]
        if field_name == 'item_id':
            item_id = _int_or_zero(value)
            line = replace(line, item_id=item_id)
            item = catalog.get(item_id) if catalog is not None else None
            if item is not None:
                line = replace(
                    line,
                    description=item.description or '',
                    rate=item.sales_rate,
                    discount_pct=item.discount_pct,
                )
        else:
            line = replace(line, **{field_name: value})

        lines = self.lines[:index] + (line,) + self.lines[index + 1:]
        return replace(self, lines=lines, notice=None)

    def set_field(self, field_name: str, value: Any) -> 'InvoiceDraft':
        """Set a document-level field (invoice number, customer, tax...)."""
        if field_name not in HEADER_FIELDS:
            raise ValueError(f"Unknown invoice field: {field_name}")
        return replace(self, **{field_name: value}, notice=None)

    def renumbered(self) -> 'InvoiceDraft':
        return replace(self, lines=_renumber(self.lines))

    def persisted(self, invoice_id: int, updated_on: Optional[str]) -> 'InvoiceDraft':
        """The same content after a successful save, carrying the fresh token."""
        return replace(self, lines=_renumber(self.lines), invoice_id=invoice_id,
                       updated_on=updated_on, notice=None)

    # -- wire format --------------------------------------------------------

    def to_payload(self, include_identity: bool = False) -> dict:
        """
        Request body for POST/PUT /Invoice.

        Lines are renumbered 1..N regardless of their in-memory row numbers.
        Identity (``invoiceID`` + ``updatedOn``) is only added for updates.
        """
        invoice_no = str(self.invoice_no or '').strip()
        payload = {
            'invoiceNo': int(invoice_no) if invoice_no.isdigit() else invoice_no,
            'invoiceDate': self.invoice_date.isoformat() if isinstance(self.invoice_date, date) else self.invoice_date,
            'customerName': self.customer_name,
            'address': _blank_to_none(self.address),
            'city': _blank_to_none(self.city),
            'taxPercentage': json_number(self.tax_percentage),
            'notes': _blank_to_none(self.notes),
            'lines': [line.to_payload(row_no) for row_no, line in enumerate(self.lines, start=1)],
        }
        payload.update(self.totals.to_dict())
        if include_identity:
            payload['invoiceID'] = self.invoice_id
            payload['updatedOn'] = self.updated_on
        return payload

    def line_amounts(self) -> Tuple[Decimal, ...]:
        """Per-line amounts rounded for display."""
        return tuple(round2(line.line_amount) for line in self.lines)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.lines):
            raise IndexError(f"Line index {index} out of range (0..{len(self.lines) - 1})")


def _renumber(lines: Tuple[InvoiceLine, ...]) -> Tuple[InvoiceLine, ...]:
    return tuple(
        line if line.row_no == row_no else replace(line, row_no=row_no)
        for row_no, line in enumerate(lines, start=1)
    )
