"""Line and invoice total computation.

Everything here is pure and never raises: live editing produces transient
garbage (an empty rate box, a half-typed discount) and the totals panel has
to keep rendering. Malformed numbers count as zero, quantity is clamped to
at least one and percentages to [0, 100].

Amounts keep full Decimal precision; ``round2`` is applied only where a
value leaves the system (display, stored totals, response payloads).
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, NamedTuple, Optional

ZERO = Decimal('0')
ONE = Decimal('1')
HUNDRED = Decimal('100')
CENT = Decimal('0.01')


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """Convert user/wire input to Decimal, falling back to ``default``."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip()
        if not text:
            return default
        try:
            result = Decimal(text)
        except (InvalidOperation, ValueError):
            return default
    if not result.is_finite():
        return default
    return result


def round2(value: Any) -> Decimal:
    """Round to two fraction digits, half up (presentation boundary only)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def clamp_percentage(value: Any) -> Decimal:
    return min(max(to_decimal(value), ZERO), HUNDRED)


def _line_value(line: Any, attr: str, wire_key: str) -> Any:
    if isinstance(line, dict):
        return line.get(wire_key, line.get(attr))
    return getattr(line, attr, None)


def compute_line_amount(line: Any) -> Decimal:
    """
    Compute ``quantity * rate * (1 - discountPct / 100)`` for one line.

    Accepts either an object exposing ``quantity``/``rate``/``discount_pct``
    or a wire dict with ``quantity``/``rate``/``discountPct``.
    """
    quantity = max(to_decimal(_line_value(line, 'quantity', 'quantity'), ONE), ONE)
    rate = max(to_decimal(_line_value(line, 'rate', 'rate')), ZERO)
    discount = clamp_percentage(_line_value(line, 'discount_pct', 'discountPct'))
    return quantity * rate * (ONE - discount / HUNDRED)


class Totals(NamedTuple):
    """Document totals at full precision."""

    sub_total: Decimal
    tax_amount: Decimal
    invoice_amount: Decimal

    def rounded(self) -> 'Totals':
        return Totals(round2(self.sub_total), round2(self.tax_amount), round2(self.invoice_amount))

    def to_dict(self) -> dict:
        """Wire representation, rounded to cents."""
        rounded = self.rounded()
        return {
            'subTotal': float(rounded.sub_total),
            'taxAmount': float(rounded.tax_amount),
            'invoiceAmount': float(rounded.invoice_amount),
        }


def compute_totals(lines: Iterable[Any], tax_pct: Optional[Any]) -> Totals:
    """Fold the line amounts into subtotal, tax and invoice amount."""
    sub_total = sum((compute_line_amount(line) for line in lines), ZERO)
    tax_amount = sub_total * clamp_percentage(tax_pct) / HUNDRED
    return Totals(sub_total, tax_amount, sub_total + tax_amount)
