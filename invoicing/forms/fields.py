"""
Field types and validators shared by the invoice and item forms.

The forms are fed Python data (``Form(data=...)``), never an HTML POST, so
the stock ``Optional``/``InputRequired`` validators (which look at raw form
input) do not apply; ``Present`` is the data-level equivalent.
"""
from datetime import date
from decimal import Decimal, InvalidOperation

from wtforms import DecimalField, IntegerField
from wtforms.validators import StopValidation, ValidationError


def _is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


class AmountField(DecimalField):
    """Decimal field that accepts Decimal, int, float or numeric text."""

    def process_data(self, value):
        if _is_blank(value):
            self.data = None
            return
        try:
            self.data = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as exc:
            self.data = None
            raise ValueError(self.gettext('Not a valid decimal value.')) from exc
        if not self.data.is_finite():
            self.data = None
            raise ValueError(self.gettext('Not a valid decimal value.'))


class WholeNumberField(IntegerField):
    """Integer field that refuses fractional input instead of truncating it."""

    def process_data(self, value):
        if _is_blank(value):
            self.data = None
            return
        try:
            number = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as exc:
            self.data = None
            raise ValueError(self.gettext('Not a valid integer value.')) from exc
        if not number.is_finite() or number != number.to_integral_value():
            self.data = None
            raise ValueError(self.gettext('Not a valid integer value.'))
        self.data = int(number)


class Present:
    """Stop the chain with ``message`` when the field holds no value at all."""

    def __init__(self, message='This field is required.'):
        self.message = message
        self.field_flags = {'required': True}

    def __call__(self, form, field):
        if field.process_errors:
            # Input was there but unparseable; keep the coercion error
            raise StopValidation()
        if _is_blank(field.data):
            raise StopValidation(self.message)


class DecimalPlaces:
    """Reject amounts with more fraction digits than the column stores."""

    def __init__(self, places=2, message=None):
        self.places = places
        self.message = message or f'At most {places} decimal places are allowed'
        self.step = Decimal(1).scaleb(-places)

    def __call__(self, form, field):
        if field.data is None:
            return
        try:
            exact = field.data == field.data.quantize(self.step)
        except InvalidOperation:
            exact = False
        if not exact:
            raise ValidationError(self.message)


def strip_text(value):
    """Filter: trim strings, stringify numbers, keep None."""
    if value is None:
        return None
    return str(value).strip()


def as_date(value):
    """Filter: accept date/datetime/ISO text, raise ValueError otherwise."""
    if _is_blank(value):
        return None
    if isinstance(value, date):
        return value if type(value) is date else value.date()
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError as exc:
        raise ValueError('Not a valid date value.') from exc
