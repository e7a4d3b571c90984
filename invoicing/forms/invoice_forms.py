"""
Declarative rule set for invoices.

Field names are the wire names, so the same form validates a client draft
payload and a JSON request body on the server. Validators are listed in the
order they are reported: only the first broken rule per field is surfaced.
"""
from wtforms import Form, DateField, FieldList, FormField, StringField
from wtforms.validators import DataRequired, Length, NumberRange, Regexp

from invoicing.forms.fields import AmountField, DecimalPlaces, Present, WholeNumberField, as_date, strip_text

QUANTITY_MAX = 1_000_000_000


class InvoiceLineForm(Form):
    """Rules for one invoice line."""

    itemID = WholeNumberField(
        'Item',
        validators=[
            Present(message='Item is required'),
            NumberRange(min=1, message='Please select an item')
        ]
    )

    description = StringField(
        'Description',
        filters=[strip_text],
        validators=[Length(max=500, message='Description must be less than 500 characters')]
    )

    quantity = WholeNumberField(
        'Quantity',
        validators=[
            Present(message='Quantity is required'),
            NumberRange(min=1, message='Quantity must be at least 1'),
            NumberRange(max=QUANTITY_MAX, message='Quantity must be at most 1000000000')
        ]
    )

    rate = AmountField(
        'Rate',
        validators=[
            Present(message='Rate is required'),
            NumberRange(min=0, message='Rate must be 0 or greater'),
            DecimalPlaces(2, message='Rate can have at most 2 decimal places')
        ]
    )

    discountPct = AmountField(
        'Discount %',
        default=0,
        validators=[
            Present(message='Discount is required'),
            NumberRange(min=0, max=100, message='Discount must be between 0 and 100'),
            DecimalPlaces(2, message='Discount can have at most 2 decimal places')
        ]
    )


class InvoiceForm(Form):
    """Document-level rules for an invoice."""

    invoiceNo = StringField(
        'Invoice Number',
        filters=[strip_text],
        validators=[
            DataRequired(message='Invoice number is required'),
            Regexp(r'^[0-9]+$', message='Invoice number must contain only numbers'),
            Length(max=50, message='Invoice number must be less than 50 characters')
        ]
    )

    invoiceDate = DateField(
        'Invoice Date',
        filters=[as_date],
        validators=[Present(message='Invoice date is required')]
    )

    customerName = StringField(
        'Customer Name',
        filters=[strip_text],
        validators=[
            DataRequired(message='Customer name is required'),
            Length(max=100, message='Customer name must be less than 100 characters')
        ]
    )

    address = StringField(
        'Address',
        filters=[strip_text],
        validators=[Length(max=200, message='Address must be less than 200 characters')]
    )

    city = StringField(
        'City',
        filters=[strip_text],
        validators=[Length(max=50, message='City must be less than 50 characters')]
    )

    taxPercentage = AmountField(
        'Tax %',
        default=0,
        validators=[
            Present(message='Tax percentage is required'),
            NumberRange(min=0, max=100, message='Tax must be between 0 and 100'),
            DecimalPlaces(2, message='Tax can have at most 2 decimal places')
        ]
    )

    notes = StringField(
        'Notes',
        filters=[strip_text],
        validators=[Length(max=1000, message='Notes must be less than 1000 characters')]
    )

    lines = FieldList(
        FormField(InvoiceLineForm),
        validators=[Length(min=1, message='At least one line item is required')]
    )
