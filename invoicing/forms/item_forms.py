"""Declarative rule set for catalog items."""
from wtforms import Form, StringField
from wtforms.validators import DataRequired, Length, NumberRange

from invoicing.forms.fields import AmountField, DecimalPlaces, Present, strip_text


class ItemForm(Form):
    """Rules for creating or editing a catalog item."""

    itemName = StringField(
        'Item Name',
        filters=[strip_text],
        validators=[
            DataRequired(message='Item name is required'),
            Length(max=50, message='Item name must be less than 50 characters')
        ]
    )

    description = StringField(
        'Description',
        filters=[strip_text],
        validators=[Length(max=500, message='Description must be less than 500 characters')]
    )

    salesRate = AmountField(
        'Sales Rate',
        validators=[
            Present(message='Sales rate is required'),
            NumberRange(min=0, message='Sales rate must be 0 or greater'),
            DecimalPlaces(2, message='Sales rate can have at most 2 decimal places')
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
