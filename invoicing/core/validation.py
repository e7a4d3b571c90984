"""
Validation Engine.

Runs the declarative forms against a candidate invoice or item and reports
the first broken rule of every offending field. Nothing is cached: callers
validate again on every submission attempt.
"""
from typing import Dict, Optional

from wtforms import FieldList, FormField

from invoicing.core.catalog import CatalogLookup
from invoicing.exceptions import InputValidationError
from invoicing.forms.invoice_forms import InvoiceForm
from invoicing.forms.item_forms import ItemForm


class ValidationReport:
    """
    Outcome of one validation pass.

    ``errors`` maps a field path to its first error message; ``data`` holds
    the coerced values (Decimal amounts, int quantities, date) the forms
    produced, which is what the server persists.
    """

    def __init__(self, errors: Optional[Dict[str, str]] = None, data: Optional[dict] = None):
        self.errors = dict(errors or {})
        self.data = data

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error_for(self, field_path: str) -> Optional[str]:
        return self.errors.get(field_path)

    def raise_for_errors(self) -> None:
        if self.errors:
            raise InputValidationError(self.errors)

    def __bool__(self):
        return self.is_valid

    def __repr__(self):
        return f"<ValidationReport(valid={self.is_valid}, errors={self.errors})>"


def _first_errors(form, prefix: str = '') -> Dict[str, str]:
    """Flatten a validated form into ``{'lines[0].rate': 'Rate is required', ...}``."""
    errors = {}
    for field in form:
        path = f"{prefix}{field.short_name}"
        if isinstance(field, FieldList):
            own = [message for message in field.errors if isinstance(message, str)]
            if own:
                errors[path] = own[0]
            for index, entry in enumerate(field.entries):
                if isinstance(entry, FormField):
                    errors.update(_first_errors(entry.form, f"{path}[{index}]."))
                elif entry.errors:
                    errors[f"{path}[{index}]"] = entry.errors[0]
        elif field.errors:
            errors[path] = field.errors[0]
    return errors


def _as_payload(candidate) -> dict:
    if isinstance(candidate, dict):
        return candidate
    return candidate.to_payload(include_identity=False)


def validate_invoice(candidate, catalog: Optional[CatalogLookup] = None) -> ValidationReport:
    """
    Validate an ``InvoiceDraft`` (or an invoice wire payload).

    When a catalog snapshot is given, a line whose item passed the basic
    rules but is not in the snapshot is reported on its ``itemID``.
    """
    payload = _as_payload(candidate)
    form = InvoiceForm(data=payload)
    form.validate()
    errors = _first_errors(form)

    if catalog is not None:
        for index, entry in enumerate(form.lines.entries):
            key = f"lines[{index}].itemID"
            item_id = entry.form.itemID.data
            if key not in errors and item_id not in catalog:
                errors[key] = 'Selected item does not exist'

    return ValidationReport(errors, form.data)


def validate_item(candidate) -> ValidationReport:
    """Validate an ``ItemDraft`` (or an item wire payload)."""
    payload = candidate if isinstance(candidate, dict) else candidate.to_payload(include_identity=False)
    form = ItemForm(data=payload)
    form.validate()
    return ValidationReport(_first_errors(form), form.data)
