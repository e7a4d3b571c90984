"""
Persistence Gateway for invoices.

``save`` validates the draft locally, sends it as a create or an update
(carrying ``updatedOn``) and reports the outcome as a ``SaveResult``; it
never raises for an expected failure and never retries on its own.
"""
import enum
import logging
from datetime import date
from typing import Callable, NamedTuple, Optional

from invoicing.client.session import ApiClient
from invoicing.core.catalog import CatalogLookup
from invoicing.core.draft import InvoiceDraft
from invoicing.core.validation import validate_invoice
from invoicing.exceptions import InputValidationError, InvoicingError

logger = logging.getLogger(__name__)


class SaveMode(enum.Enum):
    CREATE = 'create'
    UPDATE = 'update'


class SaveResult(NamedTuple):
    """Outcome of one save: ``record`` on success, ``error`` otherwise."""

    ok: bool
    record: object = None
    error: Optional[InvoicingError] = None

    @property
    def kind(self) -> str:
        return 'Success' if self.ok else self.error.kind

    @property
    def message(self) -> Optional[str]:
        return None if self.error is None else self.error.message

    @classmethod
    def success(cls, record) -> 'SaveResult':
        return cls(True, record, None)

    @classmethod
    def failure(cls, error: InvoicingError, record=None) -> 'SaveResult':
        return cls(False, record, error)


def send_save(label: str, send: Callable[[], object]) -> SaveResult:
    """Run the network half of a save and classify its failure."""
    try:
        return SaveResult.success(send())
    except InvoicingError as e:
        logger.warning(f"[GATEWAY] {label} failed ({e.kind}): {e.message}")
        return SaveResult.failure(e)


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


class InvoiceGateway:
    """Invoice persistence over the HTTP API."""

    def __init__(self, api: ApiClient):
        self.api = api

    def save(self, draft: InvoiceDraft, mode: SaveMode,
             catalog: Optional[CatalogLookup] = None) -> SaveResult:
        """
        Validate then create or update ``draft``.

        A draft failing validation is never sent; the result carries an
        ``InputValidationError`` with the first error of every field. On
        success ``record`` is the draft re-stamped with the server's id and
        fresh ``updatedOn`` token.
        """
        report = validate_invoice(draft, catalog)
        if not report.is_valid:
            return SaveResult.failure(InputValidationError(report.errors))

        if mode is SaveMode.UPDATE:
            if not draft.is_persisted:
                raise ValueError('Only a previously saved invoice can be updated')
            label = f'Update invoice {draft.invoice_id}'

            def send():
                body = self.api.put('Invoice', json=draft.to_payload(include_identity=True))
                return draft.persisted(body['primaryKeyID'], body['updatedOn'])
        else:
            label = 'Create invoice'

            def send():
                body = self.api.post('Invoice', json=draft.to_payload())
                return draft.persisted(body['primaryKeyID'], body['updatedOn'])

        result = send_save(label, send)
        if result.ok:
            logger.info(f"[GATEWAY] {label} ok, updatedOn={result.record.updated_on}")
        return result

    def get_by_id(self, invoice_id: int) -> InvoiceDraft:
        """Fetch an invoice as a draft carrying its current ``updatedOn``."""
        return InvoiceDraft.from_record(self.api.get(f'Invoice/{invoice_id}'))

    def list(self, invoice_id: Optional[int] = None, from_date: Optional[date] = None,
             to_date: Optional[date] = None) -> list:
        params = {
            'InvoiceID': invoice_id,
            'fromDate': _iso(from_date),
            'toDate': _iso(to_date),
        }
        return self.api.get('Invoice/GetList', params={k: v for k, v in params.items() if v is not None})

    def summary(self, from_date: Optional[date] = None, to_date: Optional[date] = None) -> dict:
        params = {'fromDate': _iso(from_date), 'toDate': _iso(to_date)}
        return self.api.get('Invoice/GetSummary', params={k: v for k, v in params.items() if v is not None})

    def trend_12m(self, as_of: Optional[date] = None) -> list:
        params = {'asOf': _iso(as_of)} if as_of else None
        return self.api.get('Invoice/GetTrend12m', params=params)

    def delete(self, invoice_id: int) -> None:
        self.api.delete(f'Invoice/{invoice_id}')
        logger.info(f"[GATEWAY] Deleted invoice {invoice_id}")
