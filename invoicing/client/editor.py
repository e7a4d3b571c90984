"""
Invoice editor controller.

Owns one draft plus the catalog snapshot it was opened with. Edits are
applied synchronously; a save runs either inline (``submit``) or on a worker
thread (``submit_async``) while edits continue. Only one save may be in
flight at a time, and a save that finishes after ``discard()`` is dropped.
"""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from invoicing.client.catalog import CatalogSource
from invoicing.client.gateway import InvoiceGateway, SaveMode, SaveResult
from invoicing.core.catalog import CatalogLookup
from invoicing.core.draft import InvoiceDraft
from invoicing.core.validation import ValidationReport, validate_invoice
from invoicing.exceptions import SubmissionInProgress

logger = logging.getLogger(__name__)


class EditorDiscarded(RuntimeError):
    """The editor was closed (navigation away, or the invoice was deleted)."""


class InvoiceEditor:

    def __init__(self, gateway: InvoiceGateway, catalog: CatalogLookup,
                 draft: Optional[InvoiceDraft] = None,
                 executor: Optional[ThreadPoolExecutor] = None):
        self.gateway = gateway
        self.catalog = catalog
        self._draft = draft or InvoiceDraft.blank()
        self._lock = threading.Lock()
        self._in_flight = False
        self._discarded = False
        self._owns_executor = executor is None
        self._executor = executor
        self.last_result: Optional[SaveResult] = None

    @classmethod
    def open_new(cls, gateway: InvoiceGateway, catalog_source: CatalogSource, **kwargs) -> 'InvoiceEditor':
        return cls(gateway, catalog_source.lookup(), InvoiceDraft.blank(), **kwargs)

    @classmethod
    def open_existing(cls, gateway: InvoiceGateway, catalog_source: CatalogSource,
                      invoice_id: int, **kwargs) -> 'InvoiceEditor':
        return cls(gateway, catalog_source.lookup(), gateway.get_by_id(invoice_id), **kwargs)

    # -- state --------------------------------------------------------------

    @property
    def draft(self) -> InvoiceDraft:
        return self._draft

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def discarded(self) -> bool:
        return self._discarded

    def _edit(self, change: Callable[[InvoiceDraft], InvoiceDraft]) -> InvoiceDraft:
        # Read-modify-write under the lock so a finishing save cannot drop the edit
        with self._lock:
            self._ensure_open()
            self._draft = change(self._draft)
            return self._draft

    def _ensure_open(self):
        if self._discarded:
            raise EditorDiscarded('This invoice editor has been closed')

    # -- edits --------------------------------------------------------------

    def add_line(self) -> InvoiceDraft:
        return self._edit(lambda draft: draft.add_line())

    def remove_line(self, index: int) -> InvoiceDraft:
        return self._edit(lambda draft: draft.remove_line(index))

    def update_line(self, index: int, field_name: str, value: Any) -> InvoiceDraft:
        return self._edit(lambda draft: draft.update_line(index, field_name, value, catalog=self.catalog))

    def set_field(self, field_name: str, value: Any) -> InvoiceDraft:
        return self._edit(lambda draft: draft.set_field(field_name, value))

    def validate(self) -> ValidationReport:
        return validate_invoice(self._draft, self.catalog)

    def refresh_catalog(self, catalog_source: CatalogSource) -> CatalogLookup:
        self.catalog = catalog_source.lookup()
        return self.catalog

    # -- saving -------------------------------------------------------------

    def _begin(self):
        with self._lock:
            self._ensure_open()
            if self._in_flight:
                raise SubmissionInProgress()
            self._in_flight = True
            snapshot = self._draft
        mode = SaveMode.UPDATE if snapshot.is_persisted else SaveMode.CREATE
        return snapshot, mode

    def _run(self, snapshot: InvoiceDraft, mode: SaveMode) -> SaveResult:
        try:
            result = self.gateway.save(snapshot, mode, self.catalog)
        except Exception:
            with self._lock:
                self._in_flight = False
            raise
        return self._finish(result)

    def _finish(self, result: SaveResult) -> SaveResult:
        with self._lock:
            self._in_flight = False
            if self._discarded:
                logger.warning(f"[GATEWAY] Save finished after the editor was closed; result ({result.kind}) ignored")
                return result

            self.last_result = result
            if result.ok:
                # Edits made while the save was in flight are kept
                self._draft = self._draft.persisted(result.record.invoice_id, result.record.updated_on)
            elif result.error.kind == 'NotFound':
                logger.warning(f"[GATEWAY] Invoice {self._draft.invoice_id} no longer exists; closing editor")
                self._discarded = True
        return result

    def submit(self) -> SaveResult:
        """Save the current draft and wait for the outcome."""
        snapshot, mode = self._begin()
        return self._run(snapshot, mode)

    def submit_async(self) -> 'Future[SaveResult]':
        """
        Save on a worker thread.

        Raises ``SubmissionInProgress`` right away when a save is running.
        """
        snapshot, mode = self._begin()
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='invoice-save')
        return self._executor.submit(self._run, snapshot, mode)

    def reload(self) -> InvoiceDraft:
        """
        Replace the draft with the server's current version (after a Conflict).

        Refused with ``SubmissionInProgress`` while a save is running: its
        token belongs to the draft it sent, not to the reloaded one.
        """
        with self._lock:
            self._ensure_open()
            if self._in_flight:
                raise SubmissionInProgress('Wait for the current save to finish before reloading')
            if not self._draft.is_persisted:
                raise ValueError('A new invoice has nothing to reload')
            self._draft = self.gateway.get_by_id(self._draft.invoice_id)
            self.last_result = None
            return self._draft

    def discard(self) -> None:
        """Close the editor without waiting for an in-flight save."""
        with self._lock:
            self._discarded = True
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=False)
