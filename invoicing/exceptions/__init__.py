"""Custom exceptions for the invoicing application.

The same hierarchy is raised by the Flask API (rendered as JSON by the
``InvoicingError`` error handler) and rebuilt by the HTTP client from the
status code it receives, so both sides speak one error vocabulary.
"""


class InvoicingError(Exception):
    """Base exception for all application errors."""

    kind = 'Error'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        rv['kind'] = self.kind
        return rv


class InputValidationError(InvoicingError):
    """Local, field-scoped validation failure. Never sent over the wire."""

    kind = 'InputValidation'

    def __init__(self, errors, message="Please correct the highlighted fields"):
        super().__init__(message, 422, {'errors': dict(errors)})
        self.errors = dict(errors)


class ValidationRejected(InvoicingError):
    """The server refused the payload (duplicate invoice number, unknown item...)."""

    kind = 'ValidationRejected'

    def __init__(self, message, errors=None):
        payload = {'errors': dict(errors)} if errors else None
        super().__init__(message, 400, payload)
        self.errors = dict(errors or {})


class ConflictError(InvoicingError):
    """Raised when the submitted updatedOn token no longer matches the record."""

    kind = 'Conflict'

    def __init__(self, message="The record was modified by someone else. Reload it before saving again.",
                 current_updated_on=None):
        payload = {'currentUpdatedOn': current_updated_on} if current_updated_on else None
        super().__init__(message, 409, payload)
        self.current_updated_on = current_updated_on


class NotFoundError(InvoicingError):
    """Exception raised when a resource is not found."""

    kind = 'NotFound'

    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class UnauthenticatedError(InvoicingError):
    """Missing, expired or invalid bearer credential."""

    kind = 'Unauthenticated'

    def __init__(self, message="Authentication required"):
        super().__init__(message, 401)


class NetworkFailure(InvoicingError):
    """Transient transport failure; the identical payload is safe to retry."""

    kind = 'NetworkFailure'

    def __init__(self, message="The server could not be reached. Please try again."):
        super().__init__(message, 503)


class PartialSuccess(InvoicingError):
    """The primary record was saved but an associated image upload failed."""

    kind = 'PartialSuccess'

    def __init__(self, message="Record saved but image upload failed", record=None):
        super().__init__(message, 207)
        self.record = record


class SubmissionInProgress(InvoicingError):
    """A save of the same draft is already in flight."""

    kind = 'SubmissionInProgress'

    def __init__(self, message="A save is already in progress for this invoice"):
        super().__init__(message, 429)

