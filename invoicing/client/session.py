"""
HTTP access to the invoicing API.

``AuthSession`` is the credential object handed to every client component:
it is filled at login and emptied at logout, nothing is kept in module
state. ``ApiClient`` attaches its bearer token to each request and turns
HTTP failures into the ``invoicing.exceptions`` hierarchy.
"""
import logging
from typing import Any, Dict, Optional

import requests

from invoicing.exceptions import (
    ConflictError, InvoicingError, NetworkFailure, NotFoundError,
    UnauthenticatedError, ValidationRejected
)

logger = logging.getLogger(__name__)


class AuthSession:
    """Bearer credential plus the user/company it was issued for."""

    def __init__(self):
        self.token: Optional[str] = None
        self.user: Optional[Dict[str, Any]] = None
        self.company: Optional[Dict[str, Any]] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def acquire(self, token: str, user: Optional[dict] = None, company: Optional[dict] = None) -> None:
        self.token = token
        self.user = user
        self.company = company

    def clear(self) -> None:
        self.token = None
        self.user = None
        self.company = None

    def authorization_header(self) -> Dict[str, str]:
        if not self.token:
            raise UnauthenticatedError('Not signed in')
        return {'Authorization': f'Bearer {self.token}'}

    def __repr__(self):
        email = (self.user or {}).get('email')
        return f"<AuthSession(authenticated={self.is_authenticated}, user={email!r})>"


def _message_from(response: requests.Response, default: str) -> str:
    body = _json_or_none(response)
    if isinstance(body, dict) and body.get('message'):
        return body['message']
    text = (response.text or '').strip()
    return text[:500] or default


def _json_or_none(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def error_for_response(response: requests.Response) -> InvoicingError:
    """Map a failed HTTP response onto the application error hierarchy."""
    status = response.status_code
    body = _json_or_none(response)
    body = body if isinstance(body, dict) else {}

    if status == 401:
        return UnauthenticatedError(_message_from(response, 'Authentication required'))
    if status == 404:
        return NotFoundError(_message_from(response, 'The record no longer exists'))
    if status == 409:
        return ConflictError(
            _message_from(response, 'The record was modified by someone else'),
            current_updated_on=body.get('currentUpdatedOn')
        )
    if status in (400, 422):
        return ValidationRejected(_message_from(response, 'The request was rejected'), body.get('errors'))
    if status >= 500:
        return NetworkFailure(_message_from(response, 'The server failed to process the request'))
    return InvoicingError(_message_from(response, f'Unexpected response ({status})'), status)


class ApiClient:
    """Thin wrapper around ``requests.Session`` bound to one API base URL."""

    def __init__(self, base_url: str, auth: AuthSession, timeout: float = 10,
                 http: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.auth = auth
        self.timeout = timeout
        self.http = http or requests.Session()

    @classmethod
    def from_config(cls, config, auth: AuthSession, http: Optional[requests.Session] = None) -> 'ApiClient':
        """Build from a Flask config (or any mapping) holding INVOICE_API_URL/INVOICE_API_TIMEOUT."""
        return cls(
            config['INVOICE_API_URL'],
            auth,
            timeout=config.get('INVOICE_API_TIMEOUT', 10),
            http=http
        )

    def request(self, method: str, path: str, json: Any = None, params: Optional[dict] = None,
                data: Optional[dict] = None, files: Optional[dict] = None,
                authenticated: bool = True) -> Any:
        """
        Send one request and return the decoded body (JSON, else text).

        Raises:
            UnauthenticatedError: no credential, or the server answered 401
            NetworkFailure: connection error, timeout or 5xx
            ConflictError / NotFoundError / ValidationRejected: by status code
        """
        headers = self.auth.authorization_header() if authenticated else {}
        url = f"{self.base_url}/{path.lstrip('/')}"

        try:
            response = self.http.request(
                method, url, headers=headers, json=json, params=params,
                data=data, files=files, timeout=self.timeout
            )
        except requests.Timeout as e:
            logger.warning(f"[GATEWAY] {method} {path} timed out: {e}")
            raise NetworkFailure('The server took too long to answer. Please try again.')
        except requests.RequestException as e:
            logger.warning(f"[GATEWAY] {method} {path} failed: {e}")
            raise NetworkFailure()

        if response.status_code >= 400:
            error = error_for_response(response)
            logger.info(f"[GATEWAY] {method} {path} -> {response.status_code} {error.kind}: {error.message}")
            raise error

        if 'application/json' in response.headers.get('Content-Type', ''):
            return response.json()
        return response.text

    def get(self, path: str, **kwargs) -> Any:
        return self.request('GET', path, **kwargs)

    def post(self, path: str, **kwargs) -> Any:
        return self.request('POST', path, **kwargs)

    def put(self, path: str, **kwargs) -> Any:
        return self.request('PUT', path, **kwargs)

    def delete(self, path: str, **kwargs) -> Any:
        return self.request('DELETE', path, **kwargs)

    # -- session lifecycle --------------------------------------------------

    def login(self, email: str, password: str, remember_me: bool = False) -> AuthSession:
        """Exchange credentials for a bearer token and store it in ``self.auth``."""
        body = self.post('Auth/Login', json={
            'email': email,
            'password': password,
            'rememberMe': remember_me,
        }, authenticated=False)
        self.auth.acquire(body['token'], body.get('user'), body.get('company'))
        logger.info(f"[AUTH] Signed in as {email}")
        return self.auth

    def logout(self) -> None:
        self.auth.clear()
