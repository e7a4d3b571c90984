"""Middleware for bearer authentication and company context."""
import logging
from functools import wraps

from flask import g, request

from invoicing.database import get_session
from invoicing.exceptions import UnauthenticatedError
from invoicing.services.auth_service import decode_token, load_user

logger = logging.getLogger(__name__)


def _bearer_token():
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def load_user_and_company():
    """
    Load current user and company into g (Flask's per-request global).

    Called before each request. A bad token is not an error here: the
    request simply stays anonymous and ``require_auth`` turns that into 401.
    """
    g.user = None
    g.company_id = None
    g.auth_error = None

    token = _bearer_token()
    if not token:
        return

    try:
        claims = decode_token(token)
        user = load_user(claims, get_session())
    except UnauthenticatedError as e:
        g.auth_error = e.message
        logger.info(f"[AUTH] Rejected bearer token on {request.path}: {e.message}")
        return

    g.user = user
    g.user_id = user.id
    g.company_id = user.company_id


def require_auth(f):
    """
    Decorator: Require a valid bearer token.

    Raises UnauthenticatedError (rendered as 401 JSON) when absent or invalid.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            raise UnauthenticatedError(g.get('auth_error') or 'Authentication required')
        return f(*args, **kwargs)
    return decorated_function
