"""Authentication service: signup, credential check and bearer tokens."""
import logging
import re
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from invoicing.exceptions import UnauthenticatedError, ValidationRejected
from invoicing.models import AppUser, Company

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def is_valid_email(email: str) -> bool:
    """Validate email format."""
    return EMAIL_PATTERN.match(email or '') is not None


def _validate_signup(payload: dict) -> dict:
    """Return ``{field: first error}`` for a signup payload."""
    errors = {}
    email = (payload.get('email') or '').strip()
    password = payload.get('password') or ''

    if not (payload.get('companyName') or '').strip():
        errors['companyName'] = 'Company name is required'
    if not (payload.get('firstName') or '').strip():
        errors['firstName'] = 'First name is required'
    if not email:
        errors['email'] = 'Email is required'
    elif not is_valid_email(email):
        errors['email'] = 'Email is not valid'
    if len(password) < 6:
        errors['password'] = 'Password must be at least 6 characters'
    return errors


def signup(payload: dict, session):
    """
    Create a company together with its first user.

    Returns:
        (company, user) tuple, both committed

    Raises:
        ValidationRejected: missing fields or email already registered
    """
    errors = _validate_signup(payload)
    if errors:
        raise ValidationRejected(next(iter(errors.values())), errors)

    email = payload['email'].strip().lower()
    if session.query(AppUser).filter(func.lower(AppUser.email) == email).first():
        raise ValidationRejected('This email is already registered', {'email': 'This email is already registered'})

    try:
        company = Company(
            name=payload['companyName'].strip(),
            currency_symbol=(payload.get('currencySymbol') or '').strip()
            or current_app.config.get('DEFAULT_CURRENCY_SYMBOL', '₹')
        )
        session.add(company)
        session.flush()

        user = AppUser(
            company_id=company.id,
            email=email,
            first_name=payload['firstName'].strip(),
            last_name=(payload.get('lastName') or '').strip() or None,
            active=True
        )
        user.set_password(payload['password'])
        session.add(user)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ValidationRejected('This email is already registered', {'email': 'This email is already registered'})

    logger.info(f"[AUTH] Company {company.id} created with user {user.email}")
    return company, user


def authenticate(email: str, password: str, session) -> AppUser:
    """Return the active user matching the credentials or raise UnauthenticatedError."""
    if not email or not password:
        raise UnauthenticatedError('Email and password are required')

    user = session.query(AppUser).filter(
        func.lower(AppUser.email) == email.strip().lower()
    ).first()

    if not user or not user.active or not user.check_password(password):
        logger.warning(f"[AUTH] Failed login for {email}")
        raise UnauthenticatedError('Invalid email or password')

    return user


def issue_token(user: AppUser, remember_me: bool = False) -> str:
    """Sign a bearer token for ``user``."""
    config = current_app.config
    now = datetime.now(timezone.utc)
    if remember_me:
        expires = now + timedelta(days=config['JWT_REMEMBER_DAYS'])
    else:
        expires = now + timedelta(hours=config['JWT_EXPIRES_HOURS'])

    payload = {
        'sub': str(user.id),
        'company_id': user.company_id,
        'iat': now,
        'exp': expires,
    }
    return jwt.encode(payload, config['JWT_SECRET_KEY'], algorithm=config['JWT_ALGORITHM'])


def decode_token(token: str) -> dict:
    """Verify a bearer token and return its claims."""
    config = current_app.config
    try:
        return jwt.decode(token, config['JWT_SECRET_KEY'], algorithms=[config['JWT_ALGORITHM']])
    except jwt.ExpiredSignatureError:
        raise UnauthenticatedError('Session expired, please sign in again')
    except jwt.InvalidTokenError:
        raise UnauthenticatedError('Invalid authentication token')


def load_user(claims: dict, session) -> AppUser:
    """Resolve token claims to an active user of the claimed company."""
    try:
        user_id = int(claims.get('sub'))
    except (TypeError, ValueError):
        raise UnauthenticatedError('Invalid authentication token')

    user = session.query(AppUser).filter_by(id=user_id, active=True).first()
    if user is None or user.company_id != claims.get('company_id'):
        raise UnauthenticatedError('Invalid authentication token')
    return user
