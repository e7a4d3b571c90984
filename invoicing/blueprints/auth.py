"""
Authentication API.

Signup creates a company with its first user; login hands out the bearer
token every /api/Item and /api/Invoice call must carry.
"""
import logging

from flask import Blueprint, Response, g, jsonify, request

from invoicing.blueprints.uploads import discard_image, store_image
from invoicing.database import get_session
from invoicing.exceptions import InvoicingError, NotFoundError, ValidationRejected
from invoicing.middleware import require_auth
from invoicing.models import Company
from invoicing.services import auth_service
from invoicing.services.storage_service import get_storage_service

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/Auth')


def _request_data() -> dict:
    """JSON body, or form fields for multipart signup."""
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


@auth_bp.route('/Signup', methods=['POST'])
def signup():
    """Create company + user; an optional ``Logo`` file is uploaded afterwards."""
    session = get_session()
    company, user = auth_service.signup(_request_data(), session)

    logo_uploaded = None
    logo = request.files.get('Logo')
    if logo and logo.filename:
        try:
            company.logo_path = store_image('companies', company.id, logo)
            session.commit()
            logo_uploaded = True
        except InvoicingError as e:
            logger.warning(f"[AUTH] Company {company.id} created but logo upload failed: {e.message}")
            logo_uploaded = False

    body = {
        'company': company.to_dict(),
        'user': user.to_dict(),
    }
    if logo_uploaded is not None:
        body['logoUploaded'] = logo_uploaded
    return jsonify(body), 201


@auth_bp.route('/Login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    user = auth_service.authenticate(data.get('email', ''), data.get('password', ''), get_session())
    token = auth_service.issue_token(user, remember_me=bool(data.get('rememberMe')))

    logger.info(f"[AUTH] User {user.id} signed in (company {user.company_id})")
    return jsonify({
        'token': token,
        'user': user.to_dict(),
        'company': user.company.to_dict(),
    })


@auth_bp.route('/GetCompanyLogoUrl/<int:company_id>', methods=['GET'])
@require_auth
def company_logo_url(company_id):
    """Logo URL as plain text, 404 when the company has none."""
    company = get_session().query(Company).filter_by(id=company_id).first()
    if company is None or company.id != g.company_id or not company.logo_path:
        raise NotFoundError('Company logo not found')
    return Response(get_storage_service().get_public_url(company.logo_path), mimetype='text/plain')


@auth_bp.route('/UpdateCompanyLogo', methods=['POST'])
@require_auth
def update_company_logo():
    file = request.files.get('File') or request.files.get('Logo')
    if file is None:
        raise ValidationRejected('No file was provided')

    session = get_session()
    company = session.query(Company).filter_by(id=g.company_id).one()
    previous_key = company.logo_path
    company.logo_path = store_image('companies', company.id, file)
    session.commit()
    discard_image(previous_key, company.logo_path)

    logger.info(f"[AUTH] Logo updated for company {company.id}")
    return jsonify({
        'companyID': company.id,
        'logoUrl': get_storage_service().get_public_url(company.logo_path),
    })
