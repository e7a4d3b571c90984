"""Invoice API (/api/Invoice)."""
import logging

from flask import Blueprint, g, jsonify, request

from invoicing.blueprints.metrics import counted_save
from invoicing.core.draft import parse_date
from invoicing.database import get_session
from invoicing.exceptions import ValidationRejected
from invoicing.middleware import require_auth
from invoicing.services import invoice_service

logger = logging.getLogger(__name__)

invoices_bp = Blueprint('invoices', __name__, url_prefix='/api/Invoice')


def _date_arg(name):
    """Optional ISO date query parameter."""
    value = request.args.get(name)
    try:
        return parse_date(value)
    except ValueError:
        raise ValidationRejected(f'{name} is not a valid date', {name: 'Not a valid date value.'})


def _write_response(invoice):
    return {
        'primaryKeyID': invoice.id,
        'updatedOn': invoice.updated_on_token,
        'nofRecordsEffected': 1,
    }


@invoices_bp.route('/GetList', methods=['GET'])
@require_auth
def get_list():
    invoices = invoice_service.list_invoices(
        g.company_id,
        get_session(),
        invoice_id=request.args.get('InvoiceID', type=int),
        from_date=_date_arg('fromDate'),
        to_date=_date_arg('toDate')
    )
    return jsonify([invoice.to_list_dict() for invoice in invoices])


@invoices_bp.route('/GetSummary', methods=['GET'])
@require_auth
def get_summary():
    return jsonify(invoice_service.get_summary(
        g.company_id, get_session(), from_date=_date_arg('fromDate'), to_date=_date_arg('toDate')
    ))


@invoices_bp.route('/GetTrend12m', methods=['GET'])
@require_auth
def get_trend_12m():
    return jsonify(invoice_service.get_trend_12m(g.company_id, get_session(), as_of=_date_arg('asOf')))


@invoices_bp.route('/<int:invoice_id>', methods=['GET'])
@require_auth
def get_invoice(invoice_id):
    return jsonify(invoice_service.get_invoice(invoice_id, g.company_id, get_session()).to_dict())


@invoices_bp.route('', methods=['POST'])
@require_auth
def create_invoice():
    payload = request.get_json(silent=True) or {}
    invoice = counted_save('invoice', 'create', lambda: invoice_service.create_invoice(
        payload, g.company_id, g.user.full_name, get_session()
    ))
    return jsonify(_write_response(invoice)), 201


@invoices_bp.route('', methods=['PUT'])
@require_auth
def update_invoice():
    """Full replacement guarded by ``updatedOn``; 409 when it is stale."""
    payload = request.get_json(silent=True) or {}
    invoice_id = payload.get('invoiceID') or payload.get('primaryKeyID')
    if not invoice_id:
        raise ValidationRejected('invoiceID is required for an update')
    try:
        invoice_id = int(invoice_id)
    except (TypeError, ValueError):
        raise ValidationRejected('invoiceID must be a number', {'invoiceID': 'Not a valid integer value.'})

    invoice = counted_save('invoice', 'update', lambda: invoice_service.update_invoice(
        invoice_id, payload, g.company_id, g.user.full_name, get_session()
    ))
    return jsonify(_write_response(invoice))


@invoices_bp.route('/<int:invoice_id>', methods=['DELETE'])
@require_auth
def delete_invoice(invoice_id):
    invoice_service.delete_invoice(invoice_id, g.company_id, get_session())
    return jsonify({'primaryKeyID': invoice_id, 'nofRecordsEffected': 1})
