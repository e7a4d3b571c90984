"""Catalog item API (/api/Item)."""
import logging

from flask import Blueprint, Response, g, jsonify, request

from invoicing.blueprints.metrics import counted_save
from invoicing.blueprints.uploads import discard_image, store_image
from invoicing.database import get_session
from invoicing.exceptions import NotFoundError, ValidationRejected
from invoicing.middleware import require_auth
from invoicing.services import item_service
from invoicing.services.storage_service import get_storage_service

logger = logging.getLogger(__name__)

items_bp = Blueprint('items', __name__, url_prefix='/api/Item')


def _user_name():
    return g.user.full_name


@items_bp.route('/GetList', methods=['GET'])
@require_auth
def get_list():
    return jsonify(item_service.list_items(g.company_id, get_session()))


@items_bp.route('/GetLookupList', methods=['GET'])
@require_auth
def get_lookup_list():
    return jsonify(item_service.lookup_items(g.company_id, get_session()))


@items_bp.route('/CheckDuplicateItemName', methods=['GET'])
@require_auth
def check_duplicate_name():
    """409 when another item of this company already uses the name, 200 otherwise."""
    name = request.args.get('ItemName', '')
    exclude_id = request.args.get('ExcludeID', type=int)
    if item_service.is_duplicate_name(g.company_id, name, get_session(), exclude_id=exclude_id):
        return jsonify({'isDuplicate': True, 'message': item_service.DUPLICATE_NAME_MESSAGE}), 409
    return jsonify({'isDuplicate': False})


@items_bp.route('/<int:item_id>', methods=['GET'])
@require_auth
def get_item(item_id):
    return jsonify(item_service.get_item(item_id, g.company_id, get_session()).to_dict())


@items_bp.route('', methods=['POST'])
@require_auth
def create_item():
    payload = request.get_json(silent=True) or {}
    item = counted_save('item', 'create', lambda: item_service.create_item(
        payload, g.company_id, _user_name(), get_session()
    ))
    return jsonify({
        'primaryKeyID': item.id,
        'updatedOn': item.updated_on_token,
        'nofRecordsEffected': 1,
    }), 201


@items_bp.route('', methods=['PUT'])
@require_auth
def update_item():
    payload = request.get_json(silent=True) or {}
    item_id = payload.get('itemID') or payload.get('primaryKeyID')
    if not item_id:
        raise ValidationRejected('itemID is required for an update')
    try:
        item_id = int(item_id)
    except (TypeError, ValueError):
        raise ValidationRejected('itemID must be a number', {'itemID': 'Not a valid integer value.'})

    item = counted_save('item', 'update', lambda: item_service.update_item(
        item_id, payload, g.company_id, _user_name(), get_session()
    ))
    return jsonify({
        'primaryKeyID': item.id,
        'updatedOn': item.updated_on_token,
        'nofRecordsEffected': 1,
    })


@items_bp.route('/<int:item_id>', methods=['DELETE'])
@require_auth
def delete_item(item_id):
    item_service.delete_item(item_id, g.company_id, get_session())
    return jsonify({'primaryKeyID': item_id, 'nofRecordsEffected': 1})


@items_bp.route('/UpdateItemPicture', methods=['POST'])
@require_auth
def update_item_picture():
    """Multipart ``ItemID`` + ``File``; the item record itself is untouched."""
    item_id = request.form.get('ItemID', type=int)
    file = request.files.get('File')
    if not item_id:
        raise ValidationRejected('ItemID is required')
    if file is None:
        raise ValidationRejected('No file was provided')

    session = get_session()
    previous_key = item_service.get_item(item_id, g.company_id, session).picture_path
    key = store_image('items', item_id, file)
    item = item_service.set_picture(item_id, g.company_id, key, session)
    discard_image(previous_key, key)

    logger.info(f"[ITEM] Picture stored for item {item_id}")
    return jsonify({
        'itemID': item.id,
        'pictureUrl': get_storage_service().get_public_url(item.picture_path),
    })


@items_bp.route('/Picture/<int:item_id>', methods=['GET'])
@require_auth
def picture_url(item_id):
    """Picture URL as plain text, 404 when the item has none."""
    item = item_service.get_item(item_id, g.company_id, get_session())
    if not item.picture_path:
        raise NotFoundError('Item picture not found')
    return Response(get_storage_service().get_public_url(item.picture_path), mimetype='text/plain')
