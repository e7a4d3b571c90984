"""Catalog item service - company-scoped CRUD with optimistic concurrency."""
import logging
from typing import Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from invoicing.core.validation import validate_item
from invoicing.exceptions import ConflictError, NotFoundError, ValidationRejected
from invoicing.models import Item, InvoiceLine
from invoicing.services.cache_service import get_cache

logger = logging.getLogger(__name__)

CACHE_MODULE = 'items'
DUPLICATE_NAME_MESSAGE = 'An item with this name already exists'


def _items_ttl():
    return current_app.config.get('CACHE_ITEMS_TTL', 60)


def list_items(company_id: int, session) -> list:
    """Full item rows (with audit columns) ordered by name."""
    def load():
        items = session.query(Item).filter(
            Item.company_id == company_id
        ).order_by(Item.item_name).all()
        return [item.to_dict() for item in items]

    return get_cache().memoize(company_id, CACHE_MODULE, 'list', load, ttl=_items_ttl())


def lookup_items(company_id: int, session) -> list:
    """Id/name/defaults rows used to populate invoice lines."""
    def load():
        items = session.query(Item).filter(
            Item.company_id == company_id
        ).order_by(Item.item_name).all()
        return [item.to_lookup_dict() for item in items]

    return get_cache().memoize(company_id, CACHE_MODULE, 'lookup', load, ttl=_items_ttl())


def get_item(item_id: int, company_id: int, session, for_update: bool = False) -> Item:
    query = session.query(Item).filter(Item.id == item_id, Item.company_id == company_id)
    if for_update:
        query = query.with_for_update()
    item = query.first()
    if item is None:
        raise NotFoundError(f'Item {item_id} not found')
    return item


def is_duplicate_name(company_id: int, item_name: str, session, exclude_id: Optional[int] = None) -> bool:
    """Case-insensitive name check within one company."""
    name = (item_name or '').strip().lower()
    if not name:
        return False
    query = session.query(Item.id).filter(
        Item.company_id == company_id,
        func.lower(Item.item_name) == name
    )
    if exclude_id:
        query = query.filter(Item.id != exclude_id)
    return query.first() is not None


def _validated(payload: dict) -> dict:
    report = validate_item(payload)
    if not report.is_valid:
        raise ValidationRejected(next(iter(report.errors.values())), report.errors)
    return report.data


def _apply(item: Item, data: dict) -> None:
    item.item_name = data['itemName']
    item.description = data.get('description') or None
    item.sales_rate = data['salesRate']
    item.discount_pct = data.get('discountPct') or 0


def create_item(payload: dict, company_id: int, user_name: str, session) -> Item:
    """
    Create a catalog item.

    Raises:
        ValidationRejected: rule violation or duplicate name
    """
    data = _validated(payload)
    if is_duplicate_name(company_id, data['itemName'], session):
        raise ValidationRejected(DUPLICATE_NAME_MESSAGE, {'itemName': DUPLICATE_NAME_MESSAGE})

    item = Item(company_id=company_id)
    _apply(item, data)
    item.touch(user_name)

    try:
        session.add(item)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ValidationRejected(DUPLICATE_NAME_MESSAGE, {'itemName': DUPLICATE_NAME_MESSAGE})

    get_cache().invalidate_module(company_id, CACHE_MODULE)
    logger.info(f"[ITEM] Created item {item.id} '{item.item_name}' for company {company_id}")
    return item


def update_item(item_id: int, payload: dict, company_id: int, user_name: str, session) -> Item:
    """
    Update an item if the caller's ``updatedOn`` still matches.

    Raises:
        NotFoundError: item is gone
        ConflictError: token missing or stale
        ValidationRejected: rule violation or duplicate name
    """
    data = _validated(payload)
    try:
        item = get_item(item_id, company_id, session, for_update=True)

        token = payload.get('updatedOn')
        if token != item.updated_on_token:
            logger.warning(
                f"[ITEM] Conflict on item {item_id}: sent {token}, current {item.updated_on_token}"
            )
            raise ConflictError(current_updated_on=item.updated_on_token)

        if is_duplicate_name(company_id, data['itemName'], session, exclude_id=item.id):
            raise ValidationRejected(DUPLICATE_NAME_MESSAGE, {'itemName': DUPLICATE_NAME_MESSAGE})

        _apply(item, data)
        item.touch(user_name)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ValidationRejected(DUPLICATE_NAME_MESSAGE, {'itemName': DUPLICATE_NAME_MESSAGE})
    except Exception:
        session.rollback()
        raise

    get_cache().invalidate_module(company_id, CACHE_MODULE)
    logger.info(f"[ITEM] Updated item {item.id} for company {company_id}")
    return item


def delete_item(item_id: int, company_id: int, session) -> None:
    """Delete an item; refused while any invoice line references it."""
    item = get_item(item_id, company_id, session)

    in_use = session.query(InvoiceLine.id).filter(InvoiceLine.item_id == item.id).first()
    if in_use:
        raise ValidationRejected('This item is used on invoices and cannot be deleted')

    session.delete(item)
    session.commit()
    get_cache().invalidate_module(company_id, CACHE_MODULE)
    logger.info(f"[ITEM] Deleted item {item_id} for company {company_id}")


def set_picture(item_id: int, company_id: int, object_key: str, session) -> Item:
    """Record the image-store key of an item picture (does not touch updatedOn)."""
    item = get_item(item_id, company_id, session)
    item.picture_path = object_key
    session.commit()
    return item
