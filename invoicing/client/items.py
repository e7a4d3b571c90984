"""Catalog item editing: immutable item draft and its persistence gateway."""
import logging
from dataclasses import dataclass, replace
from typing import Any, Optional

from invoicing.client.gateway import SaveMode, SaveResult, send_save
from invoicing.client.session import ApiClient
from invoicing.core.catalog import CatalogItem
from invoicing.core.computation import ZERO
from invoicing.core.draft import json_number
from invoicing.core.validation import validate_item
from invoicing.exceptions import InputValidationError, InvoicingError, PartialSuccess

logger = logging.getLogger(__name__)

ITEM_FIELDS = ('item_name', 'description', 'sales_rate', 'discount_pct')


@dataclass(frozen=True)
class ItemDraft:
    """Item being created or edited; same token cycle as an invoice."""

    item_name: str = ''
    description: str = ''
    sales_rate: Any = ZERO
    discount_pct: Any = ZERO
    item_id: Optional[int] = None
    updated_on: Optional[str] = None

    @classmethod
    def from_catalog_item(cls, item: CatalogItem) -> 'ItemDraft':
        return cls(
            item_name=item.item_name,
            description=item.description or '',
            sales_rate=item.sales_rate,
            discount_pct=item.discount_pct,
            item_id=item.item_id,
            updated_on=item.updated_on,
        )

    @property
    def is_persisted(self) -> bool:
        return self.item_id is not None

    def set_field(self, field_name: str, value: Any) -> 'ItemDraft':
        if field_name not in ITEM_FIELDS:
            raise ValueError(f"Unknown item field: {field_name}")
        return replace(self, **{field_name: value})

    def persisted(self, item_id: int, updated_on: Optional[str]) -> 'ItemDraft':
        return replace(self, item_id=item_id, updated_on=updated_on)

    def to_payload(self, include_identity: bool = False) -> dict:
        payload = {
            'itemName': self.item_name,
            'description': self.description or None,
            'salesRate': json_number(self.sales_rate),
            'discountPct': json_number(self.discount_pct),
        }
        if include_identity:
            payload['itemID'] = self.item_id
            payload['updatedOn'] = self.updated_on
        return payload


class ItemGateway:
    """Item persistence over the HTTP API, plus the optional picture upload."""

    def __init__(self, api: ApiClient):
        self.api = api

    def get_by_id(self, item_id: int) -> ItemDraft:
        return ItemDraft.from_catalog_item(CatalogItem.from_payload(self.api.get(f'Item/{item_id}')))

    def save(self, draft: ItemDraft, mode: SaveMode, picture=None) -> SaveResult:
        """
        Validate then create or update ``draft``; upload ``picture`` afterwards.

        ``picture`` is a ``(filename, fileobj, content_type)`` tuple. The
        upload only happens once the item is saved and a failure there does
        not undo the save: the result is then ``PartialSuccess`` and still
        carries the saved record.
        """
        report = validate_item(draft)
        if not report.is_valid:
            return SaveResult.failure(InputValidationError(report.errors))

        if mode is SaveMode.UPDATE:
            if not draft.is_persisted:
                raise ValueError('Only a previously saved item can be updated')
            label = f'Update item {draft.item_id}'

            def send():
                body = self.api.put('Item', json=draft.to_payload(include_identity=True))
                return draft.persisted(body['primaryKeyID'], body['updatedOn'])
        else:
            label = 'Create item'

            def send():
                body = self.api.post('Item', json=draft.to_payload())
                return draft.persisted(body['primaryKeyID'], body['updatedOn'])

        result = send_save(label, send)
        if not result.ok or picture is None:
            return result

        saved = result.record
        try:
            self.upload_picture(saved.item_id, picture)
        except InvoicingError as e:
            logger.warning(f"[GATEWAY] Item {saved.item_id} saved but picture upload failed: {e.message}")
            return SaveResult.failure(
                PartialSuccess(f'Item saved but the picture could not be uploaded: {e.message}', record=saved),
                record=saved
            )
        return result

    def upload_picture(self, item_id: int, picture) -> str:
        """Upload and return the picture URL."""
        body = self.api.post('Item/UpdateItemPicture', data={'ItemID': item_id}, files={'File': picture})
        return body['pictureUrl']

    def delete(self, item_id: int) -> None:
        self.api.delete(f'Item/{item_id}')
        logger.info(f"[GATEWAY] Deleted item {item_id}")
