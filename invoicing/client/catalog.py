"""Catalog source: read access to the company's items over the API."""
import logging
from typing import List, Optional

from invoicing.client.session import ApiClient
from invoicing.core.catalog import CatalogItem, CatalogLookup
from invoicing.exceptions import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class CatalogSource:

    def __init__(self, api: ApiClient):
        self.api = api

    def list(self) -> List[CatalogItem]:
        """Every item with its own ``updatedOn`` token."""
        return [CatalogItem.from_payload(row) for row in self.api.get('Item/GetList')]

    def by_id(self, item_id: int) -> CatalogItem:
        return CatalogItem.from_payload(self.api.get(f'Item/{item_id}'))

    def lookup(self) -> CatalogLookup:
        """Snapshot used to populate invoice lines; refresh by calling again."""
        snapshot = CatalogLookup.from_payload(self.api.get('Item/GetLookupList'))
        logger.debug(f"[GATEWAY] Catalog snapshot loaded: {len(snapshot)} items")
        return snapshot

    def is_duplicate_name(self, item_name: str, exclude_id: Optional[int] = None) -> bool:
        params = {'ItemName': item_name}
        if exclude_id:
            params['ExcludeID'] = exclude_id
        try:
            self.api.get('Item/CheckDuplicateItemName', params=params)
        except ConflictError:
            return True
        return False

    def picture_url(self, item_id: int) -> Optional[str]:
        """Public URL of the item picture, None when it has none."""
        try:
            return self.api.get(f'Item/Picture/{item_id}')
        except NotFoundError:
            return None
