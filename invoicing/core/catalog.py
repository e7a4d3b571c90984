"""Read-only catalog snapshot used to populate invoice lines."""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Iterator, Optional

from invoicing.core.computation import ZERO, to_decimal


@dataclass(frozen=True)
class CatalogItem:
    """One sellable item as the editor sees it (a copy, never shared state)."""

    item_id: int
    item_name: str
    description: Optional[str] = None
    sales_rate: Decimal = ZERO
    discount_pct: Decimal = ZERO
    updated_on: Optional[str] = None

    @classmethod
    def from_payload(cls, data: dict) -> 'CatalogItem':
        return cls(
            item_id=int(data['itemID']),
            item_name=data.get('itemName') or '',
            description=data.get('description'),
            sales_rate=to_decimal(data.get('salesRate')),
            discount_pct=to_decimal(data.get('discountPct')),
            updated_on=data.get('updatedOn'),
        )


class CatalogLookup:
    """Immutable id -> CatalogItem snapshot taken when the editor opens."""

    def __init__(self, items: Iterable[CatalogItem] = ()):
        self._items: Dict[int, CatalogItem] = {item.item_id: item for item in items}

    @classmethod
    def from_payload(cls, rows: Iterable[dict]) -> 'CatalogLookup':
        return cls(CatalogItem.from_payload(row) for row in rows)

    def get(self, item_id) -> Optional[CatalogItem]:
        try:
            return self._items.get(int(item_id))
        except (TypeError, ValueError):
            return None

    def __contains__(self, item_id) -> bool:
        return self.get(item_id) is not None

    def __iter__(self) -> Iterator[CatalogItem]:
        return iter(sorted(self._items.values(), key=lambda item: item.item_name.lower()))

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self):
        return f"<CatalogLookup(items={len(self._items)})>"
