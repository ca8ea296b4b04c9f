from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from .catalog import (
    CONTRACTOR_WORK,
    LORRY_CLEARANCE,
    SECTION_ORDER,
    Catalog,
    is_free_form,
    is_reserved,
)
from .exceptions import ItemNotFoundError
from .models import CatalogEntry, FreeFormItem, LineItem, PricedItem
from .utils import two_places


ItemInput = Union[LineItem, CatalogEntry, Dict[str, Any]]


def coerce_item(section: str, item: ItemInput) -> LineItem:
    """Build the item variant a section holds from a model or a plain dict."""
    if isinstance(item, (PricedItem, FreeFormItem)):
        want = FreeFormItem if is_free_form(section) else PricedItem
        if isinstance(item, want):
            return item
        item = item.model_dump(by_alias=True)
    elif isinstance(item, CatalogEntry):
        item = item.model_dump()
    data = dict(item or {})
    if is_free_form(section):
        if section != CONTRACTOR_WORK:
            data.pop("contractor", None)
        return FreeFormItem.model_validate(data)
    for key in ("comment", "code", "description", "uom"):
        if data.get(key) is None:
            data.pop(key, None)
    return PricedItem.model_validate(data)


class ItemStore:
    """Section name -> ordered line items.

    Items carry a stable id, so callers holding a possibly stale index can
    address them by id instead.
    """

    def __init__(self, sections: Optional[Dict[str, List[LineItem]]] = None):
        self.sections: Dict[str, List[LineItem]] = {key: [] for key in SECTION_ORDER}
        for key, items in (sections or {}).items():
            if is_reserved(key):
                continue
            self.sections[key] = [coerce_item(key, i) for i in items]

    @classmethod
    def from_catalog(cls, catalog: Catalog) -> "ItemStore":
        store = cls()
        for section in SECTION_ORDER:
            if is_free_form(section):
                continue
            for entry in catalog.templates(section):
                store.add(section, entry)
        return store

    def seed_free_form(self, lorry_default_cost) -> None:
        # Template rows the form shows before the surveyor edits anything.
        if not self.sections[LORRY_CLEARANCE]:
            self.sections[LORRY_CLEARANCE].append(FreeFormItem(cost=two_places(lorry_default_cost)))
        if not self.sections[CONTRACTOR_WORK]:
            self.sections[CONTRACTOR_WORK].append(FreeFormItem(contractor=""))

    def items(self, section: str) -> List[LineItem]:
        return self.sections.get(section, [])

    def __iter__(self) -> Iterator[Tuple[str, List[LineItem]]]:
        return iter(self.sections.items())

    def add(self, section: str, item: ItemInput) -> LineItem:
        new = coerce_item(section, item)
        if not is_free_form(section):
            new = new.model_copy(update={"quantity": "", "comment": "", "recharge": False})
        self.sections.setdefault(section, []).append(new)
        return new

    def append_raw(self, section: str, item: ItemInput) -> LineItem:
        new = coerce_item(section, item)
        self.sections.setdefault(section, []).append(new)
        return new

    def update(self, section: str, index: int, new_item: ItemInput) -> LineItem:
        arr = self.sections.get(section, [])
        if index < 0 or index >= len(arr):
            raise ItemNotFoundError(section, index)
        new = coerce_item(section, new_item)
        arr[index] = new
        return new

    def remove(self, section: str, index: int) -> None:
        arr = self.sections.get(section, [])
        if 0 <= index < len(arr):
            del arr[index]

    def index_of(self, section: str, item_id: str) -> int:
        for idx, item in enumerate(self.sections.get(section, [])):
            if item.id == item_id:
                return idx
        return -1

    def update_by_id(self, section: str, item_id: str, changes: Dict[str, Any]) -> LineItem:
        idx = self.index_of(section, item_id)
        if idx < 0:
            raise ItemNotFoundError(section, item_id)
        current = self.sections[section][idx]
        merged = current.model_dump(by_alias=True)
        merged.update(changes)
        merged["id"] = item_id
        return self.update(section, idx, merged)

    def remove_by_id(self, section: str, item_id: str) -> None:
        idx = self.index_of(section, item_id)
        if idx >= 0:
            self.remove(section, idx)

    def replace_section(self, section: str, items: List[ItemInput]) -> None:
        self.sections[section] = [coerce_item(section, i) for i in items]

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {key: [i.model_dump(by_alias=True) for i in items] for key, items in self.sections.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, List[Dict[str, Any]]]) -> "ItemStore":
        return cls(data or {})
