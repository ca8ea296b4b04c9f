"""Section catalog and the static schedule-of-rates document.

The section list fixes the form layout and every iteration order in the
package. The catalog document maps section name to priced templates, plus
search-only lists that can be added to any section but are never
pre-populated.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional

import structlog
import yaml

from .models import CatalogEntry


log = structlog.get_logger(__name__)

# "contractor work" stays last
SECTION_ORDER: List[str] = [
    "general",
    "asbestos",
    "decoration",
    "lorry clearance",
    "external works",
    "sheds",
    "loft",
    "hall/stair/landing",
    "w/c (closet)",
    "living room",
    "dining room",
    "kitchen",
    "bathroom/wetroom",
    "bedroom 1",
    "bedroom 2",
    "bedroom 3",
    "bedroom 4",
    "contractor work",
]

LORRY_CLEARANCE = "lorry clearance"
CONTRACTOR_WORK = "contractor work"
FREE_FORM_SECTIONS = frozenset({LORRY_CLEARANCE, CONTRACTOR_WORK})
RESERVED_KEYS = frozenset({"searchable", "__search_only"})


def title_case(section: str) -> str:
    if not section:
        return ""
    s = section.lower()
    return s[0].upper() + s[1:]


def is_free_form(section: str) -> bool:
    return section in FREE_FORM_SECTIONS


def is_reserved(section: str) -> bool:
    return section in RESERVED_KEYS


def match_section(name) -> Optional[str]:
    """Case-insensitive, trimmed lookup of a catalog section name."""
    key = str(name or "").strip().lower()
    return key if key in SECTION_ORDER else None


def _entries(raw) -> List[CatalogEntry]:
    if not isinstance(raw, list):
        return []
    out: List[CatalogEntry] = []
    for r in raw:
        if not isinstance(r, dict) or not r.get("code"):
            continue
        out.append(CatalogEntry(**{k: r[k] for k in ("code", "description", "uom", "smv", "cost") if k in r}))
    return out


class Catalog:
    def __init__(self, sections: Optional[Dict[str, List[CatalogEntry]]] = None, search_only: Optional[List[CatalogEntry]] = None):
        sections = sections or {}
        self.sections: Dict[str, List[CatalogEntry]] = {key: list(sections.get(key, [])) for key in SECTION_ORDER}
        self.search_only: List[CatalogEntry] = list(search_only or [])

    @classmethod
    def from_document(cls, data: dict) -> "Catalog":
        data = data if isinstance(data, dict) else {}
        sections = {key: _entries(data.get(key)) for key in SECTION_ORDER}
        search_only = _entries(data.get("__search_only")) + _entries(data.get("searchable"))
        return cls(sections, search_only)

    def to_document(self) -> dict:
        doc = {key: [e.model_dump() for e in entries] for key, entries in self.sections.items()}
        doc["searchable"] = [e.model_dump() for e in self.search_only]
        return doc

    def templates(self, section: str) -> List[CatalogEntry]:
        return list(self.sections.get(section, []))

    def find(self, code: str, section: Optional[str] = None) -> Optional[CatalogEntry]:
        pools = [self.sections.get(section, [])] if section else list(self.sections.values())
        pools.append(self.search_only)
        for pool in pools:
            for entry in pool:
                if entry.code == code:
                    return entry
        return None

    def search(self, section: str, text: str) -> List[CatalogEntry]:
        """Every whitespace-separated term must appear in 'code description'."""
        terms = [t for t in (text or "").lower().split() if t]
        if not terms:
            return []
        hits = []
        for entry in self.sections.get(section, []) + self.search_only:
            haystack = f"{entry.code} {entry.description}".lower()
            if all(t in haystack for t in terms):
                hits.append(entry)
        return hits


def load_catalog(path: Optional[Path]) -> Catalog:
    """Load the catalog document; on any failure log it and carry on empty."""
    if not path:
        return Catalog()
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        log.error("catalog_load_failed", path=str(path), error=str(e))
        return Catalog()
    catalog = Catalog.from_document(data)
    log.info(
        "catalog_loaded",
        path=str(path),
        templates=sum(len(v) for v in catalog.sections.values()),
        search_only=len(catalog.search_only),
    )
    return catalog
