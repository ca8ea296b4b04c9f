"""Shared fixtures: a small catalog, settings pointing at a temp drafts dir, a session."""

from __future__ import annotations

import copy
from decimal import Decimal
from pathlib import Path

import pytest

from void_survey.catalog import Catalog
from void_survey.config import SurveySettings
from void_survey.persistence import DraftStore
from void_survey.session import SurveySession
from void_survey.store import ItemStore


CATALOG_DOC = {
    "general": [
        {"code": "GEN001", "description": "Void clean - full property", "uom": "IT", "smv": 240, "cost": 85.0},
    ],
    "kitchen": [
        {"code": "KIT001", "description": "Renew kitchen base unit 600mm", "uom": "NR", "smv": 60, "cost": 95.0},
        {"code": "KIT002", "description": "Renew kitchen worktop", "uom": "M", "smv": 45, "cost": 40.0},
    ],
    "bedroom 1": [
        {"code": "BED001", "description": "Renew skirting board", "uom": "M", "smv": 12, "cost": 5.5},
    ],
    "searchable": [
        {"code": "PLA001", "description": "Hack off and replaster wall", "uom": "M2", "smv": 40, "cost": 22.0},
    ],
    "__search_only": [
        {"code": "ELE010", "description": "Renew consumer unit", "uom": "NR", "smv": 240, "cost": 310.0},
    ],
}


@pytest.fixture
def catalog_doc() -> dict:
    return copy.deepcopy(CATALOG_DOC)


@pytest.fixture
def catalog(catalog_doc: dict) -> Catalog:
    return Catalog.from_document(catalog_doc)


@pytest.fixture
def settings(tmp_path: Path) -> SurveySettings:
    """Settings with drafts under tmp_path and no remote targets."""
    return SurveySettings(
        catalog_path=tmp_path / "sors.json",
        drafts_dir=tmp_path / "drafts",
        autosave_delay=60,
        lorry_default_cost=Decimal("250.00"),
    )


@pytest.fixture
def drafts(settings: SurveySettings) -> DraftStore:
    return DraftStore(settings.drafts_dir, key=settings.draft_key)


@pytest.fixture
def session(catalog: Catalog, settings: SurveySettings, drafts: DraftStore) -> SurveySession:
    return SurveySession(catalog, settings, drafts)


@pytest.fixture
def seeded_store(catalog: Catalog) -> ItemStore:
    store = ItemStore.from_catalog(catalog)
    store.seed_free_form(Decimal("250.00"))
    return store
