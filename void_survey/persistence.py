"""Draft persistence.

The whole survey (screen, record, items) is kept as one JSON snapshot under
a fixed key in a local key/value directory. Snapshots carry a schema version
and older shapes are migrated on load.
"""

from __future__ import annotations

import json
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import structlog
from pydantic import BaseModel, Field

from .exceptions import DraftLoadError, DraftVersionError
from .models import SurveyRecord


log = structlog.get_logger(__name__)

SCHEMA_VERSION = 2
DEFAULT_KEY = "emptyHomesSurveyDraft"

# Browser-era snapshot keys -> record / notes fields
_LEGACY_RECORD = {
    "surveyorName": "surveyor_name",
    "propertyAddress": "property_address",
    "voidRating": "void_rating",
    "voidType": "void_type",
    "mwrRequired": "mwr_required",
    "overallComments": "overall_comments",
}
_LEGACY_NOTES = {
    "asbestosNotes": "asbestos_notes",
    "lorryClearanceNotes": "lorry_clearance_notes",
    "contractorNotes": "contractor_notes",
    "loftChecked": "loft_checked",
    "loftNeedsClearing": "loft_needs_clearing",
    "cookerClearance": "cooker_clearance",
    "cookerPointType": "cooker_point_type",
    "extractorFan": "kitchen_extractor_fan",
    "kitchenMWR": "kitchen_mwr",
    "bathExtractorFan": "bath_extractor_fan",
    "showerFitted": "shower_fitted",
    "showerType": "shower_type",
    "bathTurn": "bath_turn",
    "bathMWR": "bath_mwr",
}


class SurveyState(BaseModel):
    version: int = SCHEMA_VERSION
    saved_at: Optional[str] = None
    show_form: bool = False
    record: SurveyRecord = Field(default_factory=SurveyRecord)
    sections: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)


def _migrate_v1(raw: Dict[str, Any]) -> Dict[str, Any]:
    record = {new: raw[old] for old, new in _LEGACY_RECORD.items() if old in raw}
    notes = {new: raw[old] for old, new in _LEGACY_NOTES.items() if old in raw and raw[old] is not None}
    record["notes"] = notes
    sors = raw.get("sors") or {}
    return {
        "version": 2,
        "show_form": bool(raw.get("showForm", False)),
        "record": record,
        "sections": {k: v for k, v in sors.items() if isinstance(v, list)},
    }


_MIGRATIONS: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {1: _migrate_v1}


def migrate(raw: Dict[str, Any]) -> SurveyState:
    """Upgrade a stored snapshot of any known version to the current shape."""
    version = raw.get("version", 1)
    if not isinstance(version, int) or version > SCHEMA_VERSION or version < 1:
        raise DraftVersionError(f"Unsupported draft version: {version!r}")
    while version < SCHEMA_VERSION:
        raw = _MIGRATIONS[version](raw)
        version = raw["version"]
    return SurveyState.model_validate(raw)


class DraftStore:
    def __init__(self, directory: Path, key: str = DEFAULT_KEY):
        self.directory = Path(directory)
        self.key = key

    @property
    def path(self) -> Path:
        return self.directory / f"{self.key}.json"

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, state: SurveyState) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        state = state.model_copy(update={"saved_at": datetime.now(timezone.utc).isoformat()})
        tmp = self.path.with_suffix(".json.tmp")
        tmp.write_text(state.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)
        log.debug("draft_saved", key=self.key)

    def load(self) -> Optional[SurveyState]:
        if not self.exists():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError("draft is not a JSON object")
            return migrate(raw)
        except ValueError as e:
            # JSONDecodeError and pydantic ValidationError both land here
            log.error("draft_load_failed", key=self.key, error=str(e))
            raise DraftLoadError(f"Saved draft could not be read: {e}") from e

    def discard(self) -> None:
        if self.exists():
            self.path.unlink()
            log.info("draft_discarded", key=self.key)


class DebouncedWriter:
    """Writes the most recent state after a quiet period.

    A new ``schedule`` cancels the pending write; superseded states are
    dropped, never queued.
    """

    def __init__(self, save: Callable[[SurveyState], None], delay: float = 0.3):
        self._save = save
        self.delay = delay
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending: Optional[SurveyState] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def schedule(self, state: SurveyState) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = state
            self._timer = threading.Timer(self.delay, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            state, self._pending = self._pending, None
        if state is None:
            return
        try:
            self._save(state)
        except OSError as e:
            log.error("draft_save_failed", error=str(e))

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = None
