"""Single-screen survey session.

Two screens: ``start`` (surveyor name and address) and ``form`` (sections,
totals, exports). While the form is active every change schedules a
debounced draft save; a draft found at startup is offered for resume once.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import structlog
from pydantic import ValidationError

from .calculators.recharge import extract_recharge
from .calculators.totals import compute_totals
from .catalog import Catalog, is_free_form
from .config import SurveySettings
from .exceptions import DraftLoadError, SurveyValidationError
from .importers.survey_xlsx import ImportReport, import_survey
from .models import FeatureNotes, LineItem, RechargeLine, SurveyRecord, Totals
from .output.exporters.bundle import export_bundle, export_filename
from .output.exporters.pdf import export_pdf
from .output.exporters.xlsx import export_xlsx
from .persistence import DebouncedWriter, DraftStore, SurveyState
from .remote import build_payload
from .store import ItemInput, ItemStore


log = structlog.get_logger(__name__)

START = "start"
FORM = "form"

RECORD_FIELDS = {"surveyor_name", "property_address", "void_rating", "void_type", "mwr_required", "overall_comments"}


class SurveySession:
    def __init__(self, catalog: Catalog, settings: SurveySettings, drafts: Optional[DraftStore] = None):
        self.catalog = catalog
        self.settings = settings
        self.drafts = drafts
        self.writer = DebouncedWriter(drafts.save, delay=settings.autosave_delay) if drafts else None
        self.record = SurveyRecord()
        self.store = ItemStore()
        self.screen = START
        self.resume_offered = False

    # -- screens -----------------------------------------------------------

    @property
    def active(self) -> bool:
        return self.screen == FORM

    def start(self, surveyor_name: str, property_address: str) -> None:
        name = (surveyor_name or "").strip()
        address = (property_address or "").strip()
        if not name or not address:
            raise SurveyValidationError("Surveyor name and property address are both required")
        self.record = self.record.model_copy(update={"surveyor_name": name, "property_address": address})
        self.store = ItemStore.from_catalog(self.catalog)
        self.store.seed_free_form(self.settings.lorry_default_cost)
        self.screen = FORM
        log.info("survey_started", address=address)
        self._changed()

    def new_survey(self) -> None:
        if self.writer:
            self.writer.cancel()
        self.record = SurveyRecord()
        self.store = ItemStore()
        self.screen = START

    # -- drafts ------------------------------------------------------------

    def snapshot(self) -> SurveyState:
        return SurveyState(show_form=self.active, record=self.record, sections=self.store.to_dict())

    def restore(self, state: SurveyState) -> None:
        store = ItemStore.from_dict(state.sections)
        self.record = state.record
        self.store = store
        self.screen = FORM if state.show_form else START

    def _changed(self) -> None:
        if self.writer and self.active:
            self.writer.schedule(self.snapshot())

    def should_offer_resume(self) -> bool:
        """True the first time a saved draft is seen in this session."""
        if self.resume_offered or not self.drafts or not self.drafts.exists():
            return False
        self.resume_offered = True
        return True

    def resume(self) -> bool:
        self.resume_offered = True
        state = self.drafts.load() if self.drafts else None
        if state is None:
            return False
        try:
            self.restore(state)
        except (TypeError, ValueError) as e:
            # pydantic ValidationError is a ValueError
            log.error("draft_load_failed", error=str(e))
            raise DraftLoadError(f"Saved draft has invalid items: {e}") from e
        log.info("draft_resumed", address=self.record.property_address)
        return True

    def discard_draft(self) -> None:
        self.resume_offered = True
        if self.writer:
            self.writer.cancel()
        if self.drafts:
            self.drafts.discard()
        self.new_survey()

    def flush(self) -> None:
        if self.writer:
            self.writer.flush()

    # -- record fields -----------------------------------------------------

    def set_field(self, name: str, value: Any) -> None:
        if name not in RECORD_FIELDS:
            raise SurveyValidationError(f"Unknown survey field: {name}")
        data = self.record.model_dump()
        data[name] = value
        try:
            self.record = SurveyRecord.model_validate(data)
        except ValidationError as e:
            raise SurveyValidationError(f"Invalid value for {name}: {value!r}") from e
        self._changed()

    def set_note(self, name: str, value: Any) -> None:
        if name not in FeatureNotes.model_fields:
            raise SurveyValidationError(f"Unknown note: {name}")
        notes = self.record.notes.model_dump()
        notes[name] = value
        try:
            validated = FeatureNotes.model_validate(notes)
        except ValidationError as e:
            raise SurveyValidationError(f"Invalid value for {name}: {value!r}") from e
        self.record = self.record.model_copy(update={"notes": validated})
        self._changed()

    # -- items -------------------------------------------------------------

    def add_item(self, section: str, item: ItemInput) -> LineItem:
        added = self.store.add(section, item)
        self._changed()
        return added

    def add_from_catalog(self, section: str, code: str) -> Optional[LineItem]:
        if is_free_form(section):
            return None
        entry = self.catalog.find(code, section)
        if entry is None:
            return None
        return self.add_item(section, entry)

    def update_item(self, section: str, index: int, item: ItemInput) -> LineItem:
        updated = self.store.update(section, index, item)
        self._changed()
        return updated

    def edit_item(self, section: str, item_id: str, changes: Dict[str, Any]) -> LineItem:
        updated = self.store.update_by_id(section, item_id, changes)
        self._changed()
        return updated

    def remove_item(self, section: str, index: int) -> None:
        self.store.remove(section, index)
        self._changed()

    def delete_item(self, section: str, item_id: str) -> None:
        self.store.remove_by_id(section, item_id)
        self._changed()

    # -- derived -----------------------------------------------------------

    def totals(self) -> Totals:
        return compute_totals(
            self.store,
            minutes_per_day=self.settings.minutes_per_day,
            lorry_default_cost=self.settings.lorry_default_cost,
            warning_days=self.settings.recharge_warning_days,
        )

    def recharge_lines(self) -> List[RechargeLine]:
        return extract_recharge(self.store)

    # -- import / export ---------------------------------------------------

    def export_xlsx(self) -> Tuple[str, bytes]:
        return export_filename(self.record.property_address, "xlsx"), export_xlsx(self.record, self.store, self.totals())

    def export_pdf(self) -> Tuple[str, bytes]:
        return export_filename(self.record.property_address, "pdf"), export_pdf(self.record, self.store, self.totals())

    def export_bundle(self) -> Tuple[str, bytes]:
        return export_filename(self.record.property_address, "zip"), export_bundle(self.record, self.store, self.totals())

    def submission_payload(self) -> Dict[str, Any]:
        return build_payload(self.record, self.store, self.totals(), self.settings.lorry_default_cost)

    def import_xlsx(self, data: bytes) -> ImportReport:
        if not self.store.sections or not any(self.store.sections.values()):
            self.store = ItemStore.from_catalog(self.catalog)
            self.store.seed_free_form(self.settings.lorry_default_cost)
        record, report = import_survey(data, self.record, self.store)
        self.record = record
        if self.record.surveyor_name and self.record.property_address:
            self.screen = FORM
        self._changed()
        return report
