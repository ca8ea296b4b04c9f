from __future__ import annotations

import zipfile
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Set, Union

import structlog
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import ValidationError

from ..catalog import CONTRACTOR_WORK, is_free_form, match_section
from ..exceptions import SurveyImportError
from ..models import FeatureNotes, PricedItem, SurveyRecord
from ..output.exporters.xlsx import DETAILS_SHEET, SUMMARY_FIELDS, SUMMARY_LABELS, SUMMARY_SHEET
from ..store import ItemStore
from ..utils import cell_text, is_blank, truthy


log = structlog.get_logger(__name__)

_RECORD_TAGS = {"surveyor_name", "property_address", "void_rating", "void_type", "mwr_required", "overall_comments"}
_NOTE_TAGS = set(FeatureNotes.model_fields)
_TRI_STATE = {"loft_checked", "loft_needs_clearing"}
_KNOWN_TAGS = {tag for tag, _, _ in SUMMARY_FIELDS}


@dataclass
class ImportReport:
    fields: List[str] = field(default_factory=list)
    skipped_labels: List[str] = field(default_factory=list)
    skipped_sections: List[str] = field(default_factory=list)
    matched: int = 0
    appended: int = 0
    free_form: Dict[str, int] = field(default_factory=dict)


def _cells(ws) -> List[List[Any]]:
    rows: List[List[Any]] = []
    for r in ws.iter_rows(values_only=True):
        rows.append(list(r))
    return rows


def _coerce(tag: str, value: Any) -> Any:
    if tag == "mwr_required":
        return truthy(value)
    if tag in _TRI_STATE:
        return None if is_blank(value) else truthy(value)
    return cell_text(value)


def _apply_summary(rows: List[List[Any]], record: SurveyRecord, report: ImportReport) -> SurveyRecord:
    updates: Dict[str, Any] = {}
    note_updates: Dict[str, Any] = {}
    for row in rows:
        if not row or is_blank(row[0]):
            continue
        label = str(row[0])
        value = row[1] if len(row) > 1 else None
        tag = str(row[2]).strip() if len(row) > 2 and row[2] else SUMMARY_LABELS.get(label)
        if tag not in _KNOWN_TAGS:
            report.skipped_labels.append(label)
            continue
        if tag in _RECORD_TAGS:
            updates[tag] = _coerce(tag, value)
        elif tag in _NOTE_TAGS:
            note_updates[tag] = _coerce(tag, value)
        else:
            # derived totals are recomputed, not imported
            continue
        report.fields.append(tag)

    notes = record.notes.model_copy(update=note_updates)
    data = record.model_dump()
    data.update(updates)
    data["notes"] = notes.model_dump()
    try:
        return SurveyRecord.model_validate(data)
    except ValidationError:
        # Keep what validates; an unknown rating/type keeps the current value
        for key in ("void_rating", "void_type"):
            if key in updates:
                data[key] = getattr(record, key)
                report.skipped_labels.append(key)
        return SurveyRecord.model_validate(data)


def _header_index(header: List[Any]) -> Dict[str, int]:
    return {str(h).strip().lower(): i for i, h in enumerate(header) if h is not None}


def _get(row: List[Any], cols: Dict[str, int], name: str) -> Any:
    i = cols.get(name.lower())
    if i is None or i >= len(row):
        return None
    return row[i]


def _apply_details(rows: List[List[Any]], store: ItemStore, report: ImportReport) -> None:
    if not rows:
        return
    cols = _header_index(rows[0])
    used: Dict[str, Set[int]] = {}
    free_form: Dict[str, List[Dict[str, Any]]] = {}

    for row in rows[1:]:
        if not row or all(is_blank(c) for c in row):
            continue
        raw_section = _get(row, cols, "Section")
        section = match_section(raw_section)
        if section is None:
            report.skipped_sections.append(cell_text(raw_section))
            continue

        comment = cell_text(_get(row, cols, "Comment"))
        recharge = truthy(_get(row, cols, "Recharge?"))

        if is_free_form(section):
            entry = {
                "description": cell_text(_get(row, cols, "Description")),
                "comment": comment,
                "cost": cell_text(_get(row, cols, "Cost")),
                "timeEstimate": cell_text(_get(row, cols, "Time (hrs)")),
                "recharge": recharge,
            }
            if section == CONTRACTOR_WORK:
                entry["contractor"] = cell_text(_get(row, cols, "Contractor"))
            free_form.setdefault(section, []).append(entry)
            continue

        code = cell_text(_get(row, cols, "Code"))
        quantity = cell_text(_get(row, cols, "Quantity"))
        taken = used.setdefault(section, set())
        match_idx = None
        for idx, item in enumerate(store.items(section)):
            if idx not in taken and isinstance(item, PricedItem) and item.code == code:
                match_idx = idx
                break
        if match_idx is not None:
            current = store.items(section)[match_idx]
            store.update(
                section,
                match_idx,
                current.model_copy(update={"quantity": quantity, "comment": comment, "recharge": recharge}),
            )
            taken.add(match_idx)
            report.matched += 1
        else:
            store.append_raw(
                section,
                {
                    "code": code,
                    "description": cell_text(_get(row, cols, "Description")),
                    "uom": cell_text(_get(row, cols, "UOM")),
                    "smv": _get(row, cols, "SMV"),
                    "cost": _get(row, cols, "Cost"),
                    "quantity": quantity,
                    "comment": comment,
                    "recharge": recharge,
                },
            )
            taken.add(len(store.items(section)) - 1)
            report.appended += 1

    for section, items in free_form.items():
        store.replace_section(section, items)
        report.free_form[section] = len(items)


def import_survey(
    source: Union[bytes, Path, str],
    record: SurveyRecord,
    store: ItemStore,
) -> tuple[SurveyRecord, ImportReport]:
    """Overlay an exported workbook onto a record and item store.

    The store is updated in place; the record is returned as a new object.
    Rows and sections that cannot be placed are skipped and listed in the
    report, never raised.
    """
    report = ImportReport()
    try:
        fh = BytesIO(source) if isinstance(source, bytes) else Path(source)
        wb = load_workbook(fh, read_only=True, data_only=True)
    except (OSError, zipfile.BadZipFile, InvalidFileException, KeyError, ValueError) as e:
        raise SurveyImportError(f"Could not read workbook: {e}") from e

    try:
        if SUMMARY_SHEET in wb.sheetnames:
            record = _apply_summary(_cells(wb[SUMMARY_SHEET]), record, report)
        if DETAILS_SHEET in wb.sheetnames:
            _apply_details(_cells(wb[DETAILS_SHEET]), store, report)
    finally:
        wb.close()

    log.info(
        "survey_imported",
        fields=len(report.fields),
        matched=report.matched,
        appended=report.appended,
        skipped_labels=len(report.skipped_labels),
        skipped_sections=len(report.skipped_sections),
    )
    if report.skipped_labels or report.skipped_sections:
        log.debug("survey_import_skipped", labels=report.skipped_labels, sections=report.skipped_sections)
    return record, report
