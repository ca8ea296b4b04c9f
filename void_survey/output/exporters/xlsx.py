"""Spreadsheet export.

Two sheets: "Summary" holds label/value rows plus a stable field tag per row
(import keys on the tag, so labels can be reworded), and "SOR Details" holds
one row per contributing line item.
"""

from __future__ import annotations

from io import BytesIO
from typing import Any, Callable, Dict, List, Tuple

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from ...catalog import CONTRACTOR_WORK, SECTION_ORDER, is_free_form, title_case
from ...models import FreeFormItem, PricedItem, SurveyRecord, Totals
from ...store import ItemStore
from ...utils import cell_text, is_blank, parse_num, yes_no


SUMMARY_SHEET = "Summary"
DETAILS_SHEET = "SOR Details"

DETAIL_HEADERS = [
    "Section",
    "Code",
    "Description",
    "UOM",
    "Quantity",
    "SMV",
    "Cost",
    "Comment",
    "Recharge?",
    "Time (hrs)",
    "Contractor",
]


def _tri(val) -> str:
    if val is None:
        return ""
    return yes_no(val)


# (field tag, label, value getter). Tags are written into the export and are
# what import matches on; labels are for people.
SummaryGetter = Callable[[SurveyRecord, Totals], Any]
SUMMARY_FIELDS: List[Tuple[str, str, SummaryGetter]] = [
    ("surveyor_name", "Surveyor Name", lambda r, t: r.surveyor_name),
    ("property_address", "Property Address", lambda r, t: r.property_address),
    ("void_rating", "Void Rating", lambda r, t: r.void_rating),
    ("void_type", "Void Type", lambda r, t: r.void_type),
    ("mwr_required", "MWR Required", lambda r, t: yes_no(r.mwr_required)),
    ("total_void_smv", "Total SMV", lambda r, t: t.void_smv),
    ("total_void_days", "Total Void Days", lambda r, t: f"{t.void_days:.1f}"),
    ("total_void_cost", "Total Cost (£)", lambda r, t: t.void_cost),
    ("total_recharge_smv", "Recharge SMV", lambda r, t: round(t.recharge_smv)),
    ("total_recharge_days", "Recharge Days", lambda r, t: f"{t.recharge_days:.1f}"),
    ("total_recharge_cost", "Recharge Cost (£)", lambda r, t: t.recharge_cost),
    ("recharge_warning", "Recharge Over 5 Days", lambda r, t: yes_no(t.recharge_warning)),
    ("overall_comments", "Comments", lambda r, t: r.overall_comments),
    ("asbestos_notes", "Asbestos Notes", lambda r, t: r.notes.asbestos_notes),
    ("lorry_clearance_notes", "Lorry Clearance Notes", lambda r, t: r.notes.lorry_clearance_notes),
    ("contractor_notes", "Contractor Work Notes", lambda r, t: r.notes.contractor_notes),
    ("loft_checked", "Loft Checked", lambda r, t: _tri(r.notes.loft_checked)),
    ("loft_needs_clearing", "Loft Needs Clearing", lambda r, t: _tri(r.notes.loft_needs_clearing)),
    ("cooker_clearance", "Cooker Clearance (300mm)", lambda r, t: r.notes.cooker_clearance),
    ("cooker_point_type", "Cooker Point Type", lambda r, t: r.notes.cooker_point_type),
    ("kitchen_extractor_fan", "Kitchen Extractor Fan", lambda r, t: r.notes.kitchen_extractor_fan),
    ("kitchen_mwr", "Kitchen MWR", lambda r, t: r.notes.kitchen_mwr),
    ("bath_extractor_fan", "Bathroom Extractor Fan", lambda r, t: r.notes.bath_extractor_fan),
    ("shower_fitted", "Shower Fitted", lambda r, t: r.notes.shower_fitted),
    ("shower_type", "Shower Type", lambda r, t: r.notes.shower_type),
    ("bath_turn", "Bath Turn Required", lambda r, t: r.notes.bath_turn),
    ("bath_mwr", "Bathroom MWR", lambda r, t: r.notes.bath_mwr),
]

SUMMARY_LABELS: Dict[str, str] = {label: tag for tag, label, _ in SUMMARY_FIELDS}


def summary_rows(record: SurveyRecord, totals: Totals) -> List[Tuple[str, str, Any]]:
    return [(tag, label, getter(record, totals)) for tag, label, getter in SUMMARY_FIELDS]


def free_form_has_content(item: FreeFormItem) -> bool:
    return any(
        not is_blank(v)
        for v in (item.description, item.comment, item.cost, item.time_estimate, item.contractor)
    )


def detail_rows(store: ItemStore) -> List[List[Any]]:
    rows: List[List[Any]] = []
    for section in SECTION_ORDER:
        for item in store.items(section):
            if is_free_form(section):
                if not isinstance(item, FreeFormItem) or not free_form_has_content(item):
                    continue
                rows.append([
                    title_case(section),
                    "",
                    item.description or "",
                    "",
                    "",
                    "",
                    cell_text(item.cost),
                    item.comment or "",
                    yes_no(item.recharge),
                    cell_text(item.time_estimate),
                    (item.contractor or "") if section == CONTRACTOR_WORK else "",
                ])
                continue
            if not isinstance(item, PricedItem) or parse_num(item.quantity) <= 0:
                continue
            rows.append([
                title_case(section),
                item.code,
                item.description,
                item.uom,
                cell_text(item.quantity),
                item.smv if item.smv not in (None, "") else "",
                item.cost if item.cost not in (None, "") else "",
                item.comment,
                yes_no(item.recharge),
                "",
                "",
            ])
    return rows


def _autosize(ws, max_width: int = 60) -> None:
    for col in ws.columns:
        width = max((len(str(c.value)) for c in col if c.value is not None), default=8)
        ws.column_dimensions[get_column_letter(col[0].column)].width = min(max(width + 2, 10), max_width)


def build_workbook(record: SurveyRecord, store: ItemStore, totals: Totals) -> Workbook:
    wb = Workbook()
    header_fill = PatternFill(start_color="F0F0F0", end_color="F0F0F0", fill_type="solid")
    bold = Font(bold=True)

    ws = wb.active
    ws.title = SUMMARY_SHEET
    for tag, label, value in summary_rows(record, totals):
        ws.append([label, value, tag])
    for row in ws.iter_rows(min_col=1, max_col=1):
        row[0].font = bold
    ws.column_dimensions["C"].hidden = True
    _autosize(ws)

    wd = wb.create_sheet(DETAILS_SHEET)
    wd.append(DETAIL_HEADERS)
    for cell in wd[1]:
        cell.font = bold
        cell.fill = header_fill
    for row in detail_rows(store):
        wd.append(row)
    for row in wd.iter_rows(min_row=2):
        for cell in row:
            cell.alignment = Alignment(wrap_text=True, vertical="top")
    wd.freeze_panes = "A2"
    _autosize(wd)
    return wb


def export_xlsx(record: SurveyRecord, store: ItemStore, totals: Totals) -> bytes:
    wb = build_workbook(record, store, totals)
    output = BytesIO()
    wb.save(output)
    return output.getvalue()
