"""PDF export of a survey using ReportLab.

Same summary lines as the spreadsheet, then contractor work, lorry
clearance, SOR details and recharge tables. Platypus handles pagination.
"""

from __future__ import annotations

from io import BytesIO
from typing import Any, List, Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ...calculators.recharge import extract_recharge
from ...catalog import CONTRACTOR_WORK, LORRY_CLEARANCE
from ...models import FreeFormItem, SurveyRecord, Totals
from ...store import ItemStore
from ...utils import cell_text, yes_no
from .xlsx import detail_rows, free_form_has_content, summary_rows


styles = getSampleStyleSheet()
title_style = ParagraphStyle(
    "SurveyTitle",
    parent=styles["Heading1"],
    fontSize=18,
    spaceAfter=16,
)
heading_style = ParagraphStyle(
    "SurveyHeading",
    parent=styles["Heading2"],
    fontSize=12,
    spaceBefore=10,
    spaceAfter=6,
)
normal_style = ParagraphStyle(
    "SurveyNormal",
    parent=styles["Normal"],
    fontSize=10,
    leading=14,
)
cell_style = ParagraphStyle(
    "SurveyCell",
    parent=styles["Normal"],
    fontSize=8,
    leading=10,
)

DETAIL_PDF_HEADERS = ["Section", "Code", "Description", "UOM", "Quantity", "SMV", "Cost", "Comment"]


def _table(head: Sequence[str], body: List[Sequence[Any]], col_widths=None) -> Table:
    # Wrap text cells so long descriptions flow instead of overrunning the page
    data = [list(head)] + [[Paragraph(_escape(cell_text(c)), cell_style) for c in row] for row in body]
    table = Table(data, colWidths=col_widths, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f0f0f0")),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, 0), 9),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#cbd5e0")),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ]
        )
    )
    return table


def _escape(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _free_form_rows(store: ItemStore, section: str) -> List[FreeFormItem]:
    return [i for i in store.items(section) if isinstance(i, FreeFormItem) and free_form_has_content(i)]


def build_story(record: SurveyRecord, store: ItemStore, totals: Totals) -> list:
    story: list = [Paragraph("Empty Homes Survey", title_style)]

    for _, label, value in summary_rows(record, totals):
        if value in (None, ""):
            continue
        story.append(Paragraph(f"<b>{_escape(label)}:</b> {_escape(cell_text(value))}", normal_style))
    if totals.recharge_warning:
        story.append(Spacer(1, 4))
        story.append(Paragraph("<b>Warning:</b> recharge time exceeds 5 days.", normal_style))
    story.append(Spacer(1, 10))

    contractors = _free_form_rows(store, CONTRACTOR_WORK)
    if contractors:
        story.append(Paragraph("Contractor Work", heading_style))
        story.append(
            _table(
                ["Contractor", "Description", "Time (hrs)", "Cost", "Recharge?"],
                [[c.contractor or "", c.description or c.comment, c.time_estimate, c.cost, yes_no(c.recharge)] for c in contractors],
                col_widths=[35 * mm, 75 * mm, 20 * mm, 20 * mm, 20 * mm],
            )
        )

    lorry = _free_form_rows(store, LORRY_CLEARANCE)
    if lorry:
        story.append(Paragraph("Lorry Clearance", heading_style))
        story.append(
            _table(
                ["Description", "Time (hrs)", "Cost", "Recharge?"],
                [[i.description or i.comment, i.time_estimate, i.cost, yes_no(i.recharge)] for i in lorry],
                col_widths=[110 * mm, 20 * mm, 20 * mm, 20 * mm],
            )
        )

    details = [row[:8] for row in detail_rows(store) if row[1]]
    story.append(Paragraph("SOR Details", heading_style))
    story.append(
        _table(
            DETAIL_PDF_HEADERS,
            details,
            col_widths=[24 * mm, 18 * mm, 52 * mm, 12 * mm, 14 * mm, 12 * mm, 14 * mm, 30 * mm],
        )
    )

    recharge = extract_recharge(store)
    if recharge:
        story.append(Paragraph("Recharge Items", heading_style))
        story.append(
            _table(
                ["Section", "Code", "Description", "Cost (£)", "Comment"],
                [[r.section, r.code, r.description, r.cost, r.comment] for r in recharge],
                col_widths=[28 * mm, 20 * mm, 62 * mm, 20 * mm, 46 * mm],
            )
        )
    return story


def export_pdf(record: SurveyRecord, store: ItemStore, totals: Totals) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=10 * mm,
        leftMargin=14 * mm,
        topMargin=14 * mm,
        bottomMargin=14 * mm,
        title="Empty Homes Survey",
        author=record.surveyor_name,
    )
    doc.build(build_story(record, store, totals))
    return buffer.getvalue()
