from __future__ import annotations

import re
import zipfile
from io import BytesIO

from ...models import SurveyRecord, Totals
from ...store import ItemStore
from .pdf import export_pdf
from .xlsx import export_xlsx


EXPORT_PREFIX = "Empty_Homes_Survey_"


def export_filename(address: str, ext: str) -> str:
    """Whitespace runs become "_"; path separators become "-" so the name stays one path segment."""
    safe = re.sub(r"\s+", "_", address or "")
    safe = re.sub(r"[\\/]", "-", safe)
    return f"{EXPORT_PREFIX}{safe}.{ext.lstrip('.')}"


def export_bundle(record: SurveyRecord, store: ItemStore, totals: Totals) -> bytes:
    """Zip holding the workbook and the PDF for one survey."""
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(export_filename(record.property_address, "xlsx"), export_xlsx(record, store, totals))
        zf.writestr(export_filename(record.property_address, "pdf"), export_pdf(record, store, totals))
    return buffer.getvalue()
