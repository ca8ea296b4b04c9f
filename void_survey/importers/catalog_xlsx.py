from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import pandas as pd

from ..catalog import SECTION_ORDER, is_free_form, match_section


def _detect_header(df) -> int:
    # the header is the first row of the first 30 that names a Code column
    for idx in range(min(len(df), 30)):
        cells = [str(c).strip().lower() for c in df.iloc[idx].tolist() if pd.notna(c)]
        if "code" in cells:
            return idx
    head = df.iloc[:30].notna().sum(axis=1)
    return int(head.idxmax())


def _to_float(x) -> float:
    try:
        if x is None or (isinstance(x, float) and pd.isna(x)):
            return 0.0
        return float(str(x).replace(",", "").replace("£", "").strip())
    except Exception:
        return 0.0


def _text(x) -> str:
    if x is None or (isinstance(x, float) and pd.isna(x)):
        return ""
    s = str(x).strip()
    return "" if s.lower() == "nan" else s


def build_catalog_from_sheet(path: Path) -> Dict[str, Any]:
    """Turn a flat schedule-of-rates price list into a catalog document.

    Rows whose section is not a survey section go to the search-only list.
    """
    path = Path(path)
    if path.suffix.lower() == ".csv":
        raw = pd.read_csv(path, header=None, dtype=object)
    else:
        raw = pd.read_excel(path, sheet_name=0, header=None)
    header_row = _detect_header(raw)
    cols = [str(c).strip() if pd.notna(c) else "" for c in raw.iloc[header_row].tolist()]
    data = raw.iloc[header_row + 1 :].copy()
    data.columns = cols

    colmap = {}
    for c in data.columns:
        lc = c.lower()
        if "section" in lc or "room" in lc:
            colmap[c] = "section"
        elif lc in ("code", "sor code", "sor"):
            colmap[c] = "code"
        elif "desc" in lc:
            colmap[c] = "description"
        elif lc in ("uom", "unit", "units"):
            colmap[c] = "uom"
        elif "smv" in lc or "minutes" in lc:
            colmap[c] = "smv"
        elif "cost" in lc or "price" in lc or "rate" in lc:
            colmap[c] = "cost"
    data = data.rename(columns=colmap)

    doc: Dict[str, List[Dict[str, Any]]] = {key: [] for key in SECTION_ORDER}
    doc["searchable"] = []
    for _, row in data.iterrows():
        code = _text(row.get("code"))
        if not code:
            continue
        entry = {
            "code": code,
            "description": _text(row.get("description")),
            "uom": _text(row.get("uom")),
            "smv": _to_float(row.get("smv")),
            "cost": _to_float(row.get("cost")),
        }
        section = match_section(row.get("section"))
        doc[section if section and not is_free_form(section) else "searchable"].append(entry)
    return doc
