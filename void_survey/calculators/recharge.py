from __future__ import annotations

from typing import List

from ..catalog import is_free_form, is_reserved
from ..models import RechargeLine
from ..utils import parse_num, two_places
from .totals import iter_sections, field, priced_line


def extract_recharge(store) -> List[RechargeLine]:
    lines: List[RechargeLine] = []
    for section, items in iter_sections(store):
        if is_reserved(section):
            continue
        for item in items or []:
            if field(item, "recharge") is not True:
                continue
            if is_free_form(section):
                code = ""
                cost = parse_num(field(item, "cost"))
            else:
                code = str(field(item, "code", "") or "")
                _, cost, _ = priced_line(item)
            lines.append(
                RechargeLine(
                    section=section,
                    code=code,
                    description=str(field(item, "description", "") or ""),
                    cost=two_places(cost),
                    comment=str(field(item, "comment", "") or ""),
                )
            )
    return lines
