from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Mapping, Tuple

from ..catalog import LORRY_CLEARANCE, is_free_form, is_reserved
from ..models import Totals
from ..utils import is_blank, parse_num, to_decimal, two_places


MINUTES_PER_DAY = 400
RECHARGE_WARNING_DAYS = 5
LORRY_DEFAULT_COST = Decimal("250.00")


def field(item: Any, name: str, default=None):
    """Read a line-item field from a model or from a stored/legacy dict."""
    if isinstance(item, Mapping):
        if name == "time_estimate":
            return item.get("timeEstimate", item.get("time_estimate", default))
        return item.get(name, default)
    return getattr(item, name, default)


def is_phantom(section: str, item: Any, lorry_default_cost=LORRY_DEFAULT_COST) -> bool:
    """A seeded free-form row the surveyor has not touched yet."""
    if not is_free_form(section):
        return False
    untouched = (
        is_blank(field(item, "description"))
        and is_blank(field(item, "comment"))
        and is_blank(field(item, "time_estimate"))
    )
    if not untouched:
        return False
    if section == LORRY_CLEARANCE:
        return to_decimal(parse_num(field(item, "cost"))) == to_decimal(lorry_default_cost)
    return True


def is_inert(section: str, item: Any, lorry_default_cost=LORRY_DEFAULT_COST) -> bool:
    """True when an item cannot contribute to any total."""
    if is_free_form(section):
        return is_phantom(section, item, lorry_default_cost)
    return parse_num(field(item, "quantity")) <= 0


def priced_line(item: Any) -> Tuple[float, Decimal, float]:
    qty = parse_num(field(item, "quantity"))
    smv_total = parse_num(field(item, "smv")) * qty
    cost_total = to_decimal(parse_num(field(item, "cost"))) * to_decimal(qty)
    return qty, cost_total, smv_total


def iter_sections(store) -> Iterable[Tuple[str, Iterable[Any]]]:
    if hasattr(store, "sections"):
        store = store.sections
    return store.items()


def compute_totals(
    store,
    minutes_per_day: float = MINUTES_PER_DAY,
    lorry_default_cost=LORRY_DEFAULT_COST,
    warning_days: float = RECHARGE_WARNING_DAYS,
) -> Totals:
    """Fold every section's items into void and recharge totals.

    Free-form time (hours) only ever counts on the recharge side; a recharged
    priced item counts its minutes on both sides.
    """
    void_smv = 0.0
    void_cost = Decimal(0)
    recharge_smv = 0.0
    recharge_cost = Decimal(0)

    for section, items in iter_sections(store):
        if is_reserved(section):
            continue
        for item in items or []:
            recharge = field(item, "recharge") is True
            if is_free_form(section):
                if is_phantom(section, item, lorry_default_cost):
                    continue
                cost = to_decimal(parse_num(field(item, "cost")))
                void_cost += cost
                if recharge:
                    recharge_cost += cost
                    recharge_smv += parse_num(field(item, "time_estimate")) * 60
                continue

            qty, cost_total, smv_total = priced_line(item)
            if qty <= 0:
                continue
            void_cost += cost_total
            void_smv += smv_total
            if recharge:
                recharge_cost += cost_total
                recharge_smv += smv_total

    per_day = float(minutes_per_day) or float(MINUTES_PER_DAY)
    recharge_days = recharge_smv / per_day
    return Totals(
        void_smv=int(Decimal(str(void_smv)).quantize(Decimal(1), rounding=ROUND_HALF_UP)),
        void_cost=two_places(void_cost),
        void_days=void_smv / per_day,
        recharge_smv=round(recharge_smv, 2),
        recharge_days=recharge_days,
        recharge_cost=two_places(recharge_cost),
        recharge_warning=recharge_days > warning_days,
    )
