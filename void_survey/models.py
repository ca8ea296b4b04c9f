from __future__ import annotations

from typing import Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


VoidRating = Literal["Green", "Amber", "Red"]
VoidType = Literal["Minor", "Major"]
# Form inputs arrive as strings; catalog values as numbers. Both are parsed safely at use.
NumberLike = Union[float, int, str, None]


def _new_id() -> str:
    return uuid4().hex[:12]


class PricedItem(BaseModel):
    id: str = Field(default_factory=_new_id)
    code: str = ""
    description: str = ""
    uom: str = ""
    smv: NumberLike = 0
    cost: NumberLike = 0
    quantity: NumberLike = ""
    comment: str = ""
    recharge: bool = False


class FreeFormItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    contractor: Optional[str] = None  # contractor work only
    description: str = ""
    cost: NumberLike = ""  # total, not per unit
    time_estimate: NumberLike = Field("", alias="timeEstimate")  # hours
    recharge: bool = False
    comment: str = ""


LineItem = Union[PricedItem, FreeFormItem]


class CatalogEntry(BaseModel):
    code: str
    description: str = ""
    uom: str = ""
    smv: NumberLike = 0
    cost: NumberLike = 0


class FeatureNotes(BaseModel):
    asbestos_notes: str = ""
    lorry_clearance_notes: str = ""
    contractor_notes: str = ""
    loft_checked: Optional[bool] = None
    loft_needs_clearing: Optional[bool] = None
    cooker_clearance: str = ""
    cooker_point_type: str = ""
    kitchen_extractor_fan: str = ""
    kitchen_mwr: str = ""
    bath_extractor_fan: str = ""
    shower_fitted: str = ""
    shower_type: str = ""
    bath_turn: str = ""
    bath_mwr: str = ""


class SurveyRecord(BaseModel):
    surveyor_name: str = ""
    property_address: str = ""
    void_rating: VoidRating = "Green"
    void_type: VoidType = "Minor"
    mwr_required: bool = False
    overall_comments: str = ""
    notes: FeatureNotes = Field(default_factory=FeatureNotes)


class Totals(BaseModel):
    void_smv: int = 0
    void_cost: str = "0.00"
    void_days: float = 0.0
    recharge_smv: float = 0.0
    recharge_days: float = 0.0
    recharge_cost: str = "0.00"
    recharge_warning: bool = False


class RechargeLine(BaseModel):
    section: str
    code: str = ""
    description: str = ""
    cost: str = "0.00"
    comment: str = ""
