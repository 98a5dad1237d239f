# schemas/stock.py
from __future__ import annotations

from datetime import date as date_type, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from medstock.models.stock import LocationKind, MovementType

StockStatus = Literal["optimal", "low", "alert", "not_configured"]


class MovementCreate(BaseModel):
    """
    Raw movement as submitted by the form or produced by a spreadsheet row.

    Fields are loosely typed: the movement processor runs the checks itself,
    in a fixed order, for single submissions and batch rows alike.
    """

    item_id: str
    type: str
    quantity: float
    date: str
    hospital_id: str | None = None
    unit_id: str | None = None
    patient_id: str | None = None
    notes: str | None = None

    @field_validator("hospital_id", "unit_id", "patient_id", "notes", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class MovementResult(BaseModel):
    """
    config_key and resulting_quantity describe the location the movement
    resolved to (the destination of a transfer). central_quantity is set
    whenever the central warehouse counter moved.
    """

    movement_id: str
    config_key: str
    resulting_quantity: int
    central_quantity: int | None = None


class MovementResponse(BaseModel):
    id: str
    item_id: str
    item_name: str
    item_code: str
    type: MovementType
    quantity: int
    date: date_type
    hospital_id: str | None = None
    hospital_name: str | None = None
    unit_id: str | None = None
    unit_name: str | None = None
    patient_id: str | None = None
    patient_name: str | None = None
    notes: str | None = None
    user_id: str
    user_display_name: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StockConfigRow(BaseModel):
    """One (item, location) cell of the strategic-level grid."""

    id: str
    item_id: str
    item_name: str
    item_code: str
    location_kind: LocationKind
    hospital_id: str | None = None
    hospital_name: str | None = None
    unit_id: str | None = None
    unit_name: str | None = None
    strategic_stock_level: int = 0
    min_quantity: int = 0
    current_quantity: int = 0


class StockConfigUpdate(BaseModel):
    """
    Only the levels are editable from the grid. current_quantity is never
    accepted here; negative levels are clamped to zero by the service.
    """

    item_id: str
    location_kind: LocationKind
    unit_id: str | None = None
    hospital_id: str | None = None
    strategic_stock_level: int = 0
    min_quantity: int = 0

    model_config = ConfigDict(extra="forbid")


class StockConfigBulkUpdate(BaseModel):
    configs: list[StockConfigUpdate] = Field(min_length=1)


class StockConfigBulkResult(BaseModel):
    saved: int


class StockOverviewRow(BaseModel):
    id: str
    item_id: str
    item_name: str
    item_code: str
    location_kind: LocationKind
    location_name: str
    hospital_id: str | None = None
    hospital_name: str | None = None
    unit_id: str | None = None
    unit_name: str | None = None
    current_quantity: int
    strategic_stock_level: int = 0
    min_quantity: int = 0
    status: StockStatus


class StockOverviewPage(BaseModel):
    items: list[StockOverviewRow]
    total: int
    page: int
    page_size: int
