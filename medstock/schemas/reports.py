from datetime import date as date_type
from typing import Literal

from pydantic import BaseModel

from medstock.models.stock import LocationKind, MovementType

LowStockLabel = Literal["Ótimo", "Baixo", "Alerta"]
ExpirationStatus = Literal["expired", "expiring", "valid"]


class LowStockRow(BaseModel):
    item_id: str
    item_name: str
    item_code: str
    location_kind: LocationKind
    location_name: str
    hospital_id: str | None = None
    unit_id: str | None = None
    current_quantity: int
    min_quantity: int
    strategic_stock_level: int
    status: LowStockLabel


class ExpiringItemRow(BaseModel):
    item_id: str
    item_name: str
    item_code: str
    expiration_date: date_type
    days_until_expiration: int
    current_quantity_central: int
    status: ExpirationStatus


class ConsumptionRow(BaseModel):
    movement_id: str
    date: date_type
    type: MovementType
    item_id: str
    item_name: str
    item_code: str
    quantity: int
    hospital_name: str | None = None
    unit_name: str | None = None
    patient_name: str | None = None
    user_display_name: str
    notes: str | None = None


class GeneralConsumptionRow(BaseModel):
    item_id: str
    item_name: str
    item_code: str
    hospital_id: str | None = None
    hospital_name: str
    unit_id: str | None = None
    unit_name: str
    total_consumed: int
