# schemas/hospital.py
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, StringConstraints, field_validator

from medstock.models.hospital import FacilityType

HospitalNameStr = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=3, max_length=255),
]

UnitNameStr = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=2, max_length=255),
]

OptStr500 = (
    Annotated[
        str,
        StringConstraints(strip_whitespace=True, max_length=500),
    ]
    | None
)


class HospitalCreate(BaseModel):
    name: HospitalNameStr
    address: OptStr500 = None
    facility_type: FacilityType = FacilityType.HOSPITAL

    model_config = ConfigDict(extra="forbid")

    @field_validator("address", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class HospitalUpdate(BaseModel):
    name: HospitalNameStr | None = None
    address: OptStr500 = None
    facility_type: FacilityType | None = None

    model_config = ConfigDict(extra="forbid")


class HospitalResponse(BaseModel):
    id: str
    name: str
    address: str | None = None
    facility_type: FacilityType
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ServedUnitCreate(BaseModel):
    name: UnitNameStr
    location: UnitNameStr
    hospital_id: str

    model_config = ConfigDict(extra="forbid")


class ServedUnitUpdate(BaseModel):
    name: UnitNameStr | None = None
    location: UnitNameStr | None = None
    hospital_id: str | None = None

    model_config = ConfigDict(extra="forbid")


class ServedUnitResponse(BaseModel):
    id: str
    name: str
    location: str
    hospital_id: str
    hospital_name: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
