# schemas/item.py
from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

NameStr = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=2, max_length=255),
]

CodeStr = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=100),
]

CategoryStr = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=2, max_length=100),
]

UnitOfMeasureStr = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=50),
]

OptStr255 = (
    Annotated[
        str,
        StringConstraints(strip_whitespace=True, max_length=255),
    ]
    | None
)


class ItemBase(BaseModel):
    """
    Shared fields for create/response.

    - Quantities are whole units and never negative.
    - Empty strings from UI are normalized to None.
    """

    name: NameStr
    code: CodeStr
    category: CategoryStr
    unit_of_measure: UnitOfMeasureStr

    min_quantity: int = Field(default=0, ge=0)
    current_quantity_central: int = Field(default=0, ge=0)

    supplier: OptStr255 = None
    expiration_date: date | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("supplier", "expiration_date", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ItemCreate(ItemBase):
    pass


class ItemUpdate(BaseModel):
    """
    PATCH payload. All fields optional.

    current_quantity_central is not editable: the central counter
    only moves through stock movements.
    """

    name: NameStr | None = None
    code: CodeStr | None = None
    category: CategoryStr | None = None
    unit_of_measure: UnitOfMeasureStr | None = None
    min_quantity: int | None = Field(default=None, ge=0)
    supplier: OptStr255 = None
    expiration_date: date | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("supplier", "expiration_date", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ItemResponse(ItemBase):
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, extra="forbid")
