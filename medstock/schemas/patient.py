import re
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from medstock.models.patient import PatientSex

SUS_CARD_PATTERN = re.compile(r"^[0-9]{15}$")
SUS_CARD_ERROR = "Número do Cartão SUS inválido. Deve conter 15 dígitos numéricos."


def validate_sus_card_number(value: str) -> str:
    """Cartão SUS (CNS): exactly 15 digits, nothing else."""
    value = (value or "").strip()
    if not SUS_CARD_PATTERN.match(value):
        raise ValueError(SUS_CARD_ERROR)
    return value


def normalize_phone(phone: str) -> str:
    """Normalize phone number: remove spaces, dashes, parentheses, keep + and digits."""
    if not phone:
        return ""
    return re.sub(r"[\s\-\(\)]", "", phone)


class PatientBase(BaseModel):
    name: str
    sus_card_number: str
    birth_date: Optional[date] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    sex: Optional[PatientSex] = None
    health_agent_name: Optional[str] = None
    registered_ubs_id: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("O nome do paciente deve ter pelo menos 3 caracteres.")
        return v

    @field_validator("sus_card_number")
    @classmethod
    def validate_sus_card(cls, v: str) -> str:
        return validate_sus_card_number(v)

    @field_validator("birth_date")
    @classmethod
    def validate_birth_date(cls, v: Optional[date]) -> Optional[date]:
        if v is not None and v > date.today():
            raise ValueError("A data de nascimento não pode estar no futuro.")
        return v

    @field_validator("address", "health_agent_name", "registered_ubs_id", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("phone", mode="before")
    @classmethod
    def clean_phone(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return normalize_phone(str(v))


class PatientCreate(PatientBase):
    # defaults to the operator's own UBS
    registered_ubs_id: Optional[str] = None


class PatientUpdate(BaseModel):
    """PATCH payload; only the fields sent are applied."""

    name: Optional[str] = None
    sus_card_number: Optional[str] = None
    birth_date: Optional[date] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    sex: Optional[PatientSex] = None
    health_agent_name: Optional[str] = None
    registered_ubs_id: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if len(v) < 3:
            raise ValueError("O nome do paciente deve ter pelo menos 3 caracteres.")
        return v

    @field_validator("sus_card_number")
    @classmethod
    def validate_sus_card(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return validate_sus_card_number(v)

    @field_validator("phone", mode="before")
    @classmethod
    def clean_phone(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return normalize_phone(str(v))


class PatientResponse(BaseModel):
    id: str
    name: str
    sus_card_number: str
    birth_date: Optional[date] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    sex: Optional[PatientSex] = None
    health_agent_name: Optional[str] = None
    registered_ubs_id: Optional[str] = None
    registered_ubs_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
