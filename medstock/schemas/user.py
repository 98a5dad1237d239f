from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator

from medstock.models.user import UserRole, UserStatus


class UserProfileBase(BaseModel):
    name: str
    email: EmailStr
    role: UserRole = UserRole.USER
    status: UserStatus = UserStatus.ACTIVE
    associated_hospital_id: str | None = None
    associated_unit_id: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("O nome completo deve ter pelo menos 3 caracteres.")
        return v

    @field_validator("associated_hospital_id", "associated_unit_id", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class UserProfileCreate(UserProfileBase):
    """Admin creates the profile of an existing identity-provider subject."""

    id: str


class UserProfileUpdate(BaseModel):
    name: str | None = None
    role: UserRole | None = None
    status: UserStatus | None = None
    associated_hospital_id: str | None = None
    associated_unit_id: str | None = None


class RegisterRequest(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("O nome completo deve ter pelo menos 3 caracteres.")
        return v


class UserProfileResponse(BaseModel):
    id: str
    name: str
    email: str
    role: UserRole
    status: UserStatus
    associated_hospital_id: str | None = None
    associated_unit_id: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
