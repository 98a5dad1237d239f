from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from medstock.models.base import Base, enum_values


class UserStatus(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class UserRole(str, PyEnum):
    ADMIN = "admin"
    CENTRAL_OPERATOR = "central_operator"
    HOSPITAL_OPERATOR = "hospital_operator"
    UBS_OPERATOR = "ubs_operator"
    USER = "user"


class UserProfile(Base):
    """
    Application profile of an identity-provider subject.

    - id is the provider's subject id (looked up by key on every request).
    - role + associated hospital/unit jointly scope what the user may see
      and edit (see services.access_policy).
    """

    __tablename__ = "user_profiles"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role_enum", values_callable=enum_values),
        nullable=False,
        default=UserRole.USER,
    )
    status: Mapped[UserStatus] = mapped_column(
        Enum(UserStatus, name="user_status_enum", values_callable=enum_values),
        nullable=False,
        default=UserStatus.ACTIVE,
    )

    associated_hospital_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("hospitals.id", ondelete="SET NULL"),
        nullable=True,
    )
    associated_unit_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("served_units.id", ondelete="SET NULL"),
        nullable=True,
        doc="When set, the profile is restricted to this single served unit.",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=datetime.utcnow,
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE
