from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medstock.models.base import Base, enum_values, new_id


class FacilityType(str, PyEnum):
    HOSPITAL = "hospital"
    PRIMARY_CARE = "primary_care"


class Hospital(Base):
    """
    A hospital or primary-care unit (UBS).

    Primary-care facilities own an extra "general stock" bucket that is not
    tied to any served unit.
    """

    __tablename__ = "hospitals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    facility_type: Mapped[FacilityType] = mapped_column(
        Enum(FacilityType, name="facility_type_enum", values_callable=enum_values),
        nullable=False,
        default=FacilityType.HOSPITAL,
        server_default=text("'hospital'"),
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

    units: Mapped[list["ServedUnit"]] = relationship(
        "ServedUnit", back_populates="hospital"
    )

    @property
    def is_primary_care(self) -> bool:
        return self.facility_type == FacilityType.PRIMARY_CARE


class ServedUnit(Base):
    """
    A consuming location (ward, pharmacy, room) inside a hospital.
    """

    __tablename__ = "served_units"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)

    hospital_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("hospitals.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
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

    hospital: Mapped["Hospital"] = relationship("Hospital", back_populates="units")

    @property
    def hospital_name(self) -> str | None:
        return self.hospital.name if self.hospital else None
