# medstock/models/patient.py
from datetime import datetime, date
from enum import Enum

from sqlalchemy import (
    String,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from medstock.models.base import Base, enum_values, new_id


class PatientSex(str, Enum):
    MASCULINO = "masculino"
    FEMININO = "feminino"
    OUTRO = "outro"
    IGNORADO = "ignorado"


class Patient(Base):
    """
    Patient registered at a primary-care unit.

    NOTE:
    - sus_card_number is the national health-card number (CNS), 15 digits.
    - It is not unique: batch imports create one record per valid row.
    """

    __tablename__ = "patients"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sus_card_number: Mapped[str] = mapped_column(String(15), nullable=False, index=True)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sex: Mapped[PatientSex | None] = mapped_column(
        SAEnum(PatientSex, name="patient_sex_enum", values_callable=enum_values),
        nullable=True,
    )
    health_agent_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    registered_ubs_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("hospitals.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    registered_ubs_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

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
