# medstock/models/stock.py
from datetime import date as date_type, datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from medstock.models.base import Base, enum_values, new_id


class MovementType(str, PyEnum):
    ENTRY = "entry"
    EXIT = "exit"
    CONSUMPTION = "consumption"


class LocationKind(str, PyEnum):
    CENTRAL = "central"
    UNIT = "unit"
    GENERAL = "general"


class Item(Base):
    """
    Catalog item (medicine, consumable, equipment).

    The central warehouse quantity lives here; every other location keeps
    its quantity on a StockConfig row.
    """

    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
        doc="Display key used by operators and by the movement spreadsheet.",
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    unit_of_measure: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        doc="e.g., comprimido, ml, frasco, caixa, unidade",
    )

    min_quantity: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    current_quantity_central: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )

    supplier: Mapped[str | None] = mapped_column(String(255), nullable=True)
    expiration_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)

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


class StockConfig(Base):
    """
    Stock levels and current quantity of one item at one location.

    The primary key is the composite location key built by
    utils.config_keys.config_key, so there is exactly one row per
    (item, location) and no duplicate-detection query is ever needed.
    """

    __tablename__ = "stock_configs"

    id: Mapped[str] = mapped_column(String(200), primary_key=True)

    item_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    location_kind: Mapped[LocationKind] = mapped_column(
        Enum(LocationKind, name="location_kind_enum", values_callable=enum_values),
        nullable=False,
    )
    unit_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("served_units.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    hospital_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("hospitals.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    strategic_stock_level: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    min_quantity: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    current_quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
        doc="Unused for central rows; the central quantity lives on Item.",
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=datetime.utcnow,
    )


class StockMovement(Base):
    """
    Append-only ledger entry: one movement of one item at one location.

    Names are copied at write time so history survives later renames.
    """

    __tablename__ = "stock_movements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    item_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("items.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    item_code: Mapped[str] = mapped_column(String(100), nullable=False)

    type: Mapped[MovementType] = mapped_column(
        Enum(MovementType, name="movement_type_enum", values_callable=enum_values),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[date_type] = mapped_column(Date, nullable=False, index=True)

    hospital_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    hospital_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    unit_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    unit_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    patient_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    patient_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    user_display_name: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
