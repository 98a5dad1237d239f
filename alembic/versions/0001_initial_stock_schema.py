"""initial_stock_schema

Revision ID: 0001_initial_stock_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001_initial_stock_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(with_created: bool = True) -> list[sa.Column]:
    columns = []
    if with_created:
        columns.append(
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                server_default=sa.text("CURRENT_TIMESTAMP"),
                nullable=False,
            )
        )
    columns.append(
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        )
    )
    return columns


def upgrade() -> None:
    op.create_table(
        "hospitals",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column(
            "facility_type",
            sa.Enum("hospital", "primary_care", name="facility_type_enum"),
            nullable=False,
            server_default=sa.text("'hospital'"),
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "served_units",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("hospital_id", sa.String(length=36), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["hospital_id"], ["hospitals.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_served_units_hospital_id"), "served_units", ["hospital_id"]
    )

    op.create_table(
        "items",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=100), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("unit_of_measure", sa.String(length=50), nullable=False),
        sa.Column(
            "min_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")
        ),
        sa.Column(
            "current_quantity_central",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column("supplier", sa.String(length=255), nullable=True),
        sa.Column("expiration_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )

    op.create_table(
        "user_profiles",
        sa.Column("id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column(
            "role",
            sa.Enum(
                "admin",
                "central_operator",
                "hospital_operator",
                "ubs_operator",
                "user",
                name="user_role_enum",
            ),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum("active", "inactive", name="user_status_enum"),
            nullable=False,
        ),
        sa.Column("associated_hospital_id", sa.String(length=36), nullable=True),
        sa.Column("associated_unit_id", sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["associated_hospital_id"], ["hospitals.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(
            ["associated_unit_id"], ["served_units.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "patients",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("sus_card_number", sa.String(length=15), nullable=False),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column(
            "sex",
            sa.Enum(
                "masculino", "feminino", "outro", "ignorado", name="patient_sex_enum"
            ),
            nullable=True,
        ),
        sa.Column("health_agent_name", sa.String(length=255), nullable=True),
        sa.Column("registered_ubs_id", sa.String(length=36), nullable=True),
        sa.Column("registered_ubs_name", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["registered_ubs_id"], ["hospitals.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_patients_sus_card_number"), "patients", ["sus_card_number"]
    )
    op.create_index(
        op.f("ix_patients_registered_ubs_id"), "patients", ["registered_ubs_id"]
    )

    op.create_table(
        "stock_configs",
        sa.Column("id", sa.String(length=200), nullable=False),
        sa.Column("item_id", sa.String(length=36), nullable=False),
        sa.Column(
            "location_kind",
            sa.Enum("central", "unit", "general", name="location_kind_enum"),
            nullable=False,
        ),
        sa.Column("unit_id", sa.String(length=36), nullable=True),
        sa.Column("hospital_id", sa.String(length=36), nullable=True),
        sa.Column(
            "strategic_stock_level",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column(
            "min_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")
        ),
        sa.Column(
            "current_quantity",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        *_timestamps(with_created=False),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["unit_id"], ["served_units.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["hospital_id"], ["hospitals.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_stock_configs_item_id"), "stock_configs", ["item_id"])
    op.create_index(op.f("ix_stock_configs_unit_id"), "stock_configs", ["unit_id"])
    op.create_index(
        op.f("ix_stock_configs_hospital_id"), "stock_configs", ["hospital_id"]
    )

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("item_id", sa.String(length=36), nullable=False),
        sa.Column("item_name", sa.String(length=255), nullable=False),
        sa.Column("item_code", sa.String(length=100), nullable=False),
        sa.Column(
            "type",
            sa.Enum("entry", "exit", "consumption", name="movement_type_enum"),
            nullable=False,
        ),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("hospital_id", sa.String(length=36), nullable=True),
        sa.Column("hospital_name", sa.String(length=255), nullable=True),
        sa.Column("unit_id", sa.String(length=36), nullable=True),
        sa.Column("unit_name", sa.String(length=255), nullable=True),
        sa.Column("patient_id", sa.String(length=36), nullable=True),
        sa.Column("patient_name", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("user_display_name", sa.String(length=255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    for column in ("item_id", "date", "hospital_id", "unit_id", "patient_id"):
        op.create_index(
            op.f(f"ix_stock_movements_{column}"), "stock_movements", [column]
        )


def downgrade() -> None:
    for column in ("patient_id", "unit_id", "hospital_id", "date", "item_id"):
        op.drop_index(
            op.f(f"ix_stock_movements_{column}"), table_name="stock_movements"
        )
    op.drop_table("stock_movements")

    op.drop_index(op.f("ix_stock_configs_hospital_id"), table_name="stock_configs")
    op.drop_index(op.f("ix_stock_configs_unit_id"), table_name="stock_configs")
    op.drop_index(op.f("ix_stock_configs_item_id"), table_name="stock_configs")
    op.drop_table("stock_configs")

    op.drop_index(op.f("ix_patients_registered_ubs_id"), table_name="patients")
    op.drop_index(op.f("ix_patients_sus_card_number"), table_name="patients")
    op.drop_table("patients")

    op.drop_table("user_profiles")
    op.drop_table("items")

    op.drop_index(op.f("ix_served_units_hospital_id"), table_name="served_units")
    op.drop_table("served_units")
    op.drop_table("hospitals")

    for enum_name in (
        "movement_type_enum",
        "location_kind_enum",
        "patient_sex_enum",
        "user_status_enum",
        "user_role_enum",
        "facility_type_enum",
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
