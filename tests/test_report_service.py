"""
Tests for the low-stock, expiring-items, consumption and general-consumption
reports.
"""

from datetime import date, timedelta

import pytest

from medstock.core.errors import Unauthorized
from medstock.models.user import UserRole
from medstock.schemas.stock import MovementCreate
from medstock.services.access_policy import AccessPolicy
from medstock.services.movement_service import process_movement
from medstock.services.report_service import (
    consumption_csv,
    consumption_history,
    expiration_status,
    expiring_items_report,
    general_consumption_csv,
    general_consumption_report,
    low_stock_csv,
    low_stock_pdf,
    low_stock_report,
    patient_consumption,
)
from medstock.utils.csv_utils import BOM

REFERENCE = date(2024, 6, 1)


class TestExpiration:

    @pytest.mark.parametrize(
        "days,expected",
        [(-1, "expired"), (0, "expiring"), (30, "expiring"), (31, "valid")],
    )
    def test_status(self, days, expected):
        assert expiration_status(days, 30) == expected

    def test_report_sorted_and_filtered(self, db, make_item):
        make_item("A", "Vencido", expiration_date=REFERENCE - timedelta(days=3))
        make_item("B", "Vence logo", expiration_date=REFERENCE + timedelta(days=10))
        make_item("C", "Válido", expiration_date=REFERENCE + timedelta(days=90))
        make_item("D", "Sem validade")

        rows = expiring_items_report(db, reference=REFERENCE)
        assert [r.item_code for r in rows] == ["A", "B"]
        assert rows[0].days_until_expiration == -3

        everything = expiring_items_report(db, include_valid=True, reference=REFERENCE)
        assert [r.status for r in everything] == ["expired", "expiring", "valid"]

        only_expired = expiring_items_report(
            db, include_expiring=False, reference=REFERENCE
        )
        assert [r.item_code for r in only_expired] == ["A"]


@pytest.fixture
def history(db, admin, make_hospital, make_unit, make_item, make_patient):
    hospital = make_hospital("Hospital Central")
    ubs = make_hospital("UBS Vila Nova", primary_care=True)
    ward = make_unit(hospital, "Enfermaria")
    item = make_item(central=100, min_quantity=200)
    patient = make_patient(ubs=ubs)

    def move(type_, qty, day, **extra):
        process_movement(
            db,
            MovementCreate(item_id=item.id, type=type_, quantity=qty, date=day, **extra),
            admin,
        )

    move("exit", 20, "2024-05-01", hospital_id=hospital.id, unit_id=ward.id)
    move("exit", 20, "2024-05-01", hospital_id=ubs.id)
    move("consumption", 4, "2024-05-02", hospital_id=hospital.id, unit_id=ward.id)
    move("consumption", 1, "2024-05-03", hospital_id=ubs.id, patient_id=patient.id)
    return hospital, ubs, ward, item, patient


class TestLowStock:

    def test_labels(self, db, admin, history):
        rows = low_stock_report(db, AccessPolicy.for_profile(admin))
        central = next(r for r in rows if r.location_kind.value == "central")
        assert central.status == "Baixo"
        assert central.current_quantity == 60

    def test_csv_has_bom_and_header(self, db, admin, history):
        rows = low_stock_report(db, AccessPolicy.for_profile(admin))
        content = low_stock_csv(rows)
        assert content.startswith(BOM + "Código,Item,Local")
        assert len(content.lstrip(BOM).splitlines()) == 1 + len(rows)

    def test_pdf(self, db, admin, history):
        buffer = low_stock_pdf(low_stock_report(db, AccessPolicy.for_profile(admin)))
        assert buffer.getvalue().startswith(b"%PDF")


class TestConsumption:

    def test_history_newest_first(self, db, admin, history):
        rows = consumption_history(db, AccessPolicy.for_profile(admin))
        assert [r.quantity for r in rows] == [1, 4]
        assert rows[0].patient_name == "Maria da Silva"

    def test_history_scoped_to_operator(self, db, make_profile, history):
        hospital, _, ward, _, _ = history
        operator = make_profile("op", UserRole.HOSPITAL_OPERATOR, hospital=hospital, unit=ward)
        rows = consumption_history(db, AccessPolicy.for_profile(operator))
        assert [r.unit_name for r in rows] == ["Enfermaria"]

    def test_date_range(self, db, admin, history):
        rows = consumption_history(
            db,
            AccessPolicy.for_profile(admin),
            start_date=date(2024, 5, 3),
            end_date=date(2024, 5, 31),
        )
        assert len(rows) == 1

    def test_patient_consumption(self, db, admin, make_profile, history):
        hospital, _, _, _, patient = history
        rows = patient_consumption(db, AccessPolicy.for_profile(admin), patient.id)
        assert len(rows) == 1

        outsider = make_profile("op", UserRole.HOSPITAL_OPERATOR, hospital=hospital)
        with pytest.raises(Unauthorized):
            patient_consumption(db, AccessPolicy.for_profile(outsider), patient.id)

    def test_csv(self, db, admin, history):
        content = consumption_csv(consumption_history(db, AccessPolicy.for_profile(admin)))
        lines = content.lstrip(BOM).splitlines()
        assert lines[0].startswith("Data,Código,Item,Quantidade")
        assert lines[1].startswith("2024-05-03,MED-001")


class TestGeneralConsumption:

    @pytest.fixture
    def more_history(self, db, admin, history):
        hospital, _, ward, item, _ = history
        for qty, day, extra in (
            (3, "2024-05-04", {"hospital_id": hospital.id, "unit_id": ward.id}),
            (2, "2024-05-05", {}),
        ):
            process_movement(
                db,
                MovementCreate(
                    item_id=item.id, type="consumption", quantity=qty, date=day, **extra
                ),
                admin,
            )
        return history

    def test_totals_per_item_and_location(self, db, admin, more_history):
        rows = general_consumption_report(db, AccessPolicy.for_profile(admin))
        assert [(r.unit_name, r.hospital_name, r.total_consumed) for r in rows] == [
            ("Armazém Central", "-", 2),
            ("Enfermaria", "Hospital Central", 7),
            ("Estoque Geral", "UBS Vila Nova", 1),
        ]

    def test_filters(self, db, admin, more_history):
        hospital, ubs, ward, item, _ = more_history
        policy = AccessPolicy.for_profile(admin)

        by_hospital = general_consumption_report(db, policy, hospital_id=hospital.id)
        assert [(r.unit_id, r.total_consumed) for r in by_hospital] == [(ward.id, 7)]

        since = general_consumption_report(db, policy, start_date=date(2024, 5, 3))
        assert sorted(r.total_consumed for r in since) == [1, 2, 3]

        assert general_consumption_report(db, policy, item_id="other") == []
        assert general_consumption_report(db, policy, end_date=date(2024, 4, 30)) == []

    def test_scoped_to_operator(self, db, make_profile, more_history):
        hospital, _, ward, _, _ = more_history
        operator = make_profile("op", UserRole.HOSPITAL_OPERATOR, hospital=hospital, unit=ward)
        rows = general_consumption_report(db, AccessPolicy.for_profile(operator))
        assert [(r.unit_name, r.total_consumed) for r in rows] == [("Enfermaria", 7)]

    def test_csv(self, db, admin, more_history):
        rows = general_consumption_report(db, AccessPolicy.for_profile(admin))
        lines = general_consumption_csv(rows).lstrip(BOM).splitlines()
        assert lines[0] == "Nome do Item,Código,Unidade/Local,Hospital,Total Consumido"
        assert lines[2] == "Dipirona 500mg,MED-001,Enfermaria,Hospital Central,7"
