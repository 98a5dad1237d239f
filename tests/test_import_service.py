"""
Tests for CSV batch imports and their templates.
"""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from medstock.core.errors import ConflictOrUnavailable, InvalidInput, Unauthorized
from medstock.models.hospital import FacilityType, Hospital, ServedUnit
from medstock.models.patient import Patient
from medstock.models.stock import Item, StockConfig, StockMovement
from medstock.models.user import UserRole
from medstock.services.import_service import (
    TEMPLATES,
    get_template,
    import_batch,
    import_hospitals,
    import_movements,
    import_patients,
    import_served_units,
    infer_facility_type,
)
from medstock.utils.csv_utils import BOM

PATIENT_HEADER = "Nome Completo,Número do Cartão SUS,Data de Nascimento\n"
MOVEMENT_HEADER = (
    "Código do Item,Tipo,Quantidade,Data,Nome do Hospital Destino/Consumo,"
    "Nome da Unidade Destino/Consumo,Cartão SUS Paciente,Observações\n"
)


class TestTemplates:

    def test_hospital_template_is_byte_stable(self):
        rendered = get_template("hospitals").render()
        assert rendered.startswith(BOM + "Nome,Endereço\n")
        assert rendered == get_template("hospitals").render()
        assert rendered.encode("utf-8").startswith(b"\xef\xbb\xbfNome,")

    @pytest.mark.parametrize("kind", sorted(TEMPLATES))
    def test_every_template_has_header_and_examples(self, kind):
        template = TEMPLATES[kind]
        lines = template.render().lstrip(BOM).splitlines()
        assert lines[0] == ",".join(template.headers)
        assert len(lines) == 1 + len(template.examples)
        assert template.filename.endswith(".csv")

    def test_unknown_template(self):
        with pytest.raises(InvalidInput):
            get_template("vaccines")


class TestPatientImport:

    def test_bad_card_is_reported_and_skipped(self, db, admin):
        content = (
            PATIENT_HEADER
            + "Maria Joaquina,700123456789012,1985-07-22\n"
            + "José Ricardo,70098765432109,\n"
            + "Ana Paula,700555555555555,\n"
        )

        result = import_patients(db, content.encode("utf-8"), admin)

        assert result.succeeded == 2
        assert len(result.errors) == 1
        assert result.errors[0].row == 3
        assert "15 dígitos" in result.errors[0].message
        assert len(db.scalars(select(Patient)).all()) == 2

    def test_accepts_bom_and_blank_lines(self, db, admin):
        content = BOM + PATIENT_HEADER + "\nMaria Joaquina,700123456789012,\n\n"
        result = import_patients(db, content, admin)
        assert result.succeeded == 1
        assert result.errors == []

    def test_invalid_birth_date(self, db, admin):
        content = PATIENT_HEADER + "Maria Joaquina,700123456789012,22/07/1985\n"
        result = import_patients(db, content, admin)
        assert result.succeeded == 0
        assert result.errors[0].row == 2
        assert "Data de Nascimento" in result.errors[0].message

    def test_duplicates_are_not_merged(self, db, admin):
        row = "Maria Joaquina,700123456789012,\n"
        result = import_patients(db, PATIENT_HEADER + row + row, admin)
        assert result.succeeded == 2
        assert len(db.scalars(select(Patient)).all()) == 2

    def test_operator_registers_at_own_ubs(self, db, make_hospital, make_profile):
        ubs = make_hospital("UBS Vila Nova", primary_care=True)
        operator = make_profile("op-ubs", UserRole.UBS_OPERATOR, hospital=ubs)
        import_patients(db, PATIENT_HEADER + "Maria Joaquina,700123456789012,\n", operator)
        patient = db.scalars(select(Patient)).one()
        assert patient.registered_ubs_id == ubs.id
        assert patient.registered_ubs_name == "UBS Vila Nova"

    def test_missing_required_header(self, db, admin):
        with pytest.raises(InvalidInput, match="Número do Cartão SUS"):
            import_patients(db, "Nome Completo\nMaria\n", admin)

    def test_empty_file(self, db, admin):
        with pytest.raises(InvalidInput):
            import_patients(db, b"", admin)


class TestHospitalAndUnitImport:

    def test_facility_type_inferred_from_name(self):
        assert infer_facility_type("UBS Vila Esperança") == FacilityType.PRIMARY_CARE
        assert infer_facility_type("Hospital Central") == FacilityType.HOSPITAL

    def test_import_hospitals(self, db, admin):
        content = "Nome,Endereço\nHospital Central da Cidade,Rua 1\nUBS Vila Esperança,\nX,\n"
        result = import_hospitals(db, content, admin)
        assert result.succeeded == 2
        assert result.errors[0].row == 4
        ubs = db.scalars(select(Hospital).where(Hospital.name == "UBS Vila Esperança")).one()
        assert ubs.is_primary_care
        assert ubs.address is None

    def test_import_units_matches_hospital_by_name(self, db, admin, make_hospital):
        make_hospital("Hospital Central da Cidade")
        content = (
            "Nome da Unidade,Localização,Nome do Hospital Associado\n"
            "Sala de Emergência,Piso 1,hospital central da cidade\n"
            "UTI Neonatal,Piso 3,Hospital Inexistente\n"
        )
        result = import_served_units(db, content, admin)
        assert result.succeeded == 1
        assert result.errors[0].row == 3
        assert "Hospital Inexistente" in result.errors[0].message
        assert len(db.scalars(select(ServedUnit)).all()) == 1

    def test_operators_cannot_import_hospitals(self, db, make_profile):
        operator = make_profile("op", UserRole.HOSPITAL_OPERATOR)
        with pytest.raises(Unauthorized):
            import_hospitals(db, "Nome,Endereço\nHospital A,\n", operator)


class TestMovementImport:

    @pytest.fixture
    def setup(self, db, make_hospital, make_unit, make_item, make_patient):
        hospital = make_hospital("Hospital Central")
        ubs = make_hospital("UBS Vila Nova", primary_care=True)
        unit = make_unit(hospital, "UTI Geral")
        item = make_item(code="ITEM001", name="Soro", central=0)
        patient = make_patient(card="700123456789012", ubs=ubs)
        return hospital, ubs, unit, item, patient

    def test_rows_apply_in_order_and_bad_rows_leave_no_trace(self, db, admin, setup):
        hospital, ubs, unit, item, patient = setup
        content = (
            MOVEMENT_HEADER
            + "ITEM001,entrada,100,2024-01-15,,,,\n"
            + "ITEM001,Saída,10,2024-01-16,Hospital Central,UTI Geral,,Transferência\n"
            + "ITEM001,saida,5,2024-01-18,UBS Vila Nova,,,\n"
            + "ITEM001,consumo,2,2024-01-19,UBS Vila Nova,,700123456789012,\n"
            + "ITEM001,consumo,50,2024-01-19,UBS Vila Nova,,,\n"
            + "ITEM999,entrada,1,2024-01-20,,,,\n"
            + "ITEM001,doação,1,2024-01-20,,,,\n"
        )

        result = import_movements(db, content, admin)

        assert result.succeeded == 4
        assert [e.row for e in result.errors] == [6, 7, 8]
        assert "Estoque insuficiente" in result.errors[0].message
        assert "ITEM999" in result.errors[1].message
        assert "Tipo inválido" in result.errors[2].message

        db.refresh(item)
        assert item.current_quantity_central == 85
        assert db.get(StockConfig, f"{item.id}_{unit.id}").current_quantity == 10
        assert db.get(StockConfig, f"{item.id}_{ubs.id}_UBSGENERAL").current_quantity == 3
        movements = db.scalars(select(StockMovement)).all()
        assert len(movements) == 4
        assert any(m.patient_id == patient.id for m in movements)

    def test_unknown_unit_for_hospital(self, db, admin, setup):
        content = MOVEMENT_HEADER + "ITEM001,saida,1,2024-01-16,UBS Vila Nova,UTI Geral,,\n"
        result = import_movements(db, content, admin)
        assert result.succeeded == 0
        assert "UTI Geral" in result.errors[0].message

    def test_only_global_roles_import_movements(self, db, make_profile, setup):
        hospital = setup[0]
        operator = make_profile("op", UserRole.HOSPITAL_OPERATOR, hospital=hospital)
        with pytest.raises(Unauthorized):
            import_movements(db, MOVEMENT_HEADER + "ITEM001,entrada,1,2024-01-15,,,,\n", operator)

    def test_dispatch_by_kind(self, db, admin):
        result = import_batch(db, "hospitals", "Nome,Endereço\nHospital A,\n", admin)
        assert result.succeeded == 1
        with pytest.raises(InvalidInput):
            import_batch(db, "vaccines", "x\n1\n", admin)
        assert db.scalars(select(Item)).all() == []


def _locked_commit():
    raise OperationalError("COMMIT", {}, Exception("database is locked"))


class TestFinalCommitFailure:

    def test_patient_batch_saves_nothing(self, db, admin, monkeypatch):
        content = (
            PATIENT_HEADER
            + "Maria Joaquina,700123456789012,1985-07-22\n"
            + "Ana Paula,700555555555555,\n"
        )
        monkeypatch.setattr(db, "commit", _locked_commit)

        with pytest.raises(ConflictOrUnavailable):
            import_patients(db, content, admin)

        assert db.scalars(select(Patient)).all() == []

    def test_movement_batch_saves_nothing(self, db, admin, make_item, monkeypatch):
        item = make_item(code="ITEM001", name="Soro", central=0)
        content = (
            MOVEMENT_HEADER
            + "ITEM001,entrada,100,2024-01-15,,,,\n"
            + "ITEM001,entrada,20,2024-01-16,,,,\n"
        )
        monkeypatch.setattr(db, "commit", _locked_commit)

        with pytest.raises(ConflictOrUnavailable):
            import_movements(db, content, admin)

        assert db.scalars(select(StockMovement)).all() == []
        db.refresh(item)
        assert item.current_quantity_central == 0
