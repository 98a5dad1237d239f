"""
API tests through FastAPI's TestClient: authentication, scoping and the
HTTP mapping of domain errors.
"""

from sqlalchemy import select

from medstock.core.config import get_settings
from medstock.models.stock import LocationKind, StockConfig, StockMovement
from medstock.models.user import UserRole, UserStatus
from medstock.utils.config_keys import config_key
from medstock.utils.csv_utils import BOM

API = get_settings().api_v1_prefix


class TestAuth:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_missing_token_is_401(self, client):
        response = client.get(f"{API}/auth/me")
        assert response.status_code == 401
        assert response.json()["detail"] == "Usuário não autenticado."

    def test_garbage_token_is_401(self, client):
        response = client.get(f"{API}/auth/me", headers={"Authorization": "Bearer abc"})
        assert response.status_code == 401

    def test_unknown_profile_is_403(self, client, auth_headers):
        response = client.get(f"{API}/auth/me", headers=auth_headers("ghost"))
        assert response.status_code == 403
        assert response.json()["detail"] == "Perfil de usuário não encontrado."

    def test_inactive_profile_is_403(self, client, make_profile, auth_headers):
        profile = make_profile("old", UserRole.ADMIN, status=UserStatus.INACTIVE)
        response = client.get(f"{API}/auth/me", headers=auth_headers(profile))
        assert response.status_code == 403

    def test_me(self, client, admin, auth_headers):
        response = client.get(f"{API}/auth/me", headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["role"] == "admin"

    def test_register_creates_basic_profile(self, client, auth_headers):
        response = client.post(
            f"{API}/auth/register",
            json={"name": "Nova Pessoa"},
            headers=auth_headers("new-subject", email="nova@saude.local"),
        )
        assert response.status_code == 201
        body = response.json()
        assert body["id"] == "new-subject"
        assert body["role"] == "user"


class TestCatalog:

    def test_admin_creates_item(self, client, admin, auth_headers):
        payload = {
            "name": "Dipirona 500mg",
            "code": "MED-001",
            "category": "Medicamento",
            "unit_of_measure": "comprimido",
            "min_quantity": 10,
        }
        response = client.post(f"{API}/items", json=payload, headers=auth_headers(admin))
        assert response.status_code == 201
        duplicate = client.post(f"{API}/items", json=payload, headers=auth_headers(admin))
        assert duplicate.status_code == 400

    def test_operator_cannot_create_item(self, client, make_profile, auth_headers):
        operator = make_profile("op", UserRole.HOSPITAL_OPERATOR)
        response = client.post(
            f"{API}/items",
            json={"name": "X item", "code": "X", "category": "Material", "unit_of_measure": "un"},
            headers=auth_headers(operator),
        )
        assert response.status_code == 403

    def test_operator_lists_only_own_hospital(
        self, client, make_hospital, make_profile, auth_headers
    ):
        mine = make_hospital("Hospital A")
        make_hospital("Hospital B")
        operator = make_profile("op", UserRole.HOSPITAL_OPERATOR, hospital=mine)
        response = client.get(f"{API}/hospitals", headers=auth_headers(operator))
        assert [h["name"] for h in response.json()] == ["Hospital A"]


class TestPatientsApi:

    def test_operator_registers_at_own_ubs(
        self, client, admin, make_hospital, make_profile, make_patient, auth_headers
    ):
        ubs = make_hospital("UBS Vila Nova", primary_care=True)
        other = make_hospital("UBS Jardim", primary_care=True)
        make_patient("Paciente de Outra UBS", ubs=other)
        operator = make_profile("op", UserRole.UBS_OPERATOR, hospital=ubs)

        created = client.post(
            f"{API}/patients",
            json={"name": "João Pereira", "sus_card_number": "700123456789012", "sex": "masculino"},
            headers=auth_headers(operator),
        )
        assert created.status_code == 201
        assert created.json()["registered_ubs_id"] == ubs.id

        mine = client.get(f"{API}/patients", headers=auth_headers(operator)).json()
        assert [p["name"] for p in mine] == ["João Pereira"]
        everyone = client.get(f"{API}/patients", headers=auth_headers(admin)).json()
        assert len(everyone) == 2

    def test_card_must_have_15_digits(self, client, admin, auth_headers):
        response = client.post(
            f"{API}/patients",
            json={"name": "João Pereira", "sus_card_number": "70012345678901"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 422

    def test_card_rejects_non_ascii_digits(self, client, admin, auth_headers):
        response = client.post(
            f"{API}/patients",
            json={"name": "João Pereira", "sus_card_number": "٧٠٠١٢٣٤٥٦٧٨٩٠١٢"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 422

    def test_operator_cannot_register_elsewhere(
        self, client, make_hospital, make_profile, auth_headers
    ):
        ubs = make_hospital("UBS Vila Nova", primary_care=True)
        other = make_hospital("UBS Jardim", primary_care=True)
        operator = make_profile("op", UserRole.UBS_OPERATOR, hospital=ubs)
        response = client.post(
            f"{API}/patients",
            json={
                "name": "João Pereira",
                "sus_card_number": "700123456789012",
                "registered_ubs_id": other.id,
            },
            headers=auth_headers(operator),
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INPUT"


class TestMovementsApi:

    def test_movement_flow_and_error_mapping(
        self, client, db, admin, make_hospital, make_unit, make_item, make_profile, auth_headers
    ):
        hospital = make_hospital()
        ward = make_unit(hospital)
        other = make_unit(hospital, "UTI")
        item = make_item(central=15)

        exit_response = client.post(
            f"{API}/stock-movements",
            json={
                "item_id": item.id,
                "type": "exit",
                "quantity": 15,
                "date": "2024-03-10",
                "hospital_id": hospital.id,
                "unit_id": ward.id,
            },
            headers=auth_headers(admin),
        )
        assert exit_response.status_code == 201
        assert exit_response.json()["resulting_quantity"] == 15

        operator = make_profile("op", UserRole.HOSPITAL_OPERATOR, hospital=hospital, unit=ward)
        consume = {
            "item_id": item.id,
            "type": "consumption",
            "quantity": 10,
            "date": "2024-03-11",
            "hospital_id": hospital.id,
            "unit_id": ward.id,
        }
        first = client.post(f"{API}/stock-movements", json=consume, headers=auth_headers(operator))
        assert first.json()["resulting_quantity"] == 5

        second = client.post(f"{API}/stock-movements", json=consume, headers=auth_headers(operator))
        assert second.status_code == 409
        assert second.json()["code"] == "INSUFFICIENT_STOCK"

        elsewhere = client.post(
            f"{API}/stock-movements",
            json={**consume, "unit_id": other.id, "quantity": 1},
            headers=auth_headers(operator),
        )
        assert elsewhere.status_code == 403

        unknown = client.post(
            f"{API}/stock-movements",
            json={**consume, "item_id": "missing"},
            headers=auth_headers(admin),
        )
        assert unknown.status_code == 404
        assert unknown.json()["code"] == "UNKNOWN_ITEM"

        assert len(db.scalars(select(StockMovement)).all()) == 2

        listed = client.get(f"{API}/stock-movements", headers=auth_headers(operator))
        assert [m["type"] for m in listed.json()] == ["consumption", "exit"]

        stock = client.get(f"{API}/stock", headers=auth_headers(operator)).json()
        unit_rows = [r for r in stock["items"] if r["location_kind"] == "unit"]
        assert [(r["unit_id"], r["current_quantity"]) for r in unit_rows] == [(ward.id, 5)]


class TestLocationDeletes:

    def test_unit_with_stock_or_history_is_kept(
        self, client, db, admin, make_hospital, make_unit, make_item, auth_headers
    ):
        hospital = make_hospital()
        ward = make_unit(hospital)
        item = make_item(central=5)
        client.post(
            f"{API}/stock-movements",
            json={
                "item_id": item.id,
                "type": "exit",
                "quantity": 5,
                "date": "2024-03-10",
                "hospital_id": hospital.id,
                "unit_id": ward.id,
            },
            headers=auth_headers(admin),
        )

        response = client.delete(f"{API}/served-units/{ward.id}", headers=auth_headers(admin))

        assert response.status_code == 400
        config = db.get(StockConfig, config_key(item.id, LocationKind.UNIT, ward.id))
        assert config.current_quantity == 5

        hospital_response = client.delete(
            f"{API}/hospitals/{hospital.id}", headers=auth_headers(admin)
        )
        assert hospital_response.status_code == 400

    def test_unused_unit_is_deleted_with_its_empty_configs(
        self, client, db, admin, make_hospital, make_unit, make_item, auth_headers
    ):
        hospital = make_hospital()
        ward = make_unit(hospital)
        item = make_item()
        key = config_key(item.id, LocationKind.UNIT, ward.id)
        db.add(
            StockConfig(
                id=key,
                item_id=item.id,
                location_kind=LocationKind.UNIT,
                unit_id=ward.id,
                hospital_id=hospital.id,
                min_quantity=3,
            )
        )
        db.commit()

        response = client.delete(f"{API}/served-units/{ward.id}", headers=auth_headers(admin))

        assert response.status_code == 204
        db.expire_all()
        assert db.get(StockConfig, key) is None

    def test_ubs_with_general_stock_is_kept(
        self, client, db, admin, make_hospital, make_item, auth_headers
    ):
        ubs = make_hospital("UBS Vila Nova", primary_care=True)
        item = make_item()
        db.add(
            StockConfig(
                id=config_key(item.id, LocationKind.GENERAL, ubs.id),
                item_id=item.id,
                location_kind=LocationKind.GENERAL,
                hospital_id=ubs.id,
                current_quantity=4,
            )
        )
        db.commit()

        response = client.delete(f"{API}/hospitals/{ubs.id}", headers=auth_headers(admin))

        assert response.status_code == 400
        assert "estoque" in response.json()["detail"]


class TestImportsAndReports:

    def test_template_download(self, client, admin, auth_headers):
        response = client.get(f"{API}/imports/hospitals/template", headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.content.startswith((BOM + "Nome,Endereço\n").encode("utf-8"))
        assert "modelo_importacao_hospitais.csv" in response.headers["content-disposition"]

    def test_patient_upload(self, client, admin, auth_headers):
        content = (
            "Nome Completo,Número do Cartão SUS,Data de Nascimento\n"
            "Maria Joaquina,700123456789012,1985-07-22\n"
            "José Ricardo,70098765432109,\n"
            "Ana Paula,700555555555555,\n"
        ).encode("utf-8")
        response = client.post(
            f"{API}/imports/patients",
            files={"file": ("pacientes.csv", content, "text/csv")},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["succeeded"] == 2
        assert body["errors"][0]["row"] == 3

    def test_low_stock_exports(self, client, admin, make_item, auth_headers):
        make_item(central=2, min_quantity=10)
        rows = client.get(f"{API}/reports/low-stock", headers=auth_headers(admin)).json()
        assert rows[0]["status"] == "Baixo"

        csv_response = client.get(
            f"{API}/reports/low-stock/export", params={"format": "csv"}, headers=auth_headers(admin)
        )
        assert csv_response.headers["content-type"].startswith("text/csv")

        pdf_response = client.get(
            f"{API}/reports/low-stock/export", params={"format": "pdf"}, headers=auth_headers(admin)
        )
        assert pdf_response.content.startswith(b"%PDF")

    def test_general_consumption(self, client, admin, make_item, auth_headers):
        item = make_item(central=10)
        for day in ("2024-05-02", "2024-05-09"):
            client.post(
                f"{API}/stock-movements",
                json={"item_id": item.id, "type": "consumption", "quantity": 3, "date": day},
                headers=auth_headers(admin),
            )

        rows = client.get(f"{API}/reports/general-consumption", headers=auth_headers(admin)).json()
        assert [(r["unit_name"], r["total_consumed"]) for r in rows] == [("Armazém Central", 6)]

        filtered = client.get(
            f"{API}/reports/general-consumption",
            params={"start_date": "2024-05-05"},
            headers=auth_headers(admin),
        ).json()
        assert filtered[0]["total_consumed"] == 3

        export = client.get(
            f"{API}/reports/general-consumption/export", headers=auth_headers(admin)
        )
        assert "relatorio_consumo_geral_" in export.headers["content-disposition"]
        assert export.content.decode("utf-8").lstrip(BOM).splitlines()[1].endswith(",6")

    def test_trends_without_advisory_key(self, client, admin, auth_headers, monkeypatch):
        monkeypatch.setattr(get_settings(), "advisory_api_key", None)
        response = client.post(
            f"{API}/trends/analyze",
            json={"historical_data": "2024-05-01; MED-001; 20; Enfermaria"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 502
        assert response.json()["code"] == "ADVISORY_UNAVAILABLE"
