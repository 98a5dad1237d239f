# medstock/services/import_service.py
"""
Spreadsheet (CSV) batch imports and their downloadable templates.

Every import validates row by row and keeps going after a bad row; the
errors come back as {row, message} with row = spreadsheet line (header is
line 1). Accepted rows are committed together at the end: if that commit
fails, nothing from the file is persisted and the whole batch fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medstock.core.errors import (
    ConflictOrUnavailable,
    InvalidInput,
    StockError,
    Unauthorized,
)
from medstock.models.hospital import FacilityType, Hospital, ServedUnit
from medstock.models.patient import Patient
from medstock.models.stock import Item, MovementType
from medstock.models.user import UserProfile
from medstock.schemas.hospital import HospitalCreate, ServedUnitCreate
from medstock.schemas.imports import BatchResult
from medstock.schemas.patient import PatientCreate
from medstock.schemas.stock import MovementCreate
from medstock.services.access_policy import AccessPolicy
from medstock.services.movement_service import process_movement
from medstock.utils.csv_utils import CsvFormatError, read_csv_rows, write_csv
from medstock.utils.datetime_utils import parse_iso_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportTemplate:
    filename: str
    headers: tuple[str, ...]
    required: tuple[str, ...]
    examples: tuple[tuple[str, ...], ...]

    def render(self) -> str:
        return write_csv(self.headers, self.examples)


HOSPITALS_TEMPLATE = ImportTemplate(
    filename="modelo_importacao_hospitais.csv",
    headers=("Nome", "Endereço"),
    required=("Nome",),
    examples=(
        ("Hospital Central da Cidade", "Rua Principal, 123, Centro"),
    ),
)

SERVED_UNITS_TEMPLATE = ImportTemplate(
    filename="modelo_importacao_unidades_servidas.csv",
    headers=("Nome da Unidade", "Localização", "Nome do Hospital Associado"),
    required=("Nome da Unidade", "Localização", "Nome do Hospital Associado"),
    examples=(
        ("Sala de Emergência", "Piso 1, Ala A", "Hospital Central da Cidade"),
    ),
)

PATIENTS_TEMPLATE = ImportTemplate(
    filename="modelo_importacao_pacientes.csv",
    headers=("Nome Completo", "Número do Cartão SUS", "Data de Nascimento"),
    required=("Nome Completo", "Número do Cartão SUS"),
    examples=(
        ("Maria Joaquina de Amaral Pereira Góes", "700123456789012", "1985-07-22"),
    ),
)

MOVEMENTS_TEMPLATE = ImportTemplate(
    filename="modelo_importacao_movimentacoes.csv",
    headers=(
        "Código do Item",
        "Tipo",
        "Quantidade",
        "Data",
        "Nome do Hospital Destino/Consumo",
        "Nome da Unidade Destino/Consumo",
        "Cartão SUS Paciente",
        "Observações",
    ),
    required=("Código do Item", "Tipo", "Quantidade", "Data"),
    examples=(
        ("ITEM001", "entrada", "100", "2024-01-15", "", "", "", ""),
    ),
)

TEMPLATES: dict[str, ImportTemplate] = {
    "hospitals": HOSPITALS_TEMPLATE,
    "served-units": SERVED_UNITS_TEMPLATE,
    "patients": PATIENTS_TEMPLATE,
    "movements": MOVEMENTS_TEMPLATE,
}

MOVEMENT_TYPE_LABELS = {
    "entrada": MovementType.ENTRY,
    "saida": MovementType.EXIT,
    "saída": MovementType.EXIT,
    "consumo": MovementType.CONSUMPTION,
}


def get_template(kind: str) -> ImportTemplate:
    try:
        return TEMPLATES[kind]
    except KeyError:
        raise InvalidInput(f"Tipo de importação desconhecido: '{kind}'.") from None


def validation_message(exc: ValidationError) -> str:
    """First human-readable message of a pydantic error, without its prefix."""
    for err in exc.errors():
        ctx_error = (err.get("ctx") or {}).get("error")
        if ctx_error is not None:
            return str(ctx_error)
        field = ".".join(str(p) for p in err.get("loc", ()))
        return f"{field}: {err.get('msg')}" if field else str(err.get("msg"))
    return str(exc)


def _read(content: bytes | str, template: ImportTemplate) -> list[tuple[int, dict[str, str]]]:
    try:
        return read_csv_rows(content, template.required)
    except CsvFormatError as exc:
        raise InvalidInput(str(exc)) from None


def _commit_batch(db: Session, kind: str, result: BatchResult) -> BatchResult:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Batch import commit failed kind=%s", kind)
        raise ConflictOrUnavailable(
            "Não foi possível salvar os registros importados. Tente novamente."
        ) from exc
    logger.info(
        "Batch import finished kind=%s succeeded=%s errors=%s",
        kind,
        result.succeeded,
        len(result.errors),
    )
    return result


def _run_rows(
    rows: list[tuple[int, dict[str, str]]],
    result: BatchResult,
    handle: Callable[[dict[str, str]], None],
) -> None:
    for line, row in rows:
        try:
            handle(row)
        except ValidationError as exc:
            result.add_error(line, validation_message(exc))
        except ConflictOrUnavailable:
            raise
        except StockError as exc:
            result.add_error(line, exc.message)
        else:
            result.succeeded += 1


# ---------------------------------------------------------------------------
# Hospitals / served units / patients
# ---------------------------------------------------------------------------


def infer_facility_type(name: str) -> FacilityType:
    """The spreadsheet has no type column; "UBS" in the name marks primary care."""
    return FacilityType.PRIMARY_CARE if "ubs" in name.lower() else FacilityType.HOSPITAL


def import_hospitals(
    db: Session, content: bytes | str, actor: UserProfile
) -> BatchResult:
    if not AccessPolicy.for_profile(actor).can_manage_catalog:
        raise Unauthorized("Apenas administradores podem importar hospitais.")

    rows = _read(content, HOSPITALS_TEMPLATE)
    result = BatchResult()

    def handle(row: dict[str, str]) -> None:
        name = row.get("Nome", "")
        if not name:
            raise InvalidInput("Nome é obrigatório.")
        payload = HospitalCreate(
            name=name,
            address=row.get("Endereço") or None,
            facility_type=infer_facility_type(name),
        )
        db.add(Hospital(**payload.model_dump()))

    _run_rows(rows, result, handle)
    return _commit_batch(db, "hospitals", result)


def _hospitals_by_name(db: Session) -> dict[str, Hospital]:
    return {h.name.strip().lower(): h for h in db.scalars(select(Hospital))}


def import_served_units(
    db: Session, content: bytes | str, actor: UserProfile
) -> BatchResult:
    if not AccessPolicy.for_profile(actor).can_manage_catalog:
        raise Unauthorized("Apenas administradores podem importar unidades servidas.")

    rows = _read(content, SERVED_UNITS_TEMPLATE)
    hospitals = _hospitals_by_name(db)
    result = BatchResult()

    def handle(row: dict[str, str]) -> None:
        name = row.get("Nome da Unidade", "")
        location = row.get("Localização", "")
        hospital_name = row.get("Nome do Hospital Associado", "")
        if not name or not location or not hospital_name:
            raise InvalidInput(
                "Faltam dados obrigatórios (Nome da Unidade, Localização, "
                "Nome do Hospital)."
            )
        hospital = hospitals.get(hospital_name.lower())
        if hospital is None:
            raise InvalidInput(f"Hospital '{hospital_name}' não encontrado.")
        payload = ServedUnitCreate(name=name, location=location, hospital_id=hospital.id)
        db.add(ServedUnit(**payload.model_dump()))

    _run_rows(rows, result, handle)
    return _commit_batch(db, "served-units", result)


def import_patients(
    db: Session, content: bytes | str, actor: UserProfile
) -> BatchResult:
    """
    Every valid row becomes a new patient; card numbers are not
    deduplicated. Patients are registered at the actor's UBS when the actor
    is associated with a primary-care hospital.
    """
    policy = AccessPolicy.for_profile(actor)
    if not (policy.is_global or policy.is_operator):
        raise Unauthorized("Você não tem permissão para importar pacientes.")

    rows = _read(content, PATIENTS_TEMPLATE)
    registered_ubs: Hospital | None = None
    if actor.associated_hospital_id:
        hospital = db.get(Hospital, actor.associated_hospital_id)
        if hospital is not None and hospital.is_primary_care:
            registered_ubs = hospital
    result = BatchResult()

    def handle(row: dict[str, str]) -> None:
        name = row.get("Nome Completo", "")
        card = row.get("Número do Cartão SUS", "")
        if not name or not card:
            raise InvalidInput(
                "Nome Completo e Número do Cartão SUS são obrigatórios."
            )
        birth_raw = row.get("Data de Nascimento", "")
        birth_date = None
        if birth_raw:
            try:
                birth_date = parse_iso_date(birth_raw)
            except ValueError:
                raise InvalidInput(
                    f"Data de Nascimento inválida ('{birth_raw}'). "
                    "Use AAAA-MM-DD ou deixe em branco."
                ) from None
        payload = PatientCreate(
            name=name,
            sus_card_number=card,
            birth_date=birth_date,
            registered_ubs_id=registered_ubs.id if registered_ubs else None,
        )
        db.add(
            Patient(
                **payload.model_dump(),
                registered_ubs_name=registered_ubs.name if registered_ubs else None,
            )
        )

    _run_rows(rows, result, handle)
    return _commit_batch(db, "patients", result)


# ---------------------------------------------------------------------------
# Movements
# ---------------------------------------------------------------------------


class _MovementLookups:
    """Name/code lookups loaded once per file."""

    def __init__(self, db: Session):
        self.items = {i.code: i for i in db.scalars(select(Item))}
        self.hospitals = _hospitals_by_name(db)
        self.units = {
            (u.hospital_id, u.name.strip().lower()): u
            for u in db.scalars(select(ServedUnit))
        }
        self.patients: dict[str, Patient] = {}
        for p in db.scalars(select(Patient).order_by(Patient.created_at.asc())):
            self.patients.setdefault(p.sus_card_number, p)


def _movement_from_row(row: dict[str, str], lookups: _MovementLookups) -> MovementCreate:
    code = row.get("Código do Item", "")
    quantity_raw = row.get("Quantidade", "")
    date_raw = row.get("Data", "")
    if not code or not quantity_raw or not date_raw:
        raise InvalidInput("Código do Item, Quantidade e Data são obrigatórios.")

    type_raw = " ".join(row.get("Tipo", "").split()).lower()
    movement_type = MOVEMENT_TYPE_LABELS.get(type_raw)
    if movement_type is None:
        raise InvalidInput(
            f"({code}) Tipo inválido ('{row.get('Tipo', '')}'). "
            "Use 'entrada', 'saida' ou 'consumo'."
        )

    try:
        quantity = int(quantity_raw)
    except ValueError:
        raise InvalidInput(f"({code}) Quantidade inválida ('{quantity_raw}').") from None

    item = lookups.items.get(code)
    if item is None:
        raise InvalidInput(f"Item '{code}' não encontrado.")

    hospital_name = row.get("Nome do Hospital Destino/Consumo", "")
    unit_name = row.get("Nome da Unidade Destino/Consumo", "")
    card = row.get("Cartão SUS Paciente", "")

    hospital_id = unit_id = patient_id = None
    if movement_type != MovementType.ENTRY and hospital_name:
        hospital = lookups.hospitals.get(hospital_name.lower())
        if hospital is None:
            raise InvalidInput(f"({code}) Hospital '{hospital_name}' não encontrado.")
        hospital_id = hospital.id
        if unit_name:
            unit = lookups.units.get((hospital.id, unit_name.lower()))
            if unit is None:
                raise InvalidInput(
                    f"({code}) Unidade '{unit_name}' não encontrada ou não "
                    f"pertence a '{hospital_name}'."
                )
            unit_id = unit.id

    if movement_type == MovementType.CONSUMPTION and card:
        patient = lookups.patients.get(card)
        if patient is None:
            raise InvalidInput(f"({code}) Paciente com Cartão SUS '{card}' não encontrado.")
        patient_id = patient.id

    return MovementCreate(
        item_id=item.id,
        type=movement_type.value,
        quantity=quantity,
        date=date_raw,
        hospital_id=hospital_id,
        unit_id=unit_id,
        patient_id=patient_id,
        notes=row.get("Observações") or None,
    )


def import_movements(
    db: Session, content: bytes | str, actor: UserProfile
) -> BatchResult:
    """
    Each row goes through the movement processor in its own savepoint, so a
    rejected row (bad reference, insufficient stock) leaves no trace while
    earlier rows stay staged for the final commit.
    """
    if not AccessPolicy.for_profile(actor).can_import_movements:
        raise Unauthorized(
            "Apenas Administradores ou Operadores do Almoxarifado Central "
            "podem importar movimentações em lote."
        )

    rows = _read(content, MOVEMENTS_TEMPLATE)
    lookups = _MovementLookups(db)
    result = BatchResult()

    def handle(row: dict[str, str]) -> None:
        movement = _movement_from_row(row, lookups)
        process_movement(db, movement, actor, commit=False)

    try:
        _run_rows(rows, result, handle)
    except (ConflictOrUnavailable, SQLAlchemyError):
        db.rollback()
        raise
    return _commit_batch(db, "movements", result)


IMPORTERS: dict[str, Callable[[Session, bytes | str, UserProfile], BatchResult]] = {
    "hospitals": import_hospitals,
    "served-units": import_served_units,
    "patients": import_patients,
    "movements": import_movements,
}


def import_batch(
    db: Session, kind: str, content: bytes | str, actor: UserProfile
) -> BatchResult:
    importer = IMPORTERS.get(kind)
    if importer is None:
        raise InvalidInput(f"Tipo de importação desconhecido: '{kind}'.")
    return importer(db, content, actor)
