# medstock/services/patient_service.py
from sqlalchemy.orm import Session

from medstock.core.errors import InvalidInput, UnknownReference
from medstock.models.hospital import Hospital
from medstock.models.patient import Patient
from medstock.models.user import UserProfile
from medstock.schemas.patient import PatientCreate, PatientUpdate
from medstock.services.access_policy import AccessPolicy


def _resolve_registered_ubs(db: Session, hospital_id: str | None) -> Hospital | None:
    if not hospital_id:
        return None
    hospital = db.get(Hospital, hospital_id)
    if hospital is None:
        raise UnknownReference(f"UBS '{hospital_id}' não encontrada.")
    if not hospital.is_primary_care:
        raise InvalidInput(
            f"'{hospital.name}' não é uma UBS; pacientes são cadastrados em UBS."
        )
    return hospital


def create_patient(
    db: Session, payload: PatientCreate, actor: UserProfile
) -> Patient:
    """
    Register a patient. Operators register at their own UBS by default and
    cannot register elsewhere. Caller commits.
    """
    policy = AccessPolicy.for_profile(actor)
    registered_ubs_id = payload.registered_ubs_id
    if not policy.is_global:
        if registered_ubs_id and registered_ubs_id != actor.associated_hospital_id:
            raise InvalidInput("Operadores só podem cadastrar pacientes na própria UBS.")
        registered_ubs_id = registered_ubs_id or actor.associated_hospital_id

    ubs = _resolve_registered_ubs(db, registered_ubs_id)

    data = payload.model_dump(exclude={"registered_ubs_id"})
    patient = Patient(
        **data,
        registered_ubs_id=ubs.id if ubs else None,
        registered_ubs_name=ubs.name if ubs else None,
    )
    db.add(patient)
    db.flush()
    return patient


def update_patient(
    db: Session, patient: Patient, payload: PatientUpdate, actor: UserProfile
) -> Patient:
    """Apply only the fields that were sent. Caller commits."""
    data = payload.model_dump(exclude_unset=True)

    if "registered_ubs_id" in data:
        policy = AccessPolicy.for_profile(actor)
        new_ubs_id = data.pop("registered_ubs_id")
        if not policy.is_global and new_ubs_id != actor.associated_hospital_id:
            raise InvalidInput("Operadores só podem cadastrar pacientes na própria UBS.")
        ubs = _resolve_registered_ubs(db, new_ubs_id)
        patient.registered_ubs_id = ubs.id if ubs else None
        patient.registered_ubs_name = ubs.name if ubs else None

    for field, value in data.items():
        if value is None and field in ("name", "sus_card_number"):
            continue
        setattr(patient, field, value)

    db.flush()
    return patient
