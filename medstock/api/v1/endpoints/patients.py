import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medstock.core.database import get_db
from medstock.dependencies.authz import get_access_policy, get_current_profile
from medstock.models.patient import Patient
from medstock.models.user import UserProfile
from medstock.schemas.patient import PatientCreate, PatientResponse, PatientUpdate
from medstock.services.access_policy import AccessPolicy
from medstock.services.patient_service import create_patient, update_patient

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_visible_patient(db: Session, policy: AccessPolicy, patient_id: str) -> Patient:
    patient = db.get(Patient, patient_id)
    if not patient:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Paciente não encontrado.",
        )
    if not policy.visible_patients([patient]):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Você não tem acesso a este paciente.",
        )
    return patient


def _require_patient_editor(policy: AccessPolicy) -> None:
    if not (policy.is_global or policy.is_operator):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Você não tem permissão para alterar pacientes.",
        )


@router.get("", response_model=list[PatientResponse], tags=["patients"])
def list_patients(
    search: Optional[str] = Query(
        None, description="Search by name or SUS card number"
    ),
    registered_ubs_id: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> list[PatientResponse]:
    """
    Patients visible to the caller: all for admins/central operators, those
    registered at the caller's hospital for operators.
    """
    query = db.query(Patient)
    if not policy.is_global:
        if not policy.hospital_id:
            return []
        query = query.filter(Patient.registered_ubs_id == policy.hospital_id)
    if registered_ubs_id:
        query = query.filter(Patient.registered_ubs_id == registered_ubs_id)
    if search and search.strip():
        term = search.strip()
        query = query.filter(
            or_(
                Patient.name.ilike(f"%{term}%"),
                Patient.sus_card_number.like(f"{term}%"),
            )
        )

    patients = query.order_by(Patient.name.asc()).limit(limit).all()
    return [PatientResponse.model_validate(p) for p in patients]


@router.post(
    "",
    response_model=PatientResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["patients"],
)
def create_patient_endpoint(
    payload: PatientCreate,
    current_profile: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db),
) -> PatientResponse:
    _require_patient_editor(AccessPolicy.for_profile(current_profile))

    patient = create_patient(db, payload, current_profile)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to create patient")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Falha ao cadastrar o paciente.",
        )
    db.refresh(patient)
    return PatientResponse.model_validate(patient)


@router.get("/{patient_id}", response_model=PatientResponse, tags=["patients"])
def get_patient(
    patient_id: str,
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> PatientResponse:
    return PatientResponse.model_validate(_get_visible_patient(db, policy, patient_id))


@router.patch("/{patient_id}", response_model=PatientResponse, tags=["patients"])
def update_patient_endpoint(
    patient_id: str,
    payload: PatientUpdate,
    current_profile: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db),
) -> PatientResponse:
    policy = AccessPolicy.for_profile(current_profile)
    _require_patient_editor(policy)
    patient = _get_visible_patient(db, policy, patient_id)

    update_patient(db, patient, payload, current_profile)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to update patient id=%s", patient_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Falha ao atualizar o paciente.",
        )
    db.refresh(patient)
    return PatientResponse.model_validate(patient)


@router.delete(
    "/{patient_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["patients"]
)
def delete_patient(
    patient_id: str,
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> None:
    """
    Only admins and central operators delete patients; consumption already
    linked to the patient keeps the name captured on the ledger.
    """
    if not policy.is_global:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Apenas administradores podem excluir pacientes.",
        )
    patient = _get_visible_patient(db, policy, patient_id)

    try:
        db.delete(patient)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to delete patient id=%s", patient_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Falha ao excluir o paciente.",
        )
    logger.info("Deleted patient id=%s", patient_id)
