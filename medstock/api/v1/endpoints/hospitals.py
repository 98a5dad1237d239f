# medstock/api/v1/endpoints/hospitals.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medstock.core.database import get_db
from medstock.dependencies.authz import (
    get_access_policy,
    get_current_profile,
    require_catalog_manager,
)
from medstock.models.hospital import FacilityType, Hospital, ServedUnit
from medstock.models.stock import LocationKind, StockConfig, StockMovement
from medstock.models.user import UserProfile
from medstock.schemas.hospital import HospitalCreate, HospitalResponse, HospitalUpdate
from medstock.services.access_policy import AccessPolicy

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_hospital_or_404(db: Session, hospital_id: str) -> Hospital:
    hospital = db.get(Hospital, hospital_id)
    if not hospital:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Hospital não encontrado.",
        )
    return hospital


@router.get("", response_model=list[HospitalResponse], tags=["hospitals"])
def list_hospitals(
    search: Optional[str] = Query(None, description="Search by name"),
    facility_type: Optional[FacilityType] = Query(None),
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> list[HospitalResponse]:
    query = db.query(Hospital)
    if facility_type:
        query = query.filter(Hospital.facility_type == facility_type)
    if search and search.strip():
        query = query.filter(Hospital.name.ilike(f"%{search.strip()}%"))

    hospitals = policy.visible_hospitals(query.order_by(Hospital.name.asc()).all())
    return [HospitalResponse.model_validate(h) for h in hospitals]


@router.post(
    "",
    response_model=HospitalResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["hospitals"],
)
def create_hospital(
    payload: HospitalCreate,
    current_profile: UserProfile = Depends(require_catalog_manager),
    db: Session = Depends(get_db),
) -> HospitalResponse:
    hospital = Hospital(**payload.model_dump())
    try:
        db.add(hospital)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to create hospital name=%s", payload.name)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Falha ao criar o hospital.",
        )
    db.refresh(hospital)
    return HospitalResponse.model_validate(hospital)


@router.get("/{hospital_id}", response_model=HospitalResponse, tags=["hospitals"])
def get_hospital(
    hospital_id: str,
    current_profile: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db),
) -> HospitalResponse:
    return HospitalResponse.model_validate(_get_hospital_or_404(db, hospital_id))


@router.patch("/{hospital_id}", response_model=HospitalResponse, tags=["hospitals"])
def update_hospital(
    hospital_id: str,
    payload: HospitalUpdate,
    current_profile: UserProfile = Depends(require_catalog_manager),
    db: Session = Depends(get_db),
) -> HospitalResponse:
    hospital = _get_hospital_or_404(db, hospital_id)

    data = payload.model_dump(exclude_unset=True)
    if data.get("facility_type") == FacilityType.HOSPITAL and hospital.is_primary_care:
        # General stock rows would become unreachable.
        has_general_stock = (
            db.query(StockConfig.id)
            .filter(
                StockConfig.hospital_id == hospital.id,
                StockConfig.location_kind == LocationKind.GENERAL,
                StockConfig.current_quantity > 0,
            )
            .first()
        )
        if has_general_stock:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A UBS possui estoque geral com saldo; não é possível alterar o tipo.",
            )

    for field, value in data.items():
        if value is None and field != "address":
            continue
        setattr(hospital, field, value)

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to update hospital id=%s", hospital_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Falha ao atualizar o hospital.",
        )
    db.refresh(hospital)
    return HospitalResponse.model_validate(hospital)


@router.delete(
    "/{hospital_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["hospitals"]
)
def delete_hospital(
    hospital_id: str,
    current_profile: UserProfile = Depends(require_catalog_manager),
    db: Session = Depends(get_db),
) -> None:
    hospital = _get_hospital_or_404(db, hospital_id)

    if db.query(ServedUnit.id).filter(ServedUnit.hospital_id == hospital.id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Remova as unidades servidas do hospital antes de excluí-lo.",
        )

    has_stock = (
        db.query(StockConfig.id)
        .filter(
            StockConfig.hospital_id == hospital.id,
            StockConfig.current_quantity > 0,
        )
        .first()
    )
    has_movements = (
        db.query(StockMovement.id)
        .filter(StockMovement.hospital_id == hospital.id)
        .first()
    )
    if has_stock or has_movements:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="O hospital possui estoque ou movimentações registradas e não pode ser excluído.",
        )

    try:
        # only empty configs remain at this point
        db.query(StockConfig).filter(StockConfig.hospital_id == hospital.id).delete(
            synchronize_session=False
        )
        db.delete(hospital)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to delete hospital id=%s", hospital_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Falha ao excluir o hospital.",
        )
