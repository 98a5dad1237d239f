# medstock/api/v1/endpoints/served_units.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from medstock.core.database import get_db
from medstock.dependencies.authz import get_access_policy, require_catalog_manager
from medstock.models.hospital import Hospital, ServedUnit
from medstock.models.stock import StockConfig, StockMovement
from medstock.models.user import UserProfile
from medstock.schemas.hospital import (
    ServedUnitCreate,
    ServedUnitResponse,
    ServedUnitUpdate,
)
from medstock.services.access_policy import AccessPolicy

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_unit_or_404(db: Session, unit_id: str) -> ServedUnit:
    unit = db.get(ServedUnit, unit_id)
    if not unit:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Unidade servida não encontrada.",
        )
    return unit


def _ensure_hospital(db: Session, hospital_id: str) -> Hospital:
    hospital = db.get(Hospital, hospital_id)
    if not hospital:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Hospital associado não encontrado.",
        )
    return hospital


@router.get("", response_model=list[ServedUnitResponse], tags=["served-units"])
def list_served_units(
    hospital_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Search by unit name"),
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> list[ServedUnitResponse]:
    """
    Units visible to the caller: everything for admins/central operators,
    the associated hospital's units (or the single associated unit) otherwise.
    """
    query = db.query(ServedUnit).options(joinedload(ServedUnit.hospital))
    if hospital_id:
        query = query.filter(ServedUnit.hospital_id == hospital_id)
    if search and search.strip():
        query = query.filter(ServedUnit.name.ilike(f"%{search.strip()}%"))

    units = policy.visible_units(query.order_by(ServedUnit.name.asc()).all())
    return [ServedUnitResponse.model_validate(u) for u in units]


@router.post(
    "",
    response_model=ServedUnitResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["served-units"],
)
def create_served_unit(
    payload: ServedUnitCreate,
    current_profile: UserProfile = Depends(require_catalog_manager),
    db: Session = Depends(get_db),
) -> ServedUnitResponse:
    _ensure_hospital(db, payload.hospital_id)

    unit = ServedUnit(**payload.model_dump())
    try:
        db.add(unit)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to create served unit name=%s", payload.name)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Falha ao criar a unidade servida.",
        )
    db.refresh(unit)
    return ServedUnitResponse.model_validate(unit)


@router.get("/{unit_id}", response_model=ServedUnitResponse, tags=["served-units"])
def get_served_unit(
    unit_id: str,
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> ServedUnitResponse:
    unit = _get_unit_or_404(db, unit_id)
    if not policy.visible_units([unit]):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Você não tem acesso a esta unidade.",
        )
    return ServedUnitResponse.model_validate(unit)


@router.patch("/{unit_id}", response_model=ServedUnitResponse, tags=["served-units"])
def update_served_unit(
    unit_id: str,
    payload: ServedUnitUpdate,
    current_profile: UserProfile = Depends(require_catalog_manager),
    db: Session = Depends(get_db),
) -> ServedUnitResponse:
    unit = _get_unit_or_404(db, unit_id)

    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "hospital_id" in data and data["hospital_id"] != unit.hospital_id:
        _ensure_hospital(db, data["hospital_id"])
        if (
            db.query(StockMovement.id)
            .filter(StockMovement.unit_id == unit.id)
            .first()
        ):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A unidade possui movimentações e não pode mudar de hospital.",
            )

    for field, value in data.items():
        setattr(unit, field, value)

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to update served unit id=%s", unit_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Falha ao atualizar a unidade servida.",
        )
    db.refresh(unit)
    return ServedUnitResponse.model_validate(unit)


@router.delete(
    "/{unit_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["served-units"]
)
def delete_served_unit(
    unit_id: str,
    current_profile: UserProfile = Depends(require_catalog_manager),
    db: Session = Depends(get_db),
) -> None:
    unit = _get_unit_or_404(db, unit_id)

    has_stock = (
        db.query(StockConfig.id)
        .filter(StockConfig.unit_id == unit.id, StockConfig.current_quantity > 0)
        .first()
    )
    has_movements = (
        db.query(StockMovement.id).filter(StockMovement.unit_id == unit.id).first()
    )
    if has_stock or has_movements:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A unidade possui estoque ou movimentações registradas e não pode ser excluída.",
        )

    try:
        # only empty configs remain at this point
        db.query(StockConfig).filter(StockConfig.unit_id == unit.id).delete(
            synchronize_session=False
        )
        db.delete(unit)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to delete served unit id=%s", unit_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Falha ao excluir a unidade servida.",
        )
