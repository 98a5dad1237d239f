import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from medstock.core.database import get_db
from medstock.dependencies.authz import get_access_policy, get_current_profile
from medstock.models.stock import MovementType, StockMovement
from medstock.models.user import UserProfile
from medstock.schemas.stock import MovementCreate, MovementResponse, MovementResult
from medstock.services.access_policy import AccessPolicy
from medstock.services.movement_service import process_movement

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "",
    response_model=MovementResult,
    status_code=status.HTTP_201_CREATED,
    tags=["stock-movements"],
)
def create_movement(
    payload: MovementCreate,
    current_profile: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db),
) -> MovementResult:
    """
    Record one entry, exit or consumption. The ledger row and the counter
    update(s) commit together; nothing is written on any error.
    """
    return process_movement(db, payload, current_profile)


@router.get("", response_model=list[MovementResponse], tags=["stock-movements"])
def list_movements(
    type: Optional[MovementType] = Query(None),
    item_id: Optional[str] = Query(None),
    hospital_id: Optional[str] = Query(None),
    unit_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> list[MovementResponse]:
    """
    Ledger entries visible to the caller, newest first.
    """
    query = db.query(StockMovement)
    if type:
        query = query.filter(StockMovement.type == type)
    if item_id:
        query = query.filter(StockMovement.item_id == item_id)
    if hospital_id:
        query = query.filter(StockMovement.hospital_id == hospital_id)
    if unit_id:
        query = query.filter(StockMovement.unit_id == unit_id)
    if start_date:
        query = query.filter(StockMovement.date >= start_date)
    if end_date:
        query = query.filter(StockMovement.date <= end_date)

    if not policy.is_global:
        if policy.unit_id:
            query = query.filter(StockMovement.unit_id == policy.unit_id)
        elif policy.hospital_id:
            query = query.filter(StockMovement.hospital_id == policy.hospital_id)
        else:
            return []

    movements = (
        query.order_by(StockMovement.date.desc(), StockMovement.created_at.desc())
        .limit(limit)
        .all()
    )
    return [MovementResponse.model_validate(m) for m in policy.visible_movements(movements)]


@router.get(
    "/{movement_id}", response_model=MovementResponse, tags=["stock-movements"]
)
def get_movement(
    movement_id: str,
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> MovementResponse:
    movement = db.get(StockMovement, movement_id)
    if not movement or not policy.visible_movements([movement]):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Movimentação não encontrada.",
        )
    return MovementResponse.model_validate(movement)
