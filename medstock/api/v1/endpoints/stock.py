from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from medstock.core.config import get_settings
from medstock.core.database import get_db
from medstock.dependencies.authz import get_access_policy
from medstock.schemas.stock import StockOverviewPage, StockStatus
from medstock.services.access_policy import AccessPolicy
from medstock.services.stock_service import list_stock_overview

router = APIRouter()

settings = get_settings()


@router.get("", response_model=StockOverviewPage, tags=["stock"])
def get_stock_overview(
    search: Optional[str] = Query(None, description="Item name or code"),
    hospital_id: Optional[str] = Query(
        None, description="Hospital id, or 'central' for the central warehouse only"
    ),
    unit_id: Optional[str] = Query(None),
    status: Optional[StockStatus] = Query(None),
    page: int = Query(1, ge=1),
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> StockOverviewPage:
    """
    Current quantities per location with their level status, limited to
    the locations the caller may see.
    """
    return list_stock_overview(
        db,
        policy,
        search=search,
        hospital_id=hospital_id,
        unit_id=unit_id,
        status=status,
        page=page,
        page_size=settings.stock_page_size,
    )
