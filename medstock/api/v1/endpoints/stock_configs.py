from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from medstock.core.database import get_db
from medstock.dependencies.authz import get_access_policy
from medstock.schemas.stock import (
    StockConfigBulkResult,
    StockConfigBulkUpdate,
    StockConfigRow,
)
from medstock.services.access_policy import AccessPolicy
from medstock.services.stock_service import build_config_grid, save_stock_configs

router = APIRouter()


@router.get("", response_model=list[StockConfigRow], tags=["stock-configs"])
def get_config_grid(
    location: str = Query(
        "all", description="'all', 'central' or a hospital id"
    ),
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> list[StockConfigRow]:
    """
    Strategic level / minimum for every item at every visible location.
    """
    return build_config_grid(db, policy, location)


@router.put("", response_model=StockConfigBulkResult, tags=["stock-configs"])
def save_config_grid(
    payload: StockConfigBulkUpdate,
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> StockConfigBulkResult:
    """
    Bulk save of levels (admins and central operators). Current quantities
    are never changed here.
    """
    saved = save_stock_configs(db, policy, payload.configs)
    return StockConfigBulkResult(saved=saved)
