# medstock/api/v1/endpoints/reports.py
import logging
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response, StreamingResponse
from sqlalchemy.orm import Session

from medstock.core.config import get_settings
from medstock.core.database import get_db
from medstock.dependencies.authz import get_access_policy
from medstock.schemas.reports import (
    ConsumptionRow,
    ExpiringItemRow,
    GeneralConsumptionRow,
    LowStockRow,
)
from medstock.services.access_policy import AccessPolicy
from medstock.services.report_service import (
    consumption_csv,
    consumption_history,
    expiring_items_report,
    general_consumption_csv,
    general_consumption_report,
    low_stock_csv,
    low_stock_pdf,
    low_stock_report,
    patient_consumption,
)
from medstock.utils.datetime_utils import today

router = APIRouter()
logger = logging.getLogger(__name__)

settings = get_settings()


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/low-stock", response_model=list[LowStockRow], tags=["reports"])
def get_low_stock(
    hospital_id: Optional[str] = Query(None, description="Hospital id or 'central'"),
    unit_id: Optional[str] = Query(None),
    status: Optional[Literal["low", "alert"]] = Query(None),
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> list[LowStockRow]:
    return low_stock_report(
        db, policy, hospital_id=hospital_id, unit_id=unit_id, status=status
    )


@router.get("/low-stock/export", tags=["reports"])
def export_low_stock(
    format: Literal["csv", "pdf"] = Query("csv"),
    hospital_id: Optional[str] = Query(None),
    unit_id: Optional[str] = Query(None),
    status: Optional[Literal["low", "alert"]] = Query(None),
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
):
    rows = low_stock_report(
        db, policy, hospital_id=hospital_id, unit_id=unit_id, status=status
    )
    stamp = today().isoformat()
    if format == "pdf":
        buffer = low_stock_pdf(rows)
        logger.info("Low stock PDF generated rows=%s", len(rows))
        return StreamingResponse(
            buffer,
            media_type="application/pdf",
            headers={
                "Content-Disposition": f'inline; filename="niveis_estoque_{stamp}.pdf"'
            },
        )
    return _csv_response(low_stock_csv(rows), f"niveis_estoque_{stamp}.csv")


@router.get(
    "/expiring-items", response_model=list[ExpiringItemRow], tags=["reports"]
)
def get_expiring_items(
    days: Optional[int] = Query(None, ge=0, description="Expiring threshold in days"),
    include_expired: bool = Query(True),
    include_expiring: bool = Query(True),
    include_valid: bool = Query(False),
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> list[ExpiringItemRow]:
    """
    Central warehouse items with an expiration date, soonest first.
    """
    return expiring_items_report(
        db,
        threshold_days=days if days is not None else settings.expiring_items_default_days,
        include_expired=include_expired,
        include_expiring=include_expiring,
        include_valid=include_valid,
    )


@router.get(
    "/consumption-history", response_model=list[ConsumptionRow], tags=["reports"]
)
def get_consumption_history(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    item_id: Optional[str] = Query(None),
    hospital_id: Optional[str] = Query(None),
    unit_id: Optional[str] = Query(None),
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> list[ConsumptionRow]:
    return consumption_history(
        db,
        policy,
        start_date=start_date,
        end_date=end_date,
        item_id=item_id,
        hospital_id=hospital_id,
        unit_id=unit_id,
    )


@router.get("/consumption-history/export", tags=["reports"])
def export_consumption_history(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    item_id: Optional[str] = Query(None),
    hospital_id: Optional[str] = Query(None),
    unit_id: Optional[str] = Query(None),
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> Response:
    rows = consumption_history(
        db,
        policy,
        start_date=start_date,
        end_date=end_date,
        item_id=item_id,
        hospital_id=hospital_id,
        unit_id=unit_id,
    )
    return _csv_response(
        consumption_csv(rows), f"historico_consumo_{today().isoformat()}.csv"
    )


@router.get(
    "/general-consumption",
    response_model=list[GeneralConsumptionRow],
    tags=["reports"],
)
def get_general_consumption(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    item_id: Optional[str] = Query(None),
    hospital_id: Optional[str] = Query(None),
    unit_id: Optional[str] = Query(None),
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> list[GeneralConsumptionRow]:
    return general_consumption_report(
        db,
        policy,
        start_date=start_date,
        end_date=end_date,
        item_id=item_id,
        hospital_id=hospital_id,
        unit_id=unit_id,
    )


@router.get("/general-consumption/export", tags=["reports"])
def export_general_consumption(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    item_id: Optional[str] = Query(None),
    hospital_id: Optional[str] = Query(None),
    unit_id: Optional[str] = Query(None),
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> Response:
    rows = general_consumption_report(
        db,
        policy,
        start_date=start_date,
        end_date=end_date,
        item_id=item_id,
        hospital_id=hospital_id,
        unit_id=unit_id,
    )
    return _csv_response(
        general_consumption_csv(rows),
        f"relatorio_consumo_geral_{today().isoformat()}.csv",
    )


@router.get(
    "/patient-consumption/{patient_id}",
    response_model=list[ConsumptionRow],
    tags=["reports"],
)
def get_patient_consumption(
    patient_id: str,
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> list[ConsumptionRow]:
    return patient_consumption(db, policy, patient_id)
