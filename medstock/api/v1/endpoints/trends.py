from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from medstock.core.database import get_db
from medstock.dependencies.authz import get_access_policy
from medstock.schemas.trends import (
    TrendAnalysisRequest,
    TrendAnalysisResponse,
    TrendContextResponse,
)
from medstock.services.access_policy import AccessPolicy
from medstock.services.trend_service import (
    analyze_consumption_trends,
    build_trend_context,
)

router = APIRouter()


@router.get("/context", response_model=TrendContextResponse, tags=["trends"])
def get_trend_context(
    policy: AccessPolicy = Depends(get_access_policy),
    db: Session = Depends(get_db),
) -> TrendContextResponse:
    """
    Caller-visible consumption history and strategic levels as text, to
    prefill the analysis request.
    """
    return build_trend_context(db, policy)


@router.post("/analyze", response_model=TrendAnalysisResponse, tags=["trends"])
def analyze_trends(
    payload: TrendAnalysisRequest,
    policy: AccessPolicy = Depends(get_access_policy),
) -> TrendAnalysisResponse:
    return analyze_consumption_trends(payload)
