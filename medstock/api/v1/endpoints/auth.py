import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medstock.core.database import get_db
from medstock.dependencies.authz import get_current_profile, get_token_claims
from medstock.models.user import UserProfile
from medstock.schemas.user import RegisterRequest, UserProfileResponse
from medstock.services.user_service import register_self

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", tags=["auth"])
async def auth_health_check() -> dict:
    """
    Simple health check for the auth module.
    """
    return {"status": "auth-ok"}


@router.get("/me", response_model=UserProfileResponse, tags=["auth"])
def read_current_profile(
    current_profile: UserProfile = Depends(get_current_profile),
) -> UserProfileResponse:
    """
    Return the profile of the authenticated subject.
    """
    return UserProfileResponse.model_validate(current_profile)


@router.post(
    "/register",
    response_model=UserProfileResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["auth"],
)
def register(
    payload: RegisterRequest,
    claims: dict[str, Any] = Depends(get_token_claims),
    db: Session = Depends(get_db),
) -> UserProfileResponse:
    """
    Create a basic profile for an authenticated subject that has none yet.
    Roles and associations are granted later by an admin.
    """
    profile = register_self(db, claims["sub"], claims.get("email"), payload.name)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to register profile subject=%s", claims["sub"])
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Falha ao criar o perfil.",
        )
    db.refresh(profile)
    return UserProfileResponse.model_validate(profile)
