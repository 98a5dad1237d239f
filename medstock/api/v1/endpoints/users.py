import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medstock.core.database import get_db
from medstock.dependencies.authz import require_admin
from medstock.models.user import UserProfile, UserRole, UserStatus
from medstock.schemas.user import (
    UserProfileCreate,
    UserProfileResponse,
    UserProfileUpdate,
)
from medstock.services.user_service import create_profile, update_profile

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_profile_or_404(db: Session, user_id: str) -> UserProfile:
    profile = db.get(UserProfile, user_id)
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Usuário não encontrado.",
        )
    return profile


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to %s user profile", action)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Falha ao salvar o usuário.",
        )


@router.get("", response_model=list[UserProfileResponse], tags=["users"])
def list_users(
    search: Optional[str] = Query(None, description="Search by name or email"),
    role: Optional[UserRole] = Query(None),
    status_filter: Optional[UserStatus] = Query(None, alias="status"),
    current_profile: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[UserProfileResponse]:
    """
    List user profiles (admin only).
    """
    query = db.query(UserProfile)
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(UserProfile.name.ilike(term), UserProfile.email.ilike(term))
        )
    if role:
        query = query.filter(UserProfile.role == role)
    if status_filter:
        query = query.filter(UserProfile.status == status_filter)

    profiles = query.order_by(UserProfile.name.asc()).all()
    return [UserProfileResponse.model_validate(p) for p in profiles]


@router.get("/{user_id}", response_model=UserProfileResponse, tags=["users"])
def get_user(
    user_id: str,
    current_profile: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
) -> UserProfileResponse:
    return UserProfileResponse.model_validate(_get_profile_or_404(db, user_id))


@router.post(
    "",
    response_model=UserProfileResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["users"],
)
def create_user(
    payload: UserProfileCreate,
    current_profile: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
) -> UserProfileResponse:
    """
    Create the profile of an existing identity-provider subject, with role,
    status and hospital/unit association.
    """
    profile = create_profile(db, payload)
    _commit(db, "create")
    db.refresh(profile)
    logger.info(
        "Created profile id=%s role=%s by=%s",
        profile.id,
        profile.role.value,
        current_profile.id,
    )
    return UserProfileResponse.model_validate(profile)


@router.patch("/{user_id}", response_model=UserProfileResponse, tags=["users"])
def update_user(
    user_id: str,
    payload: UserProfileUpdate,
    current_profile: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
) -> UserProfileResponse:
    profile = _get_profile_or_404(db, user_id)

    if profile.id == current_profile.id and (
        (payload.role is not None and payload.role != UserRole.ADMIN)
        or payload.status == UserStatus.INACTIVE
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Você não pode remover seu próprio acesso de administrador.",
        )

    update_profile(db, profile, payload)
    _commit(db, "update")
    db.refresh(profile)
    return UserProfileResponse.model_validate(profile)


@router.post(
    "/{user_id}/deactivate", response_model=UserProfileResponse, tags=["users"]
)
def deactivate_user(
    user_id: str,
    current_profile: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
) -> UserProfileResponse:
    """
    Deactivate a profile. Prevents self-deactivation.
    """
    profile = _get_profile_or_404(db, user_id)

    if profile.id == current_profile.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Você não pode desativar a si mesmo.",
        )

    profile.status = UserStatus.INACTIVE
    _commit(db, "deactivate")
    db.refresh(profile)
    return UserProfileResponse.model_validate(profile)
