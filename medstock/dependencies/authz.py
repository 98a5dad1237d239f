# medstock/dependencies/authz.py
from typing import Any, Iterable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from medstock.core.database import get_db
from medstock.core.security import decode_token
from medstock.models.user import UserProfile, UserRole
from medstock.services.access_policy import AccessPolicy

bearer_scheme = HTTPBearer(auto_error=False)


def get_token_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any]:
    """
    Claims of the identity-provider token. A missing, expired or invalid
    token is "not authenticated" (401), never a server error.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Usuário não autenticado.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = decode_token(credentials.credentials)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido",
        )
    return payload


def get_current_profile(
    claims: dict[str, Any] = Depends(get_token_claims),
    db: Session = Depends(get_db),
) -> UserProfile:
    """
    Profile of the authenticated subject, looked up by key.
    Unknown or inactive profiles are denied (403).
    """
    profile = db.get(UserProfile, claims["sub"])
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Perfil de usuário não encontrado.",
        )
    if not profile.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Perfil de usuário inativo.",
        )
    return profile


def get_access_policy(
    profile: UserProfile = Depends(get_current_profile),
) -> AccessPolicy:
    return AccessPolicy.for_profile(profile)


def require_roles(required_roles: Iterable[UserRole]):
    """
    Dependency factory for role-based access.

    Usage:

    @router.post("")
    def create_item(profile = Depends(require_roles([UserRole.ADMIN]))):
        ...

    Returns the current profile if it holds one of the required roles.
    """

    required = {UserRole(r) for r in required_roles}

    def dependency(
        profile: UserProfile = Depends(get_current_profile),
    ) -> UserProfile:
        if profile.role not in required:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permissão insuficiente para esta operação.",
            )
        return profile

    return dependency


require_catalog_manager = require_roles([UserRole.ADMIN, UserRole.CENTRAL_OPERATOR])
require_admin = require_roles([UserRole.ADMIN])
