# medstock/services/user_service.py
import logging

from sqlalchemy.orm import Session

from medstock.core.errors import InvalidInput, UnknownReference
from medstock.models.hospital import Hospital, ServedUnit
from medstock.models.user import UserProfile, UserRole, UserStatus
from medstock.schemas.user import UserProfileCreate, UserProfileUpdate

logger = logging.getLogger(__name__)


def _resolve_association(
    db: Session, hospital_id: str | None, unit_id: str | None
) -> tuple[str | None, str | None]:
    """
    Validate an (hospital, unit) association.

    A unit implies its hospital; a unit from another hospital is rejected.
    """
    if unit_id:
        unit = db.get(ServedUnit, unit_id)
        if unit is None:
            raise UnknownReference(f"Unidade '{unit_id}' não encontrada.")
        if hospital_id and hospital_id != unit.hospital_id:
            raise InvalidInput(
                f"A unidade '{unit.name}' não pertence ao hospital informado."
            )
        return unit.hospital_id, unit.id

    if hospital_id:
        if db.get(Hospital, hospital_id) is None:
            raise UnknownReference(f"Hospital '{hospital_id}' não encontrado.")
        return hospital_id, None

    return None, None


def create_profile(db: Session, profile_in: UserProfileCreate) -> UserProfile:
    """
    Create the profile of an identity-provider subject.
    Caller commits.
    """
    if db.get(UserProfile, profile_in.id) is not None:
        raise InvalidInput("Já existe um perfil para este usuário.")

    hospital_id, unit_id = _resolve_association(
        db, profile_in.associated_hospital_id, profile_in.associated_unit_id
    )
    profile = UserProfile(
        id=profile_in.id,
        name=profile_in.name,
        email=str(profile_in.email),
        role=profile_in.role,
        status=profile_in.status,
        associated_hospital_id=hospital_id,
        associated_unit_id=unit_id,
    )
    db.add(profile)
    db.flush()
    return profile


def update_profile(
    db: Session, profile: UserProfile, payload: UserProfileUpdate
) -> UserProfile:
    """Apply only the fields that were sent. Caller commits."""
    data = payload.model_dump(exclude_unset=True)

    if "associated_hospital_id" in data or "associated_unit_id" in data:
        hospital_id, unit_id = _resolve_association(
            db,
            data.get("associated_hospital_id", profile.associated_hospital_id),
            data.get("associated_unit_id", profile.associated_unit_id),
        )
        profile.associated_hospital_id = hospital_id
        profile.associated_unit_id = unit_id

    for field in ("name", "role", "status"):
        if data.get(field) is not None:
            setattr(profile, field, data[field])

    db.flush()
    return profile


def register_self(
    db: Session, subject: str, email: str | None, name: str
) -> UserProfile:
    """
    First access of an authenticated subject: a basic `user` profile with
    no association. An admin grants roles later.
    """
    if db.get(UserProfile, subject) is not None:
        raise InvalidInput("Já existe um perfil para este usuário.")
    if not email:
        raise InvalidInput("O token de acesso não contém e-mail.")

    profile = UserProfile(
        id=subject,
        name=name,
        email=email,
        role=UserRole.USER,
        status=UserStatus.ACTIVE,
    )
    db.add(profile)
    db.flush()
    logger.info("Registered new profile id=%s", subject)
    return profile


def ensure_admin_profile(
    db: Session, subject: str, email: str, name: str
) -> tuple[UserProfile, bool]:
    """
    Idempotent: create an active admin profile, or promote/reactivate the
    existing one. Returns (profile, created).
    """
    profile = db.get(UserProfile, subject)
    if profile is not None:
        profile.role = UserRole.ADMIN
        profile.status = UserStatus.ACTIVE
        db.flush()
        return profile, False

    profile = UserProfile(
        id=subject,
        name=name,
        email=email,
        role=UserRole.ADMIN,
        status=UserStatus.ACTIVE,
    )
    db.add(profile)
    db.flush()
    return profile, True
