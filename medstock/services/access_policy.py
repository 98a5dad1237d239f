# medstock/services/access_policy.py
"""
Role/association scoping, computed once per request from the caller's
profile and consulted by every endpoint and service.

Precedence:
- admin and central_operator see and edit everything;
- a profile with an associated unit is confined to that unit;
- a profile with an associated hospital (no unit) sees every unit of that
  hospital plus its general-stock bucket;
- anything else sees only central-only views and edits nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from medstock.models.hospital import Hospital, ServedUnit
from medstock.models.patient import Patient
from medstock.models.stock import LocationKind, MovementType, StockConfig, StockMovement
from medstock.models.user import UserProfile, UserRole

GLOBAL_ROLES = frozenset({UserRole.ADMIN, UserRole.CENTRAL_OPERATOR})
OPERATOR_ROLES = frozenset({UserRole.HOSPITAL_OPERATOR, UserRole.UBS_OPERATOR})


@dataclass(frozen=True)
class AccessPolicy:
    user_id: str
    role: UserRole
    active: bool
    hospital_id: str | None = None
    unit_id: str | None = None

    @classmethod
    def for_profile(cls, profile: UserProfile) -> "AccessPolicy":
        return cls(
            user_id=profile.id,
            role=profile.role,
            active=profile.is_active,
            hospital_id=profile.associated_hospital_id,
            unit_id=profile.associated_unit_id,
        )

    # ---- role predicates ----

    @property
    def is_global(self) -> bool:
        return self.active and self.role in GLOBAL_ROLES

    @property
    def is_operator(self) -> bool:
        return self.active and self.role in OPERATOR_ROLES

    @property
    def can_manage_catalog(self) -> bool:
        return self.is_global

    @property
    def can_manage_users(self) -> bool:
        return self.active and self.role == UserRole.ADMIN

    @property
    def can_import_movements(self) -> bool:
        return self.is_global

    # ---- location predicates ----

    def can_view_location(
        self,
        location_kind: LocationKind,
        hospital_id: str | None = None,
        unit_id: str | None = None,
    ) -> bool:
        if not self.active:
            return False
        if self.is_global:
            return True
        if location_kind == LocationKind.CENTRAL:
            # Central quantities are shown read-only to every active profile.
            return True
        if self.unit_id:
            return location_kind == LocationKind.UNIT and unit_id == self.unit_id
        if self.hospital_id:
            return hospital_id == self.hospital_id
        return False

    def can_edit_location(
        self,
        movement_type: MovementType,
        location_kind: LocationKind,
        hospital_id: str | None = None,
        unit_id: str | None = None,
        hospital_is_primary_care: bool = False,
    ) -> bool:
        """
        May this profile record a movement of this type at this location?

        Operators only record consumption inside their own scope; general
        stock exists only at primary-care hospitals.
        """
        if not self.active:
            return False
        if self.is_global:
            return True
        if not self.is_operator or movement_type != MovementType.CONSUMPTION:
            return False
        if location_kind == LocationKind.CENTRAL:
            return False
        if self.unit_id:
            return location_kind == LocationKind.UNIT and unit_id == self.unit_id
        if not self.hospital_id or hospital_id != self.hospital_id:
            return False
        if location_kind == LocationKind.GENERAL:
            return hospital_is_primary_care
        return True

    # ---- collection filters (pure, no I/O) ----

    def visible_units(self, units: Iterable[ServedUnit]) -> list[ServedUnit]:
        return [
            u
            for u in units
            if self.can_view_location(LocationKind.UNIT, u.hospital_id, u.id)
        ]

    def visible_hospitals(self, hospitals: Iterable[Hospital]) -> list[Hospital]:
        if not self.active:
            return []
        if self.is_global:
            return list(hospitals)
        if self.hospital_id:
            return [h for h in hospitals if h.id == self.hospital_id]
        return []

    def visible_configs(self, configs: Iterable[StockConfig]) -> list[StockConfig]:
        return [
            c
            for c in configs
            if self.can_view_location(c.location_kind, c.hospital_id, c.unit_id)
        ]

    def visible_movements(
        self, movements: Iterable[StockMovement]
    ) -> list[StockMovement]:
        if not self.active:
            return []
        if self.is_global:
            return list(movements)
        if self.unit_id:
            return [m for m in movements if m.unit_id == self.unit_id]
        if self.hospital_id:
            return [m for m in movements if m.hospital_id == self.hospital_id]
        return []

    def visible_patients(self, patients: Iterable[Patient]) -> list[Patient]:
        if not self.active:
            return []
        if self.is_global:
            return list(patients)
        if self.hospital_id:
            return [p for p in patients if p.registered_ubs_id == self.hospital_id]
        return []

