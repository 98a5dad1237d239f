"""
Tests for role/association scoping.

AccessPolicy is a pure value object; ORM objects are built in memory and
never flushed.
"""

import pytest

from medstock.models.hospital import FacilityType, Hospital, ServedUnit
from medstock.models.patient import Patient
from medstock.models.stock import LocationKind, MovementType, StockMovement
from medstock.models.user import UserRole
from medstock.services.access_policy import AccessPolicy

CONSUMPTION = MovementType.CONSUMPTION


def policy(role=UserRole.HOSPITAL_OPERATOR, hospital_id=None, unit_id=None, active=True):
    return AccessPolicy(
        user_id="u",
        role=role,
        active=active,
        hospital_id=hospital_id,
        unit_id=unit_id,
    )


class TestGlobalRoles:

    @pytest.mark.parametrize("role", [UserRole.ADMIN, UserRole.CENTRAL_OPERATOR])
    def test_sees_and_edits_everything(self, role):
        p = policy(role)
        assert p.is_global
        assert p.can_manage_catalog
        assert p.can_view_location(LocationKind.UNIT, "h1", "u1")
        assert p.can_edit_location(MovementType.EXIT, LocationKind.CENTRAL)
        assert p.can_edit_location(CONSUMPTION, LocationKind.GENERAL, "h1")

    def test_only_admin_manages_users(self):
        assert policy(UserRole.ADMIN).can_manage_users
        assert not policy(UserRole.CENTRAL_OPERATOR).can_manage_users

    def test_inactive_admin_has_no_access(self):
        p = policy(UserRole.ADMIN, active=False)
        assert not p.is_global
        assert not p.can_view_location(LocationKind.CENTRAL)
        assert p.visible_hospitals([Hospital(id="h1", name="H")]) == []


class TestUnitOperator:

    def test_cannot_see_or_submit_to_another_unit(self):
        p = policy(hospital_id="h1", unit_id="U1")
        assert p.can_view_location(LocationKind.UNIT, "h1", "U1")
        assert not p.can_view_location(LocationKind.UNIT, "h1", "U2")
        assert p.can_edit_location(CONSUMPTION, LocationKind.UNIT, "h1", "U1")
        assert not p.can_edit_location(CONSUMPTION, LocationKind.UNIT, "h1", "U2")

    def test_does_not_see_general_stock_of_own_hospital(self):
        p = policy(UserRole.UBS_OPERATOR, hospital_id="h1", unit_id="U1")
        assert not p.can_view_location(LocationKind.GENERAL, "h1")

    def test_visible_units_filter(self):
        units = [
            ServedUnit(id="U1", name="A", location="x", hospital_id="h1"),
            ServedUnit(id="U2", name="B", location="y", hospital_id="h1"),
        ]
        p = policy(hospital_id="h1", unit_id="U1")
        assert [u.id for u in p.visible_units(units)] == ["U1"]


class TestHospitalOperator:

    def test_sees_every_unit_of_own_hospital(self):
        p = policy(hospital_id="h1")
        assert p.can_view_location(LocationKind.UNIT, "h1", "U1")
        assert p.can_view_location(LocationKind.UNIT, "h1", "U2")
        assert not p.can_view_location(LocationKind.UNIT, "h2", "U9")

    def test_only_consumption(self):
        p = policy(hospital_id="h1")
        assert p.can_edit_location(CONSUMPTION, LocationKind.UNIT, "h1", "U1")
        assert not p.can_edit_location(MovementType.ENTRY, LocationKind.CENTRAL)
        assert not p.can_edit_location(MovementType.EXIT, LocationKind.UNIT, "h1", "U1")

    def test_central_visible_but_not_editable(self):
        p = policy(hospital_id="h1")
        assert p.can_view_location(LocationKind.CENTRAL)
        assert not p.can_edit_location(CONSUMPTION, LocationKind.CENTRAL)

    def test_general_stock_only_at_primary_care(self):
        p = policy(UserRole.UBS_OPERATOR, hospital_id="h1")
        assert p.can_edit_location(
            CONSUMPTION, LocationKind.GENERAL, "h1", hospital_is_primary_care=True
        )
        assert not p.can_edit_location(
            CONSUMPTION, LocationKind.GENERAL, "h1", hospital_is_primary_care=False
        )

    def test_visible_collections(self):
        p = policy(UserRole.UBS_OPERATOR, hospital_id="h1")
        hospitals = [
            Hospital(id="h1", name="UBS A", facility_type=FacilityType.PRIMARY_CARE),
            Hospital(id="h2", name="Hospital B"),
        ]
        patients = [
            Patient(id="p1", name="Ana", sus_card_number="1" * 15, registered_ubs_id="h1"),
            Patient(id="p2", name="Bia", sus_card_number="2" * 15, registered_ubs_id="h2"),
        ]
        movements = [
            StockMovement(id="m1", hospital_id="h1"),
            StockMovement(id="m2", hospital_id="h2"),
        ]
        assert [h.id for h in p.visible_hospitals(hospitals)] == ["h1"]
        assert [x.id for x in p.visible_patients(patients)] == ["p1"]
        assert [m.id for m in p.visible_movements(movements)] == ["m1"]


class TestUnassociatedUser:

    def test_plain_user_sees_central_only(self):
        p = policy(UserRole.USER)
        assert p.can_view_location(LocationKind.CENTRAL)
        assert not p.can_view_location(LocationKind.UNIT, "h1", "U1")
        assert not p.can_edit_location(CONSUMPTION, LocationKind.CENTRAL)
        assert p.visible_movements([StockMovement(id="m1", hospital_id="h1")]) == []
