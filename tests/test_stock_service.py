"""
Tests for the stock overview, level status and the strategic-level grid.
"""

import pytest

from medstock.core.errors import InvalidInput, Unauthorized, UnknownReference
from medstock.models.stock import LocationKind, StockConfig
from medstock.models.user import UserRole
from medstock.schemas.stock import StockConfigUpdate
from medstock.services.access_policy import AccessPolicy
from medstock.services.stock_service import (
    build_config_grid,
    list_stock_overview,
    save_stock_configs,
    stock_status,
)
from medstock.utils.config_keys import config_key


class TestStockStatus:

    @pytest.mark.parametrize(
        "current,minimum,strategic,expected",
        [
            (5, 10, 50, "low"),
            (20, 10, 50, "alert"),
            (50, 10, 50, "optimal"),
            (0, 0, 0, "optimal"),
            (3, 0, 5, "alert"),
        ],
    )
    def test_levels(self, current, minimum, strategic, expected):
        assert stock_status(current, minimum, strategic) == expected


@pytest.fixture
def network(db, make_hospital, make_unit, make_item):
    hospital = make_hospital("Hospital Central")
    ubs = make_hospital("UBS Vila Nova", primary_care=True)
    ward = make_unit(hospital, "Enfermaria")
    icu = make_unit(hospital, "UTI")
    item = make_item(central=40, min_quantity=10)
    for unit, qty in ((ward, 3), (icu, 30)):
        db.add(
            StockConfig(
                id=config_key(item.id, LocationKind.UNIT, unit.id),
                item_id=item.id,
                location_kind=LocationKind.UNIT,
                hospital_id=hospital.id,
                unit_id=unit.id,
                strategic_stock_level=20,
                min_quantity=5,
                current_quantity=qty,
            )
        )
    db.commit()
    return hospital, ubs, ward, icu, item


class TestOverview:

    def test_admin_sees_central_and_units(self, db, admin, network):
        page = list_stock_overview(db, AccessPolicy.for_profile(admin))
        kinds = sorted(r.location_kind.value for r in page.items)
        assert kinds == ["central", "unit", "unit"]
        central = next(r for r in page.items if r.location_kind == LocationKind.CENTRAL)
        assert central.status == "not_configured"
        assert central.min_quantity == 10

    def test_unit_operator_sees_only_own_unit_and_central(self, db, make_profile, network):
        hospital, _, ward, _, _ = network
        operator = make_profile("op", UserRole.HOSPITAL_OPERATOR, hospital=hospital, unit=ward)
        page = list_stock_overview(db, AccessPolicy.for_profile(operator))
        unit_rows = [r for r in page.items if r.location_kind == LocationKind.UNIT]
        assert [r.unit_id for r in unit_rows] == [ward.id]
        assert unit_rows[0].status == "low"

    def test_filters_and_paging(self, db, admin, network):
        policy = AccessPolicy.for_profile(admin)
        central_only = list_stock_overview(db, policy, hospital_id="central")
        assert central_only.total == 1
        alerts = list_stock_overview(db, policy, status="low")
        assert alerts.total == 1
        assert list_stock_overview(db, policy, search="nada").total == 0
        paged = list_stock_overview(db, policy, page=2, page_size=2)
        assert paged.total == 3
        assert len(paged.items) == 1


class TestConfigGrid:

    def test_grid_crosses_items_with_visible_locations(self, db, admin, network):
        _, ubs, _, _, item = network
        rows = build_config_grid(db, AccessPolicy.for_profile(admin))
        kinds = sorted(r.location_kind.value for r in rows)
        assert kinds == ["central", "general", "unit", "unit"]
        general = next(r for r in rows if r.location_kind == LocationKind.GENERAL)
        assert general.id == f"{item.id}_{ubs.id}_UBSGENERAL"
        assert general.strategic_stock_level == 0

    def test_central_filter(self, db, admin, network):
        rows = build_config_grid(db, AccessPolicy.for_profile(admin), "central")
        assert [r.location_kind for r in rows] == [LocationKind.CENTRAL]

    def test_save_merges_levels_and_keeps_quantity(self, db, admin, network):
        _, ubs, ward, _, item = network
        saved = save_stock_configs(
            db,
            AccessPolicy.for_profile(admin),
            [
                StockConfigUpdate(
                    item_id=item.id,
                    location_kind=LocationKind.UNIT,
                    unit_id=ward.id,
                    strategic_stock_level=100,
                    min_quantity=-4,
                ),
                StockConfigUpdate(
                    item_id=item.id,
                    location_kind=LocationKind.GENERAL,
                    hospital_id=ubs.id,
                    strategic_stock_level=7,
                ),
            ],
        )
        assert saved == 2
        ward_cfg = db.get(StockConfig, f"{item.id}_{ward.id}")
        assert ward_cfg.strategic_stock_level == 100
        assert ward_cfg.min_quantity == 0
        assert ward_cfg.current_quantity == 3
        general = db.get(StockConfig, f"{item.id}_{ubs.id}_UBSGENERAL")
        assert general.current_quantity == 0

    def test_general_stock_rejected_for_hospital(self, db, admin, network):
        hospital, _, _, _, item = network
        with pytest.raises(InvalidInput):
            save_stock_configs(
                db,
                AccessPolicy.for_profile(admin),
                [
                    StockConfigUpdate(
                        item_id=item.id,
                        location_kind=LocationKind.GENERAL,
                        hospital_id=hospital.id,
                    )
                ],
            )

    def test_unknown_unit(self, db, admin, network):
        item = network[4]
        with pytest.raises(UnknownReference):
            save_stock_configs(
                db,
                AccessPolicy.for_profile(admin),
                [StockConfigUpdate(item_id=item.id, location_kind=LocationKind.UNIT, unit_id="x")],
            )

    def test_operators_cannot_save(self, db, make_profile, network):
        hospital, _, ward, _, item = network
        operator = make_profile("op", UserRole.HOSPITAL_OPERATOR, hospital=hospital)
        with pytest.raises(Unauthorized):
            save_stock_configs(
                db,
                AccessPolicy.for_profile(operator),
                [StockConfigUpdate(item_id=item.id, location_kind=LocationKind.UNIT, unit_id=ward.id)],
            )
