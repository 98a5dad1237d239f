# medstock/services/stock_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medstock.core.errors import (
    ConflictOrUnavailable,
    InvalidInput,
    StockError,
    Unauthorized,
    UnknownItem,
    UnknownReference,
)
from medstock.models.hospital import Hospital, ServedUnit
from medstock.models.stock import Item, LocationKind, StockConfig
from medstock.schemas.stock import (
    StockConfigRow,
    StockConfigUpdate,
    StockOverviewPage,
    StockOverviewRow,
)
from medstock.services.access_policy import AccessPolicy
from medstock.services.movement_service import CENTRAL_LOCATION_NAME
from medstock.utils.config_keys import config_key

logger = logging.getLogger(__name__)

CENTRAL_FILTER = "central"


def stock_status(current: int, min_quantity: int, strategic_level: int) -> str:
    """
    low:    below the configured minimum (critical)
    alert:  below the strategic level
    optimal otherwise
    """
    if min_quantity > 0 and current < min_quantity:
        return "low"
    if strategic_level > 0 and current < strategic_level:
        return "alert"
    return "optimal"


@dataclass
class _Catalog:
    items: list[Item]
    hospitals: dict[str, Hospital]
    units: dict[str, ServedUnit]
    configs: dict[str, StockConfig]


def _load_catalog(db: Session) -> _Catalog:
    return _Catalog(
        items=list(db.scalars(select(Item).order_by(Item.name.asc()))),
        hospitals={h.id: h for h in db.scalars(select(Hospital))},
        units={u.id: u for u in db.scalars(select(ServedUnit))},
        configs={c.id: c for c in db.scalars(select(StockConfig))},
    )


def _location_names(
    catalog: _Catalog, kind: LocationKind, hospital_id: str | None, unit_id: str | None
) -> tuple[str, str | None, str | None]:
    """(location label, hospital name, unit name)"""
    if kind == LocationKind.CENTRAL:
        return CENTRAL_LOCATION_NAME, None, None
    hospital = catalog.hospitals.get(hospital_id) if hospital_id else None
    hospital_name = hospital.name if hospital else None
    if kind == LocationKind.UNIT:
        unit = catalog.units.get(unit_id) if unit_id else None
        unit_name = unit.name if unit else None
        return f"{unit_name} ({hospital_name})", hospital_name, unit_name
    return f"Estoque Geral {hospital_name}", hospital_name, None


# ---------------------------------------------------------------------------
# Current stock overview
# ---------------------------------------------------------------------------


def build_stock_rows(db: Session, policy: AccessPolicy) -> list[StockOverviewRow]:
    """Central row per item plus every visible unit/general config row."""
    catalog = _load_catalog(db)
    items_by_id = {i.id: i for i in catalog.items}
    rows: list[StockOverviewRow] = []

    if policy.can_view_location(LocationKind.CENTRAL):
        for item in catalog.items:
            key = config_key(item.id, LocationKind.CENTRAL)
            config = catalog.configs.get(key)
            current = item.current_quantity_central
            if config is None:
                strategic, min_q, status = 0, item.min_quantity, "not_configured"
            else:
                strategic = config.strategic_stock_level
                min_q = config.min_quantity or item.min_quantity
                status = stock_status(current, min_q, strategic)
            rows.append(
                StockOverviewRow(
                    id=key,
                    item_id=item.id,
                    item_name=item.name,
                    item_code=item.code,
                    location_kind=LocationKind.CENTRAL,
                    location_name=CENTRAL_LOCATION_NAME,
                    current_quantity=current,
                    strategic_stock_level=strategic,
                    min_quantity=min_q,
                    status=status,
                )
            )

    configs = [
        c for c in catalog.configs.values() if c.location_kind != LocationKind.CENTRAL
    ]
    for config in policy.visible_configs(configs):
        item = items_by_id.get(config.item_id)
        if item is None:
            continue
        label, hospital_name, unit_name = _location_names(
            catalog, config.location_kind, config.hospital_id, config.unit_id
        )
        rows.append(
            StockOverviewRow(
                id=config.id,
                item_id=item.id,
                item_name=item.name,
                item_code=item.code,
                location_kind=config.location_kind,
                location_name=label,
                hospital_id=config.hospital_id,
                hospital_name=hospital_name,
                unit_id=config.unit_id,
                unit_name=unit_name,
                current_quantity=config.current_quantity,
                strategic_stock_level=config.strategic_stock_level,
                min_quantity=config.min_quantity,
                status=stock_status(
                    config.current_quantity,
                    config.min_quantity,
                    config.strategic_stock_level,
                ),
            )
        )

    rows.sort(key=lambda r: ((r.hospital_name or ""), (r.unit_name or ""), r.item_name))
    return rows


def filter_stock_rows(
    rows: list[StockOverviewRow],
    *,
    search: str | None = None,
    hospital_id: str | None = None,
    unit_id: str | None = None,
    status: str | None = None,
) -> list[StockOverviewRow]:
    term = (search or "").strip().lower()
    result = []
    for row in rows:
        if term and term not in row.item_name.lower() and term not in row.item_code.lower():
            continue
        if hospital_id == CENTRAL_FILTER:
            if row.location_kind != LocationKind.CENTRAL:
                continue
        elif hospital_id and row.hospital_id != hospital_id:
            continue
        if unit_id and row.unit_id != unit_id:
            continue
        if status and row.status != status:
            continue
        result.append(row)
    return result


def list_stock_overview(
    db: Session,
    policy: AccessPolicy,
    *,
    search: str | None = None,
    hospital_id: str | None = None,
    unit_id: str | None = None,
    status: str | None = None,
    page: int = 1,
    page_size: int = 20,
) -> StockOverviewPage:
    rows = filter_stock_rows(
        build_stock_rows(db, policy),
        search=search,
        hospital_id=hospital_id,
        unit_id=unit_id,
        status=status,
    )
    page = max(1, page)
    start = (page - 1) * page_size
    return StockOverviewPage(
        items=rows[start : start + page_size],
        total=len(rows),
        page=page,
        page_size=page_size,
    )


# ---------------------------------------------------------------------------
# Strategic level configuration
# ---------------------------------------------------------------------------


def build_config_grid(
    db: Session, policy: AccessPolicy, location_filter: str = "all"
) -> list[StockConfigRow]:
    """
    Every item crossed with every visible location (central, served units,
    primary-care general stock), with stored levels or defaults.

    location_filter: "all", "central" or a hospital id.
    """
    catalog = _load_catalog(db)

    locations: list[tuple[LocationKind, str | None, str | None]] = []
    if location_filter in ("all", CENTRAL_FILTER) and policy.can_view_location(
        LocationKind.CENTRAL
    ):
        locations.append((LocationKind.CENTRAL, None, None))

    if location_filter != CENTRAL_FILTER:
        for unit in policy.visible_units(catalog.units.values()):
            if location_filter in ("all", unit.hospital_id):
                locations.append((LocationKind.UNIT, unit.hospital_id, unit.id))
        for hospital in catalog.hospitals.values():
            if not hospital.is_primary_care:
                continue
            if location_filter not in ("all", hospital.id):
                continue
            if policy.can_view_location(LocationKind.GENERAL, hospital.id):
                locations.append((LocationKind.GENERAL, hospital.id, None))

    rows: list[StockConfigRow] = []
    for item in catalog.items:
        for kind, hospital_id, unit_id in locations:
            key = config_key(
                item.id, kind, unit_id if kind == LocationKind.UNIT else hospital_id
            )
            stored = catalog.configs.get(key)
            _, hospital_name, unit_name = _location_names(
                catalog, kind, hospital_id, unit_id
            )
            if kind == LocationKind.CENTRAL:
                min_default = item.min_quantity
                current = item.current_quantity_central
            else:
                min_default = 0
                current = stored.current_quantity if stored else 0
            rows.append(
                StockConfigRow(
                    id=key,
                    item_id=item.id,
                    item_name=item.name,
                    item_code=item.code,
                    location_kind=kind,
                    hospital_id=hospital_id,
                    hospital_name=hospital_name,
                    unit_id=unit_id,
                    unit_name=unit_name,
                    strategic_stock_level=stored.strategic_stock_level if stored else 0,
                    min_quantity=(stored.min_quantity if stored else None) or min_default,
                    current_quantity=current,
                )
            )
    return rows


def _resolve_config_target(
    db: Session, update: StockConfigUpdate
) -> tuple[str, str | None, str | None]:
    """Validate references; returns (key, hospital_id, unit_id)."""
    if db.get(Item, update.item_id) is None:
        raise UnknownItem(update.item_id)

    if update.location_kind == LocationKind.CENTRAL:
        return config_key(update.item_id, LocationKind.CENTRAL), None, None

    if update.location_kind == LocationKind.UNIT:
        unit = db.get(ServedUnit, update.unit_id) if update.unit_id else None
        if unit is None:
            raise UnknownReference(f"Unidade '{update.unit_id}' não encontrada.")
        return (
            config_key(update.item_id, LocationKind.UNIT, unit.id),
            unit.hospital_id,
            unit.id,
        )

    hospital = db.get(Hospital, update.hospital_id) if update.hospital_id else None
    if hospital is None:
        raise UnknownReference(f"Hospital '{update.hospital_id}' não encontrado.")
    if not hospital.is_primary_care:
        raise InvalidInput(
            f"Estoque geral existe apenas em UBS; '{hospital.name}' é um hospital."
        )
    return config_key(update.item_id, LocationKind.GENERAL, hospital.id), hospital.id, None


def save_stock_configs(
    db: Session, policy: AccessPolicy, updates: list[StockConfigUpdate]
) -> int:
    """
    Merge strategic level and minimum into each config row (created when
    absent). current_quantity is never touched. Negative levels become 0.
    All rows commit together.
    """
    if not policy.can_manage_catalog:
        raise Unauthorized(
            "Apenas administradores e operadores do almoxarifado central "
            "podem alterar níveis estratégicos."
        )

    for update in updates:
        try:
            key, hospital_id, unit_id = _resolve_config_target(db, update)
        except StockError:
            db.rollback()
            raise
        config = db.get(StockConfig, key)
        if config is None:
            config = StockConfig(
                id=key,
                item_id=update.item_id,
                location_kind=update.location_kind,
                hospital_id=hospital_id,
                unit_id=unit_id,
                current_quantity=0,
            )
            db.add(config)
        config.strategic_stock_level = max(0, update.strategic_stock_level)
        config.min_quantity = max(0, update.min_quantity)

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to save stock configs count=%s", len(updates))
        raise ConflictOrUnavailable(
            "Não foi possível salvar as configurações de estoque."
        ) from exc

    logger.info("Saved stock configs count=%s user_id=%s", len(updates), policy.user_id)
    return len(updates)
