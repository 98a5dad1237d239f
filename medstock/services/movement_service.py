# medstock/services/movement_service.py
"""
Stock movement processor.

One movement = one immutable ledger row plus the counter update(s) it
implies, committed together or not at all.

Checks run in a fixed order, all before any write:
1. the item exists                       -> UnknownItem
2. type / quantity / date are valid      -> InvalidInput
   (unit, hospital and patient references -> UnknownReference)
3. the actor may write at the location    -> Unauthorized
4. the config key is resolved
5. counters change through conditional UPDATEs; a decrement that would
   go below zero matches no row, raises InsufficientStock and nothing is
   written.

Location rules:
- entry:        central +q (no hospital/unit allowed)
- exit:         central -q; a unit (or the general stock of a primary-care
                hospital) receives +q; no destination = write-off
- consumption:  -q at the unit, the general stock, or central
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from medstock.core.config import get_settings
from medstock.core.errors import (
    ConflictOrUnavailable,
    InsufficientStock,
    InvalidInput,
    Unauthorized,
    UnknownItem,
    UnknownReference,
)
from medstock.models.hospital import Hospital, ServedUnit
from medstock.models.patient import Patient
from medstock.models.stock import (
    Item,
    LocationKind,
    MovementType,
    StockConfig,
    StockMovement,
)
from medstock.models.user import UserProfile
from medstock.schemas.stock import MovementCreate, MovementResult
from medstock.services.access_policy import AccessPolicy
from medstock.utils.config_keys import config_key
from medstock.utils.datetime_utils import parse_iso_date

logger = logging.getLogger(__name__)

CENTRAL_LOCATION_NAME = "Armazém Central"


@dataclass(frozen=True)
class Location:
    kind: LocationKind
    key: str
    hospital: Hospital | None = None
    unit: ServedUnit | None = None

    @property
    def label(self) -> str:
        if self.kind == LocationKind.CENTRAL:
            return CENTRAL_LOCATION_NAME
        if self.kind == LocationKind.UNIT and self.unit is not None:
            return f"{self.unit.name} ({self.unit.hospital_name})"
        return f"Estoque Geral {self.hospital.name}" if self.hospital else "?"


@dataclass(frozen=True)
class MovementPlan:
    """Validated movement, ready to be applied inside a transaction."""

    item_id: str
    item_name: str
    item_code: str
    type: MovementType
    quantity: int
    date: date
    # for exits, the receiving location
    target: Location
    patient: Patient | None = None
    notes: str | None = None


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _parse_type(raw: str) -> MovementType:
    try:
        return MovementType((raw or "").strip().lower())
    except ValueError:
        raise InvalidInput(
            f"Tipo de movimentação inválido ('{raw}'). "
            "Use 'entry', 'exit' ou 'consumption'."
        ) from None


def _parse_quantity(raw: float) -> int:
    if raw is None or not math.isfinite(raw) or raw <= 0 or not float(raw).is_integer():
        raise InvalidInput(
            f"Quantidade inválida ('{raw}'). Informe um número inteiro positivo."
        )
    return int(raw)


def _parse_date(raw: str) -> date:
    try:
        return parse_iso_date(raw)
    except ValueError as exc:
        raise InvalidInput(str(exc)) from None


def _resolve_location(
    db: Session,
    item_id: str,
    movement_type: MovementType,
    hospital_id: str | None,
    unit_id: str | None,
) -> Location:
    """Turn the optional hospital/unit pair into the location the movement books."""
    unit: ServedUnit | None = None
    hospital: Hospital | None = None

    if unit_id:
        unit = db.get(ServedUnit, unit_id)
        if unit is None:
            raise UnknownReference(f"Unidade '{unit_id}' não encontrada.")
        if hospital_id and hospital_id != unit.hospital_id:
            raise InvalidInput(
                f"A unidade '{unit.name}' não pertence ao hospital informado."
            )
        hospital = unit.hospital
    elif hospital_id:
        hospital = db.get(Hospital, hospital_id)
        if hospital is None:
            raise UnknownReference(f"Hospital '{hospital_id}' não encontrado.")

    if movement_type == MovementType.ENTRY and (unit or hospital):
        raise InvalidInput(
            "Entradas são registradas apenas no Armazém Central; "
            "não informe hospital ou unidade."
        )

    if unit is not None:
        return Location(
            kind=LocationKind.UNIT,
            key=config_key(item_id, LocationKind.UNIT, unit.id),
            hospital=hospital,
            unit=unit,
        )

    if hospital is not None:
        if not hospital.is_primary_care:
            action = "saída" if movement_type == MovementType.EXIT else "consumo"
            raise InvalidInput(
                f"Unidade é obrigatória para {action} no hospital '{hospital.name}' "
                "(estoque geral existe apenas em UBS)."
            )
        return Location(
            kind=LocationKind.GENERAL,
            key=config_key(item_id, LocationKind.GENERAL, hospital.id),
            hospital=hospital,
        )

    return Location(
        kind=LocationKind.CENTRAL,
        key=config_key(item_id, LocationKind.CENTRAL),
    )


def plan_movement(
    db: Session,
    data: MovementCreate,
    actor: UserProfile,
) -> MovementPlan:
    """Run every check that needs no lock. Raises a StockError subclass."""
    item = db.get(Item, data.item_id) if data.item_id else None
    if item is None:
        raise UnknownItem(data.item_id)

    movement_type = _parse_type(data.type)
    quantity = _parse_quantity(data.quantity)
    movement_date = _parse_date(data.date)

    target = _resolve_location(
        db, item.id, movement_type, data.hospital_id, data.unit_id
    )

    patient: Patient | None = None
    if data.patient_id:
        if movement_type != MovementType.CONSUMPTION:
            raise InvalidInput("Paciente só pode ser vinculado a consumos.")
        patient = db.get(Patient, data.patient_id)
        if patient is None:
            raise UnknownReference(f"Paciente '{data.patient_id}' não encontrado.")

    policy = AccessPolicy.for_profile(actor)
    if movement_type == MovementType.CONSUMPTION:
        allowed = policy.can_edit_location(
            movement_type,
            target.kind,
            hospital_id=target.hospital.id if target.hospital else None,
            unit_id=target.unit.id if target.unit else None,
            hospital_is_primary_care=bool(
                target.hospital and target.hospital.is_primary_care
            ),
        )
    else:
        # Entries and exits move the central warehouse.
        allowed = policy.can_edit_location(movement_type, LocationKind.CENTRAL)
    if not allowed:
        logger.warning(
            "Movement denied user_id=%s role=%s type=%s location=%s",
            actor.id,
            actor.role,
            movement_type.value,
            target.key,
        )
        raise Unauthorized(
            "Você não tem permissão para registrar esta movimentação "
            f"em {target.label}."
        )

    logger.debug(
        "Resolved movement item_id=%s type=%s key=%s",
        item.id,
        movement_type.value,
        target.key,
    )

    return MovementPlan(
        item_id=item.id,
        item_name=item.name,
        item_code=item.code,
        type=movement_type,
        quantity=quantity,
        date=movement_date,
        target=target,
        patient=patient,
        notes=(data.notes or None),
    )


# ---------------------------------------------------------------------------
# Transactional apply
# ---------------------------------------------------------------------------

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})


def is_transient_store_error(exc: DBAPIError) -> bool:
    """Only dropped connections, serialization conflicts and lock contention are worth a retry."""
    if exc.connection_invalidated:
        return True
    if not isinstance(exc, OperationalError):
        return False
    sqlstate = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
    if sqlstate in RETRYABLE_SQLSTATES:
        return True
    message = str(exc.orig).lower()
    return "database is locked" in message or "deadlock" in message


def _expire_cached(db: Session, entity: type, key: str) -> None:
    cached = db.identity_map.get(db.identity_key(entity, key))
    if cached is not None:
        db.expire(cached)


def _central_quantity(db: Session, item_id: str) -> int | None:
    return db.scalar(select(Item.current_quantity_central).where(Item.id == item_id))


def _config_quantity(db: Session, key: str) -> int:
    return db.scalar(select(StockConfig.current_quantity).where(StockConfig.id == key)) or 0


def _ensure_config(db: Session, item_id: str, location: Location) -> None:
    """Create the location's empty config row when it does not exist yet."""
    exists = db.scalar(select(StockConfig.id).where(StockConfig.id == location.key))
    if exists is not None:
        return
    try:
        with db.begin_nested():
            db.add(
                StockConfig(
                    id=location.key,
                    item_id=item_id,
                    location_kind=location.kind,
                    hospital_id=location.hospital.id if location.hospital else None,
                    unit_id=location.unit.id if location.unit else None,
                    strategic_stock_level=0,
                    min_quantity=0,
                    current_quantity=0,
                )
            )
    except IntegrityError:
        # another movement created it first
        logger.debug("Config row created concurrently key=%s", location.key)


def _change_central(db: Session, plan: MovementPlan, delta: int) -> int:
    """
    Single conditional UPDATE of the central counter. A decrement only
    matches while enough stock is left, so two writers can never both
    spend the same units.
    """
    stmt = update(Item).where(Item.id == plan.item_id)
    if delta < 0:
        stmt = stmt.where(Item.current_quantity_central >= -delta)
    result = db.execute(
        stmt.values(current_quantity_central=Item.current_quantity_central + delta),
        execution_options={"synchronize_session": False},
    )
    _expire_cached(db, Item, plan.item_id)
    if result.rowcount == 0:
        available = _central_quantity(db, plan.item_id)
        if available is None:
            raise UnknownItem(plan.item_id)
        raise InsufficientStock(CENTRAL_LOCATION_NAME, available, -delta, plan.item_name)
    return _central_quantity(db, plan.item_id)


def _change_config(db: Session, plan: MovementPlan, delta: int) -> int:
    key = plan.target.key
    stmt = update(StockConfig).where(StockConfig.id == key)
    if delta < 0:
        stmt = stmt.where(StockConfig.current_quantity >= -delta)
    result = db.execute(
        stmt.values(current_quantity=StockConfig.current_quantity + delta),
        execution_options={"synchronize_session": False},
    )
    _expire_cached(db, StockConfig, key)
    if result.rowcount == 0:
        raise InsufficientStock(
            plan.target.label, _config_quantity(db, key), -delta, plan.item_name
        )
    return _config_quantity(db, key)


def _apply_plan(db: Session, plan: MovementPlan, actor: UserProfile) -> MovementResult:
    q = plan.quantity
    at_central = plan.target.kind == LocationKind.CENTRAL
    if not at_central:
        _ensure_config(db, plan.item_id, plan.target)

    central_after: int | None = None
    if plan.type == MovementType.ENTRY:
        central_after = _change_central(db, plan, q)
        resulting = central_after

    elif plan.type == MovementType.EXIT:
        central_after = _change_central(db, plan, -q)
        resulting = central_after if at_central else _change_config(db, plan, q)

    else:  # consumption
        if at_central:
            central_after = _change_central(db, plan, -q)
            resulting = central_after
        else:
            resulting = _change_config(db, plan, -q)

    hospital = plan.target.hospital
    unit = plan.target.unit
    movement = StockMovement(
        item_id=plan.item_id,
        item_name=plan.item_name,
        item_code=plan.item_code,
        type=plan.type,
        quantity=q,
        date=plan.date,
        hospital_id=hospital.id if hospital else None,
        hospital_name=hospital.name if hospital else None,
        unit_id=unit.id if unit else None,
        unit_name=unit.name if unit else None,
        patient_id=plan.patient.id if plan.patient else None,
        patient_name=plan.patient.name if plan.patient else None,
        notes=plan.notes,
        user_id=actor.id,
        user_display_name=actor.name or actor.email,
    )
    db.add(movement)
    db.flush()

    return MovementResult(
        movement_id=movement.id,
        config_key=plan.target.key,
        resulting_quantity=resulting,
        central_quantity=central_after,
    )


def process_movement(
    db: Session,
    data: MovementCreate,
    actor: UserProfile,
    *,
    commit: bool = True,
) -> MovementResult:
    """
    Validate and apply one movement.

    commit=True: the movement is its own transaction; transient store
    failures are retried up to Settings.movement_max_retries times. Any
    other store error is raised unchanged after a rollback.

    commit=False: the movement runs inside a savepoint of the caller's
    transaction (batch imports). A failed movement leaves no trace and the
    caller commits once at the end; store failures are not retried here.
    """
    plan = plan_movement(db, data, actor)

    if not commit:
        try:
            with db.begin_nested():
                result = _apply_plan(db, plan, actor)
        except DBAPIError as exc:
            logger.exception("Movement savepoint failed key=%s", plan.target.key)
            if is_transient_store_error(exc):
                raise ConflictOrUnavailable(
                    "Não foi possível registrar a movimentação. Tente novamente."
                ) from exc
            raise
        return result

    max_retries = max(1, get_settings().movement_max_retries)
    attempt = 0
    while True:
        attempt += 1
        try:
            result = _apply_plan(db, plan, actor)
            db.commit()
        except InsufficientStock:
            db.rollback()
            logger.warning(
                "Insufficient stock item_id=%s type=%s quantity=%s key=%s",
                plan.item_id,
                plan.type.value,
                plan.quantity,
                plan.target.key,
            )
            raise
        except DBAPIError as exc:
            db.rollback()
            if not is_transient_store_error(exc):
                logger.exception("Movement transaction failed key=%s", plan.target.key)
                raise
            if attempt < max_retries:
                logger.warning(
                    "Movement transaction conflict, retrying attempt=%s/%s key=%s",
                    attempt,
                    max_retries,
                    plan.target.key,
                )
                continue
            logger.exception(
                "Movement transaction failed after %s attempts key=%s",
                attempt,
                plan.target.key,
            )
            raise ConflictOrUnavailable(
                "Não foi possível registrar a movimentação. Tente novamente."
            ) from exc
        except Exception:
            db.rollback()
            raise

        logger.info(
            "Movement recorded id=%s item=%s type=%s quantity=%s key=%s resulting=%s",
            result.movement_id,
            plan.item_code,
            plan.type.value,
            plan.quantity,
            result.config_key,
            result.resulting_quantity,
        )
        return result
