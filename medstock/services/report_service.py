# medstock/services/report_service.py
from __future__ import annotations

from datetime import date
from io import BytesIO

from sqlalchemy import select
from sqlalchemy.orm import Session

from medstock.core.errors import Unauthorized, UnknownReference
from medstock.models.patient import Patient
from medstock.models.stock import Item, MovementType, StockMovement
from medstock.schemas.reports import (
    ConsumptionRow,
    ExpiringItemRow,
    GeneralConsumptionRow,
    LowStockRow,
)
from medstock.services.access_policy import AccessPolicy
from medstock.services.movement_service import CENTRAL_LOCATION_NAME
from medstock.services.stock_service import (
    build_stock_rows,
    filter_stock_rows,
    stock_status,
)
from medstock.utils.csv_utils import write_csv
from medstock.utils.datetime_utils import days_until, today
from medstock.utils.report_pdf import generate_report_pdf

STATUS_LABELS = {"optimal": "Ótimo", "low": "Baixo", "alert": "Alerta"}

LOW_STOCK_HEADERS = (
    "Código",
    "Item",
    "Local",
    "Quantidade Atual",
    "Quantidade Mínima",
    "Nível Estratégico",
    "Status",
)

CONSUMPTION_HEADERS = (
    "Data",
    "Código",
    "Item",
    "Quantidade",
    "Hospital",
    "Unidade",
    "Paciente",
    "Registrado por",
    "Observações",
)

GENERAL_CONSUMPTION_HEADERS = (
    "Nome do Item",
    "Código",
    "Unidade/Local",
    "Hospital",
    "Total Consumido",
)

GENERAL_STOCK_LABEL = "Estoque Geral"


# ---------------------------------------------------------------------------
# Low stock levels
# ---------------------------------------------------------------------------


def low_stock_report(
    db: Session,
    policy: AccessPolicy,
    *,
    hospital_id: str | None = None,
    unit_id: str | None = None,
    status: str | None = None,
) -> list[LowStockRow]:
    """
    Stock levels per location labelled Ótimo / Baixo / Alerta.

    status filters on "low" or "alert"; hospital_id accepts "central".
    """
    rows = filter_stock_rows(
        build_stock_rows(db, policy), hospital_id=hospital_id, unit_id=unit_id
    )
    report: list[LowStockRow] = []
    for row in rows:
        computed = stock_status(
            row.current_quantity, row.min_quantity, row.strategic_stock_level
        )
        if status and computed != status:
            continue
        report.append(
            LowStockRow(
                item_id=row.item_id,
                item_name=row.item_name,
                item_code=row.item_code,
                location_kind=row.location_kind,
                location_name=row.location_name,
                hospital_id=row.hospital_id,
                unit_id=row.unit_id,
                current_quantity=row.current_quantity,
                min_quantity=row.min_quantity,
                strategic_stock_level=row.strategic_stock_level,
                status=STATUS_LABELS[computed],
            )
        )
    return report


def _low_stock_table(rows: list[LowStockRow]) -> list[tuple]:
    return [
        (
            r.item_code,
            r.item_name,
            r.location_name,
            r.current_quantity,
            r.min_quantity,
            r.strategic_stock_level,
            r.status,
        )
        for r in rows
    ]


def low_stock_csv(rows: list[LowStockRow]) -> str:
    return write_csv(LOW_STOCK_HEADERS, _low_stock_table(rows))


def low_stock_pdf(rows: list[LowStockRow]) -> BytesIO:
    alerts = sum(1 for r in rows if r.status != STATUS_LABELS["optimal"])
    return generate_report_pdf(
        "Relatório de Níveis de Estoque",
        LOW_STOCK_HEADERS,
        _low_stock_table(rows),
        subtitle=f"{len(rows)} locais listados, {alerts} abaixo do nível configurado",
        generated_on=today(),
    )


# ---------------------------------------------------------------------------
# Expiring items (central warehouse)
# ---------------------------------------------------------------------------


def expiration_status(days: int, threshold_days: int) -> str:
    if days < 0:
        return "expired"
    if days <= threshold_days:
        return "expiring"
    return "valid"


def expiring_items_report(
    db: Session,
    *,
    threshold_days: int = 30,
    include_expired: bool = True,
    include_expiring: bool = True,
    include_valid: bool = False,
    reference: date | None = None,
) -> list[ExpiringItemRow]:
    reference = reference or today()
    wanted = {
        "expired": include_expired,
        "expiring": include_expiring,
        "valid": include_valid,
    }
    items = db.scalars(select(Item).where(Item.expiration_date.is_not(None)))

    report: list[ExpiringItemRow] = []
    for item in items:
        days = days_until(item.expiration_date, reference)
        status = expiration_status(days, threshold_days)
        if not wanted[status]:
            continue
        report.append(
            ExpiringItemRow(
                item_id=item.id,
                item_name=item.name,
                item_code=item.code,
                expiration_date=item.expiration_date,
                days_until_expiration=days,
                current_quantity_central=item.current_quantity_central,
                status=status,
            )
        )
    report.sort(key=lambda r: r.days_until_expiration)
    return report


# ---------------------------------------------------------------------------
# Consumption history
# ---------------------------------------------------------------------------


def _consumption_row(m: StockMovement) -> ConsumptionRow:
    return ConsumptionRow(
        movement_id=m.id,
        date=m.date,
        type=m.type,
        item_id=m.item_id,
        item_name=m.item_name,
        item_code=m.item_code,
        quantity=m.quantity,
        hospital_name=m.hospital_name,
        unit_name=m.unit_name,
        patient_name=m.patient_name,
        user_display_name=m.user_display_name,
        notes=m.notes,
    )


def _consumption_movements(
    db: Session,
    policy: AccessPolicy,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    item_id: str | None = None,
    hospital_id: str | None = None,
    unit_id: str | None = None,
    patient_id: str | None = None,
) -> list[StockMovement]:
    query = select(StockMovement).where(
        StockMovement.type == MovementType.CONSUMPTION
    )
    if start_date:
        query = query.where(StockMovement.date >= start_date)
    if end_date:
        query = query.where(StockMovement.date <= end_date)
    if item_id:
        query = query.where(StockMovement.item_id == item_id)
    if hospital_id:
        query = query.where(StockMovement.hospital_id == hospital_id)
    if unit_id:
        query = query.where(StockMovement.unit_id == unit_id)
    if patient_id:
        query = query.where(StockMovement.patient_id == patient_id)
    query = query.order_by(StockMovement.date.desc(), StockMovement.created_at.desc())

    return policy.visible_movements(db.scalars(query))


def consumption_history(
    db: Session,
    policy: AccessPolicy,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    item_id: str | None = None,
    hospital_id: str | None = None,
    unit_id: str | None = None,
    patient_id: str | None = None,
) -> list[ConsumptionRow]:
    """Consumption movements, newest first, limited to what the caller may see."""
    movements = _consumption_movements(
        db,
        policy,
        start_date=start_date,
        end_date=end_date,
        item_id=item_id,
        hospital_id=hospital_id,
        unit_id=unit_id,
        patient_id=patient_id,
    )
    return [_consumption_row(m) for m in movements]


def _consumption_location(m: StockMovement) -> tuple[str, str]:
    if m.unit_id:
        return m.unit_name or m.unit_id, m.hospital_name or "Hospital N/A"
    if m.hospital_id:
        return GENERAL_STOCK_LABEL, m.hospital_name or "Hospital N/A"
    return CENTRAL_LOCATION_NAME, "-"


def general_consumption_report(
    db: Session,
    policy: AccessPolicy,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    item_id: str | None = None,
    hospital_id: str | None = None,
    unit_id: str | None = None,
) -> list[GeneralConsumptionRow]:
    """
    Total consumed per (item, unit, hospital) over the visible consumption
    movements, sorted by item name.

    Central-warehouse consumption groups under CENTRAL_LOCATION_NAME and
    primary-care general stock under GENERAL_STOCK_LABEL.
    """
    movements = _consumption_movements(
        db,
        policy,
        start_date=start_date,
        end_date=end_date,
        item_id=item_id,
        hospital_id=hospital_id,
        unit_id=unit_id,
    )

    totals: dict[tuple[str, str | None, str | None], GeneralConsumptionRow] = {}
    for m in movements:
        key = (m.item_id, m.unit_id, m.hospital_id)
        row = totals.get(key)
        if row is None:
            unit_name, hospital_name = _consumption_location(m)
            row = totals[key] = GeneralConsumptionRow(
                item_id=m.item_id,
                item_name=m.item_name,
                item_code=m.item_code,
                hospital_id=m.hospital_id,
                hospital_name=hospital_name,
                unit_id=m.unit_id,
                unit_name=unit_name,
                total_consumed=0,
            )
        row.total_consumed += m.quantity

    return sorted(
        totals.values(),
        key=lambda r: (r.item_name.lower(), r.hospital_name, r.unit_name),
    )


def patient_consumption(
    db: Session, policy: AccessPolicy, patient_id: str
) -> list[ConsumptionRow]:
    patient = db.get(Patient, patient_id)
    if patient is None:
        raise UnknownReference(f"Paciente '{patient_id}' não encontrado.")
    if not policy.visible_patients([patient]):
        raise Unauthorized("Você não tem permissão para ver este paciente.")
    return consumption_history(db, policy, patient_id=patient_id)


def consumption_csv(rows: list[ConsumptionRow]) -> str:
    return write_csv(
        CONSUMPTION_HEADERS,
        (
            (
                r.date.isoformat(),
                r.item_code,
                r.item_name,
                r.quantity,
                r.hospital_name,
                r.unit_name,
                r.patient_name,
                r.user_display_name,
                r.notes,
            )
            for r in rows
        ),
    )


def general_consumption_csv(rows: list[GeneralConsumptionRow]) -> str:
    return write_csv(
        GENERAL_CONSUMPTION_HEADERS,
        (
            (r.item_name, r.item_code, r.unit_name, r.hospital_name, r.total_consumed)
            for r in rows
        ),
    )
