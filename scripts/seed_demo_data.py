#!/usr/bin/env python3
# scripts/seed_demo_data.py
"""
Stock demo data seeder + reset.

What gets created:
- 1 hospital and 1 primary-care unit (UBS), each with served units.
- An item catalog across categories (medicines, consumables, equipment),
  some expired or close to expiring so the expiration report has rows.
- Strategic levels / minimums for the central warehouse and every unit.
- Demo profiles, one per role, bound to their locations.
- A few patients registered at the UBS.
- Movement history written through the movement processor
  (entries to central, exits to units, consumptions with patients), so
  every counter matches the ledger.

Demo rows are tagged with DEMO_MARKER in a text field so --reset only
removes what the seeder created.

Run:
  python -m scripts.seed_demo_data --seed
  python -m scripts.seed_demo_data --reset
"""
from __future__ import annotations

import argparse
import logging
import random
from datetime import date, timedelta

from sqlalchemy.orm import Session

from medstock.core.config import get_settings
from medstock.core.database import SessionLocal
from medstock.core.errors import StockError
from medstock.core.logging_config import configure_logging
from medstock.models.hospital import FacilityType, Hospital, ServedUnit
from medstock.models.patient import Patient, PatientSex
from medstock.models.stock import Item, LocationKind, StockConfig, StockMovement
from medstock.models.user import UserProfile, UserRole, UserStatus
from medstock.schemas.stock import MovementCreate
from medstock.services.movement_service import process_movement
from medstock.utils.config_keys import config_key
from medstock.utils.datetime_utils import today

logger = logging.getLogger(__name__)

DEMO_MARKER = "DEMO"
DEMO_SUBJECT_PREFIX = "demo|"

HOSPITAL = {
    "name": "Hospital Municipal Central",
    "address": "Rua das Flores, 100 - Centro",
    "units": [("Enfermaria", "Bloco A"), ("Farmácia Interna", "Térreo"), ("UTI Adulto", "Bloco B")],
}
UBS = {
    "name": "UBS Vila Nova",
    "address": "Av. Brasil, 2500 - Vila Nova",
    "units": [("Sala de Vacinação", "Térreo"), ("Sala de Curativos", "Térreo")],
}

CATALOG = [
    # (code, name, category, unit_of_measure, min_quantity, expires_in_days)
    ("MED-001", "Dipirona 500mg", "Medicamento", "comprimido", 200, 400),
    ("MED-002", "Paracetamol 750mg", "Medicamento", "comprimido", 200, 20),
    ("MED-003", "Amoxicilina 500mg", "Medicamento", "cápsula", 100, -5),
    ("MED-004", "Soro Fisiológico 0,9% 500ml", "Medicamento", "frasco", 80, 180),
    ("MED-005", "Insulina NPH 100UI/ml", "Medicamento", "frasco", 30, 12),
    ("MAT-001", "Luva de Procedimento M", "Material", "caixa", 40, None),
    ("MAT-002", "Seringa 10ml", "Material", "unidade", 300, None),
    ("MAT-003", "Gaze Estéril", "Material", "pacote", 150, 700),
    ("EQP-001", "Termômetro Digital", "Equipamento", "unidade", 5, None),
]

PATIENTS = [
    ("Maria da Silva", "898001160660003", "1980-04-12", PatientSex.FEMININO, "Agente Ana"),
    ("José Pereira", "700000000000005", "1955-11-03", PatientSex.MASCULINO, "Agente Ana"),
    ("Ana Souza", "898001160660011", "1992-07-25", PatientSex.FEMININO, "Agente Carlos"),
    ("Pedro Santos", "700501234567895", "2010-01-30", PatientSex.MASCULINO, "Agente Carlos"),
]


def demo_tag(entity: str) -> str:
    return f"{DEMO_MARKER}|{entity}"


def _get_or_create_hospital(db: Session, definition: dict, facility_type: FacilityType) -> Hospital:
    hospital = db.query(Hospital).filter(Hospital.name == definition["name"]).first()
    if hospital:
        return hospital
    hospital = Hospital(
        name=definition["name"],
        address=f"{definition['address']} [{demo_tag('hospital')}]",
        facility_type=facility_type,
    )
    db.add(hospital)
    db.flush()
    for unit_name, location in definition["units"]:
        db.add(ServedUnit(name=unit_name, location=location, hospital_id=hospital.id))
    db.flush()
    return hospital


def upsert_catalog(db: Session) -> list[Item]:
    out: list[Item] = []
    for code, name, category, uom, min_qty, expires_in in CATALOG:
        item = db.query(Item).filter(Item.code == code).first()
        if item is None:
            item = Item(
                code=code,
                name=name,
                category=category,
                unit_of_measure=uom,
                min_quantity=min_qty,
                current_quantity_central=0,
                supplier=f"Fornecedor Demo [{demo_tag('item')}]",
                expiration_date=today() + timedelta(days=expires_in) if expires_in is not None else None,
            )
            db.add(item)
        out.append(item)
    db.flush()
    return out


def upsert_levels(db: Session, items: list[Item], units: list[ServedUnit], ubs: Hospital) -> None:
    targets = [(LocationKind.CENTRAL, None, None)]
    targets += [(LocationKind.UNIT, u.hospital_id, u.id) for u in units]
    targets.append((LocationKind.GENERAL, ubs.id, None))

    for item in items:
        for kind, hospital_id, unit_id in targets:
            location_id = unit_id if kind == LocationKind.UNIT else hospital_id
            key = config_key(item.id, kind, location_id)
            config = db.get(StockConfig, key)
            if config is None:
                config = StockConfig(
                    id=key,
                    item_id=item.id,
                    location_kind=kind,
                    hospital_id=hospital_id,
                    unit_id=unit_id,
                    current_quantity=0,
                )
                db.add(config)
            scale = 4 if kind == LocationKind.CENTRAL else 1
            config.min_quantity = item.min_quantity * scale // 4
            config.strategic_stock_level = item.min_quantity * scale
    db.flush()


def upsert_profiles(db: Session, hospital: Hospital, ubs: Hospital, unit: ServedUnit) -> dict[str, UserProfile]:
    specs = [
        ("admin", "Administrador Demo", UserRole.ADMIN, None, None),
        ("central", "Operador Almoxarifado", UserRole.CENTRAL_OPERATOR, None, None),
        ("hospital", "Operador Hospital", UserRole.HOSPITAL_OPERATOR, hospital.id, None),
        ("unit", "Operador Enfermaria", UserRole.HOSPITAL_OPERATOR, hospital.id, unit.id),
        ("ubs", "Operador UBS", UserRole.UBS_OPERATOR, ubs.id, None),
    ]
    out: dict[str, UserProfile] = {}
    for username, name, role, hospital_id, unit_id in specs:
        subject = f"{DEMO_SUBJECT_PREFIX}{username}"
        profile = db.get(UserProfile, subject)
        if profile is None:
            profile = UserProfile(id=subject, email=f"{username}@demo.saude.local", name=name)
            db.add(profile)
        profile.role = role
        profile.status = UserStatus.ACTIVE
        profile.associated_hospital_id = hospital_id
        profile.associated_unit_id = unit_id
        out[username] = profile
    db.flush()
    return out


def upsert_patients(db: Session, ubs: Hospital) -> list[Patient]:
    out: list[Patient] = []
    for name, card, birth, sex, agent in PATIENTS:
        patient = (
            db.query(Patient)
            .filter(Patient.sus_card_number == card, Patient.name == name)
            .first()
        )
        if patient is None:
            patient = Patient(
                name=name,
                sus_card_number=card,
                birth_date=date.fromisoformat(birth),
                sex=sex,
                health_agent_name=agent,
                address=f"Rua Demo, {random.randint(1, 999)} [{demo_tag('patient')}]",
                registered_ubs_id=ubs.id,
                registered_ubs_name=ubs.name,
            )
            db.add(patient)
        out.append(patient)
    db.flush()
    return out


def _move(db: Session, actor: UserProfile, **fields) -> None:
    try:
        process_movement(db, MovementCreate(**fields), actor)
    except StockError as exc:
        logger.warning("Demo movement skipped: %s (%s)", exc.message, fields)


def create_movement_history(
    db: Session,
    profiles: dict[str, UserProfile],
    items: list[Item],
    hospital: Hospital,
    ubs: Hospital,
    patients: list[Patient],
    days: int = 60,
) -> None:
    admin = profiles["admin"]
    units = db.query(ServedUnit).filter(ServedUnit.hospital_id.in_([hospital.id, ubs.id])).all()
    start = today() - timedelta(days=days)

    for item in items:
        _move(
            db,
            admin,
            item_id=item.id,
            type="entry",
            quantity=item.min_quantity * 4,
            date=start.isoformat(),
            notes=f"Compra inicial [{demo_tag('movement')}]",
        )

    for offset in range(0, days, 7):
        day = (start + timedelta(days=offset + 1)).isoformat()
        for item in random.sample(items, k=4):
            unit = random.choice(units)
            _move(
                db,
                admin,
                item_id=item.id,
                type="exit",
                quantity=random.randint(5, max(6, item.min_quantity // 4)),
                date=day,
                hospital_id=unit.hospital_id,
                unit_id=unit.id,
                notes=demo_tag("movement"),
            )
            _move(
                db,
                admin,
                item_id=item.id,
                type="exit",
                quantity=random.randint(2, 10),
                date=day,
                hospital_id=ubs.id,
                notes=demo_tag("movement"),
            )

        consume_day = (start + timedelta(days=offset + 3)).isoformat()
        for item in random.sample(items, k=3):
            unit = random.choice(units)
            _move(
                db,
                admin,
                item_id=item.id,
                type="consumption",
                quantity=random.randint(1, 4),
                date=consume_day,
                hospital_id=unit.hospital_id,
                unit_id=unit.id,
                notes=demo_tag("movement"),
            )
            _move(
                db,
                profiles["ubs"],
                item_id=item.id,
                type="consumption",
                quantity=1,
                date=consume_day,
                hospital_id=ubs.id,
                patient_id=random.choice(patients).id,
                notes=demo_tag("movement"),
            )


def seed(db: Session) -> None:
    hospital = _get_or_create_hospital(db, HOSPITAL, FacilityType.HOSPITAL)
    ubs = _get_or_create_hospital(db, UBS, FacilityType.PRIMARY_CARE)
    units = db.query(ServedUnit).filter(ServedUnit.hospital_id.in_([hospital.id, ubs.id])).all()
    ward = next(u for u in units if u.hospital_id == hospital.id)

    items = upsert_catalog(db)
    upsert_levels(db, items, units, ubs)
    profiles = upsert_profiles(db, hospital, ubs, ward)
    patients = upsert_patients(db, ubs)
    db.commit()
    print(f"Catalog: {len(items)} items, {len(units)} units, {len(patients)} patients")

    already = (
        db.query(StockMovement)
        .filter(StockMovement.user_id.like(f"{DEMO_SUBJECT_PREFIX}%"))
        .count()
    )
    if already:
        print(f"Movement history exists ({already} rows), skipping.")
        return

    create_movement_history(db, profiles, items, hospital, ubs, patients)
    print("Movement history created.")


def reset(db: Session) -> None:
    marker = f"%{DEMO_MARKER}|%"
    items = db.query(Item).filter(Item.supplier.like(marker)).all()
    item_ids = [i.id for i in items]
    hospitals = db.query(Hospital).filter(Hospital.address.like(marker)).all()
    hospital_ids = [h.id for h in hospitals]

    deleted = {
        "movements": db.query(StockMovement)
        .filter(StockMovement.item_id.in_(item_ids))
        .delete(synchronize_session=False),
        "configs": db.query(StockConfig)
        .filter(StockConfig.item_id.in_(item_ids))
        .delete(synchronize_session=False),
        "patients": db.query(Patient)
        .filter(Patient.address.like(marker))
        .delete(synchronize_session=False),
        "profiles": db.query(UserProfile)
        .filter(UserProfile.id.like(f"{DEMO_SUBJECT_PREFIX}%"))
        .delete(synchronize_session=False),
        "units": db.query(ServedUnit)
        .filter(ServedUnit.hospital_id.in_(hospital_ids))
        .delete(synchronize_session=False),
    }
    deleted["items"] = (
        db.query(Item).filter(Item.id.in_(item_ids)).delete(synchronize_session=False)
    )
    deleted["hospitals"] = (
        db.query(Hospital).filter(Hospital.id.in_(hospital_ids)).delete(synchronize_session=False)
    )
    db.commit()
    print(f"Reset done: {deleted}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed / reset stock demo data")
    parser.add_argument("--seed", action="store_true", help="Seed demo locations, catalog and history")
    parser.add_argument("--reset", action="store_true", help="Delete demo data only")
    args = parser.parse_args()

    if not (args.seed or args.reset):
        parser.print_help()
        raise SystemExit(1)

    configure_logging(get_settings().log_level)

    db: Session = SessionLocal()
    try:
        if args.reset:
            reset(db)
        if args.seed:
            seed(db)
    except Exception:
        db.rollback()
        logger.exception("Seed failed")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
