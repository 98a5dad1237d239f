"""
Pytest fixtures for the stock backend test suite.

Provides:
- an in-memory SQLite database per test (schema created from the models)
- a Session and a FastAPI TestClient sharing that database
- small factories for hospitals, units, items, profiles and patients
- bearer-token headers for a given profile

Environment variables are set before any medstock import because settings,
engine and token helpers are created at import time.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("IDENTITY_SECRET_KEY", "test-secret")

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from medstock import models  # noqa: F401  registers every table
from medstock.core.database import get_db
from medstock.core.security import create_access_token
from medstock.main import app
from medstock.models.base import Base
from medstock.models.hospital import FacilityType, Hospital, ServedUnit
from medstock.models.patient import Patient
from medstock.models.stock import Item
from medstock.models.user import UserProfile, UserRole, UserStatus


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; let
    # SQLAlchemy emit BEGIN itself.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine) -> Generator[Session, None, None]:
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
    session = factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_hospital(db: Session):
    def _make(name: str = "Hospital Central", primary_care: bool = False) -> Hospital:
        hospital = Hospital(
            name=name,
            address="Rua Principal, 1",
            facility_type=FacilityType.PRIMARY_CARE if primary_care else FacilityType.HOSPITAL,
        )
        db.add(hospital)
        db.commit()
        return hospital

    return _make


@pytest.fixture
def make_unit(db: Session):
    def _make(hospital: Hospital, name: str = "Enfermaria", location: str = "Bloco A") -> ServedUnit:
        unit = ServedUnit(name=name, location=location, hospital_id=hospital.id)
        db.add(unit)
        db.commit()
        return unit

    return _make


@pytest.fixture
def make_item(db: Session):
    def _make(
        code: str = "MED-001",
        name: str = "Dipirona 500mg",
        central: int = 0,
        min_quantity: int = 0,
        expiration_date=None,
    ) -> Item:
        item = Item(
            code=code,
            name=name,
            category="Medicamento",
            unit_of_measure="comprimido",
            min_quantity=min_quantity,
            current_quantity_central=central,
            expiration_date=expiration_date,
        )
        db.add(item)
        db.commit()
        return item

    return _make


@pytest.fixture
def make_profile(db: Session):
    def _make(
        subject: str = "admin-1",
        role: UserRole = UserRole.ADMIN,
        hospital: Hospital | None = None,
        unit: ServedUnit | None = None,
        status: UserStatus = UserStatus.ACTIVE,
        name: str = "Usuário Teste",
    ) -> UserProfile:
        profile = UserProfile(
            id=subject,
            name=name,
            email=f"{subject}@saude.local",
            role=role,
            status=status,
            associated_hospital_id=hospital.id if hospital else None,
            associated_unit_id=unit.id if unit else None,
        )
        db.add(profile)
        db.commit()
        return profile

    return _make


@pytest.fixture
def make_patient(db: Session):
    def _make(
        name: str = "Maria da Silva",
        card: str = "898001160660003",
        ubs: Hospital | None = None,
    ) -> Patient:
        patient = Patient(
            name=name,
            sus_card_number=card,
            registered_ubs_id=ubs.id if ubs else None,
            registered_ubs_name=ubs.name if ubs else None,
        )
        db.add(patient)
        db.commit()
        return patient

    return _make


@pytest.fixture
def auth_headers():
    def _headers(profile_or_subject, email: str | None = None) -> dict[str, str]:
        subject = getattr(profile_or_subject, "id", profile_or_subject)
        email = email or getattr(profile_or_subject, "email", None)
        token = create_access_token(subject, email=email)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def admin(make_profile) -> UserProfile:
    return make_profile("admin-1", UserRole.ADMIN, name="Administradora")
