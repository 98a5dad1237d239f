# medstock/models/__init__.py
from medstock.models.hospital import FacilityType, Hospital, ServedUnit
from medstock.models.patient import Patient, PatientSex
from medstock.models.stock import Item, LocationKind, MovementType, StockConfig, StockMovement
from medstock.models.user import UserProfile, UserRole, UserStatus

__all__ = [
    "FacilityType",
    "Hospital",
    "ServedUnit",
    "Patient",
    "PatientSex",
    "Item",
    "LocationKind",
    "MovementType",
    "StockConfig",
    "StockMovement",
    "UserProfile",
    "UserRole",
    "UserStatus",
]
