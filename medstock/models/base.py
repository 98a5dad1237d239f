# medstock/models/base.py
import uuid

from sqlalchemy.orm import DeclarativeBase


def new_id() -> str:
    """Store-generated id: UUID4 rendered as text."""
    return str(uuid.uuid4())


def enum_values(enum_cls) -> list[str]:
    """Persist enum *values* (``"admin"``), not member names (``"ADMIN"``)."""
    return [member.value for member in enum_cls]


class Base(DeclarativeBase):
    """
    Base class for all ORM models.

    Every collection of the stock store (items, hospitals, served units,
    patients, stock configs, stock movements, user profiles) is a table
    deriving from this class.
    """

    pass
