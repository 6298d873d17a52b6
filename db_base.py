from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for the asset schema tables.

    Kept free of engine/session imports so Alembic can load the metadata
    without pulling in async drivers.
    """
