"""Helpers for building the database URL from its components"""
from sqlalchemy.engine import URL


def get_database_url(
    driver: str,
    host: str | None,
    port: int | None,
    user: str | None,
    password: str | None,
    name: str | None,
) -> str:
    """
    Build an SQLAlchemy URL; credentials are escaped.

    For SQLite drivers only ``name`` is used, as the database file path.

    Example:
        >>> get_database_url("postgresql+asyncpg", "db", 5432, "inventory", "p@ss", "assets")
        'postgresql+asyncpg://inventory:p%40ss@db:5432/assets'
    """
    if driver.startswith("sqlite"):
        return URL.create(driver, database=name).render_as_string(hide_password=False)
    url = URL.create(
        driver,
        username=user,
        password=password,
        host=host,
        port=port,
        database=name,
    )
    return url.render_as_string(hide_password=False)
