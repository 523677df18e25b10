"""Schema installation for the PostgreSQL adapters."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine
from structlog import get_logger

logger = get_logger()

SCHEMA_PATH = Path(__file__).with_name("schema.sql")


def load_schema() -> str:
    return SCHEMA_PATH.read_text(encoding="utf-8")


async def apply_schema(engine: AsyncEngine) -> None:
    """Create tables, indexes and the immutability trigger if missing.

    The script holds several statements and plpgsql bodies, so it is run
    through the driver's simple-query path rather than as one prepared
    statement.
    """
    async with engine.connect() as conn:
        raw = await conn.get_raw_connection()
        await raw.driver_connection.execute(load_schema())
    logger.bind(component="database_bootstrap").info("database_schema_applied")
