"""Idempotent application of the payment status schema.

Both steps only ever create what is missing, so applying the schema to a
database that already has it is a no-op. Database errors (permissions, an
unsupported extension, an incompatible object with the same name) are not
caught here: they abort the surrounding transaction and reach the caller as
raised by the driver.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from sqlalchemy import text
from sqlalchemy.dialects import postgresql
from sqlalchemy.engine import Connection, Dialect
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.schema import CreateIndex, CreateTable

from .models import Base, PaymentEvent, WebSocketConnection

_LOGGER = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./payment_status_service.db"

UUID_EXTENSION = "uuid-ossp"
CREATE_UUID_EXTENSION = f'CREATE EXTENSION IF NOT EXISTS "{UUID_EXTENSION}"'

# Creation order: each table is followed by its indexes.
SCHEMA_TABLES = (WebSocketConnection.__table__, PaymentEvent.__table__)


def ensure_extension(connection: Connection) -> bool:
    """Make server-side UUID generation available. Returns True if a statement ran."""

    if connection.dialect.name != "postgresql":
        _LOGGER.debug("Dialect %s needs no UUID extension", connection.dialect.name)
        return False
    connection.execute(text(CREATE_UUID_EXTENSION))
    return True


def ensure_tables(connection: Connection) -> None:
    """Create each table and its named indexes when absent."""

    Base.metadata.create_all(connection, tables=list(SCHEMA_TABLES), checkfirst=True)


def _apply(connection: Connection) -> None:
    ensure_extension(connection)
    ensure_tables(connection)


async def apply_schema(engine: AsyncEngine) -> None:
    """Run both Ensure steps inside one transaction."""

    _LOGGER.info("Applying payment status schema to %s", engine.url.render_as_string(hide_password=True))
    async with engine.begin() as conn:
        await conn.run_sync(_apply)
    _LOGGER.info("Payment status schema is in place")


def iter_ddl(dialect: Dialect | None = None) -> Iterator[str]:
    """Yield the DDL statements for the given dialect (PostgreSQL by default)."""

    dialect = dialect or postgresql.dialect()
    if dialect.name == "postgresql":
        yield CREATE_UUID_EXTENSION
    for table in SCHEMA_TABLES:
        yield str(CreateTable(table, if_not_exists=True).compile(dialect=dialect)).strip()
        for index in sorted(table.indexes, key=lambda idx: idx.name or ""):
            yield str(CreateIndex(index, if_not_exists=True).compile(dialect=dialect)).strip()
