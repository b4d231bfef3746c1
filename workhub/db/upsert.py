"""
Dialect-aware INSERT constructs.

PostgreSQL and SQLite both support ``INSERT ... ON CONFLICT``, but SQLAlchemy
exposes it through dialect-specific ``insert`` functions.
"""

from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel.ext.asyncio.session import AsyncSession

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def dialect_insert(session: AsyncSession, table):
    """Return an ``insert(table)`` that supports ``on_conflict_*`` for the session's dialect."""
    dialect = session.get_bind().dialect.name
    try:
        insert = _INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"Upserts are not supported on {dialect}") from None
    return insert(table)
