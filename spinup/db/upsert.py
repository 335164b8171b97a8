"""INSERT ... ON CONFLICT for the dialect the session is bound to.

PostgreSQL in production, SQLite under test; both expose the same
``on_conflict_do_update`` / ``on_conflict_do_nothing`` API.
"""

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(db: AsyncSession, model: Any):
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)
