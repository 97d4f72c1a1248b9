"""Dialect-aware INSERT ... ON CONFLICT DO NOTHING for natural-key materialization."""

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


async def insert_or_skip(
    session: AsyncSession,
    model: type,
    values: dict[str, Any],
    conflict_columns: list[str],
) -> int | None:
    """
    Insert one row unless a row with the same conflict_columns already exists.
    Returns the new primary key, or None when the row already existed.
    """
    dialect = session.get_bind().dialect.name
    insert = sqlite_insert if dialect == "sqlite" else pg_insert
    stmt = (
        insert(model)
        .values(**values)
        .on_conflict_do_nothing(index_elements=conflict_columns)
        .returning(model.id)
    )
    r = await session.execute(stmt)
    return r.scalar_one_or_none()
