"""
Upsert-by-owner primitive.

Presence and route caching both keep at most one row per participant.
Instead of every caller deciding "patch or insert", they go through
upsert_by_owner(), which issues a single INSERT ... ON CONFLICT DO UPDATE
against the owner key's unique constraint. Concurrent writers for the same
owner therefore can never create a second row; the last writer wins.
"""

from typing import Any, Dict, Optional, Type

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def _insert_for(db: AsyncSession, table):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"upsert_by_owner is not supported on dialect '{dialect}'")


async def upsert_by_owner(
    db: AsyncSession,
    model: Type,
    owner_column: str,
    owner_value: Any,
    values: Dict[str, Any],
    insert_only: Optional[Dict[str, Any]] = None,
):
    """
    Insert or update the single row owned by ``owner_value``.

    Args:
        db: Database session (caller commits)
        model: ORM model whose table has a unique constraint on owner_column
        owner_column: Name of the owner key column
        owner_value: Owner key value
        values: Columns written on both insert and update
        insert_only: Extra columns written only when the row is created

    Returns:
        The current ORM row for the owner, refreshed from the database.
    """
    table = model.__table__
    row_values = {owner_column: owner_value, **(insert_only or {}), **values}

    stmt = _insert_for(db, table).values(**row_values)
    update_set = {
        key: stmt.excluded[key]
        for key in values
        if key != owner_column
    }
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c[owner_column]],
        set_=update_set,
    )
    await db.execute(stmt)

    result = await db.execute(
        select(model)
        .where(getattr(model, owner_column) == owner_value)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()
