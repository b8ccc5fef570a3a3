"""
Store access helpers shared by the services.

Everything here is a single statement the database executes atomically:
lookups, conditional inserts guarded by unique constraints, counter
increments, partial updates and bulk deletes.
"""

import logging

from typing import Any, Optional, Tuple, Type, TypeVar

from sqlalchemy import delete, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from core.exceptions import InternalError, NotFoundError
from core.models import utc_now

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)

_INSERT_BUILDERS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


async def get_or_404(
    session: AsyncSession, model: Type[ModelT], entity_id: str, entity: Optional[str] = None
) -> ModelT:
    record = await session.get(model, entity_id)
    if record is None:
        raise NotFoundError(entity or model.__name__, entity_id)
    return record


async def insert_if_absent(session: AsyncSession, record: SQLModel) -> Tuple[bool, SQLModel]:
    """
    INSERT ... ON CONFLICT DO NOTHING for one record.

    Returns (inserted, record). `inserted` is False when a row with the same
    unique key already exists; the store decides, not a prior read.
    """
    dialect = session.get_bind().dialect.name
    try:
        insert_builder = _INSERT_BUILDERS[dialect]
    except KeyError:
        logger.error(f"Conditional insert requested on unsupported dialect {dialect}")
        raise InternalError(f"Conditional insert is not supported on {dialect}")

    values = record.model_dump(exclude_none=True)
    statement = insert_builder(type(record).__table__).values(**values).on_conflict_do_nothing()
    result = await session.execute(statement)
    return result.rowcount == 1, record


async def increment(
    session: AsyncSession, model: Type[SQLModel], entity_id: str, column: str, amount: int = 1
) -> int:
    """Atomic `column = column + amount`; returns the number of rows touched"""
    target = getattr(model, column)
    result = await session.execute(
        update(model)
        .where(model.id == entity_id)
        .values({column: target + amount})
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def apply_changes(session: AsyncSession, record: SQLModel, **changes: Any) -> SQLModel:
    """Partial field replace; None values are left untouched"""
    changed = False
    for field, value in changes.items():
        if value is not None:
            setattr(record, field, value)
            changed = True
    if changed and hasattr(record, "updated_at"):
        record.updated_at = utc_now()
    session.add(record)
    return record


async def delete_where(session: AsyncSession, model: Type[SQLModel], *criteria) -> int:
    result = await session.execute(
        delete(model).where(*criteria).execution_options(synchronize_session=False)
    )
    return result.rowcount
