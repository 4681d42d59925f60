"""
Database handle used by every pipeline phase.

The same ``CatalogStore`` wraps a session that is inside ``transaction()``
(the import write phase) or a plain session (verification, export), so each
phase is written once.
"""
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from coursecatalog.core.database import Base


class CatalogStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, model: Type[Base], ident: Any) -> Optional[Base]:
        return await self.session.get(model, ident)

    async def select_all(self, model: Type[Base], *where, order_by=None) -> List[Base]:
        stmt = select(model)
        if where:
            stmt = stmt.where(*where)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def select_ids(self, model: Type[Base], *where) -> List[str]:
        stmt = select(model.id)
        if where:
            stmt = stmt.where(*where)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def insert(self, model: Type[Base], values: Dict[str, Any]) -> Base:
        row = model(**values)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update(self, model: Type[Base], ident: Any, values: Dict[str, Any]) -> Optional[Base]:
        row = await self.session.get(model, ident)
        if row is None:
            return None
        for key, value in values.items():
            setattr(row, key, value)
        await self.session.flush()
        return row

    async def delete_where(self, model: Type[Base], *where) -> int:
        result = await self.session.execute(
            delete(model).where(*where).execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def count(self, model: Type[Base]) -> int:
        result = await self.session.execute(select(func.count()).select_from(model))
        return int(result.scalar_one())

    async def count_where(self, model: Type[Base], *where) -> int:
        result = await self.session.execute(select(func.count()).select_from(model).where(*where))
        return int(result.scalar_one())
