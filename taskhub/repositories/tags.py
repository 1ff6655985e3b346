from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import selectinload
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from taskhub.models import Tag


class TagRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, tag_id, with_tasks: bool = False) -> Tag | None:
        query = select(Tag).where(col(Tag.id) == tag_id)
        if with_tasks:
            query = query.options(selectinload(Tag.tasks))
        result = await self.session.exec(query)
        return result.first()

    async def get_by_name(self, name: str) -> Tag | None:
        result = await self.session.exec(select(Tag).where(col(Tag.name) == name))
        return result.first()

    async def list_tags(self) -> list[Tag]:
        result = await self.session.exec(select(Tag).order_by(col(Tag.name)))
        return list(result.all())

    async def create(self, tag: Tag) -> Tag:
        self.session.add(tag)
        await self.session.flush()
        return tag

    async def update(self, tag: Tag, patch: dict[str, Any]) -> Tag:
        tag.sqlmodel_update(patch)
        tag.updated_at = datetime.now(timezone.utc)
        self.session.add(tag)
        await self.session.flush()
        return tag

    async def delete(self, tag: Tag):
        """Hard delete; task associations go with it."""
        await self.session.delete(tag)
        await self.session.flush()
