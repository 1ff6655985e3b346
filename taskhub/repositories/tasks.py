from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.orm import selectinload
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from taskhub.models import Tag, Task, TaskQuery


class TaskRepository:
    """Task rows. Writes are flushed, never committed: the caller owns the unit of work."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _select(with_user: bool = False):
        query = select(Task).options(selectinload(Task.tags))
        if with_user:
            query = query.options(selectinload(Task.user))
        return query

    async def get(self, task_id, include_deleted: bool = False) -> Task | None:
        query = (
            self._select()
            .where(col(Task.id) == task_id)
            .execution_options(populate_existing=True)
        )
        if not include_deleted:
            query = query.where(col(Task.deleted_at).is_(None))
        result = await self.session.exec(query)
        return result.first()

    async def find_by_owner(self, owner_id, query: TaskQuery) -> tuple[list[Task], int]:
        conditions = [col(Task.user_id) == owner_id, col(Task.deleted_at).is_(None)]
        if query.status is not None:
            conditions.append(col(Task.status) == query.status)
        if query.priority is not None:
            conditions.append(col(Task.priority) == query.priority)
        if query.search:
            conditions.append(
                or_(
                    col(Task.title).icontains(query.search, autoescape=True),
                    col(Task.description).icontains(query.search, autoescape=True),
                )
            )

        page_query = (
            self._select()
            .where(*conditions)
            .order_by(col(Task.created_at).desc())
            .offset((query.page - 1) * query.limit)
            .limit(query.limit)
        )
        count_query = select(func.count()).select_from(Task).where(*conditions)

        tasks = (await self.session.exec(page_query)).all()
        total = (await self.session.exec(count_query)).one()
        return list(tasks), total

    async def list_by_owner(self, owner_id, deleted: bool | None = None) -> list[Task]:
        """All tasks of one owner; deleted=None means every state."""
        query = self._select().where(col(Task.user_id) == owner_id)
        if deleted is True:
            query = query.where(col(Task.deleted_at).is_not(None))
        elif deleted is False:
            query = query.where(col(Task.deleted_at).is_(None))
        result = await self.session.exec(query.order_by(col(Task.created_at).desc()))
        return list(result.all())

    async def list_active(self, with_user: bool = False) -> list[Task]:
        query = (
            self._select(with_user=with_user)
            .where(col(Task.deleted_at).is_(None))
            .order_by(col(Task.created_at).desc())
        )
        return list((await self.session.exec(query)).all())

    async def list_deleted(self) -> list[Task]:
        query = (
            self._select(with_user=True)
            .where(col(Task.deleted_at).is_not(None))
            .order_by(col(Task.deleted_at).desc())
        )
        return list((await self.session.exec(query)).all())

    async def create(self, task: Task) -> Task:
        self.session.add(task)
        await self.session.flush()
        return task

    async def update(self, task: Task, patch: dict[str, Any]) -> Task:
        task.sqlmodel_update(patch)
        task.updated_at = datetime.now(timezone.utc)
        self.session.add(task)
        await self.session.flush()
        return task

    async def update_many_by_owner(
        self, owner_id, patch: dict[str, Any], only_active: bool = False
    ) -> int:
        tasks = await self.list_by_owner(owner_id, deleted=False if only_active else None)
        for task in tasks:
            task.sqlmodel_update(patch)
            self.session.add(task)
        await self.session.flush()
        return len(tasks)

    async def delete(self, task: Task):
        await self.session.delete(task)
        await self.session.flush()

    async def attach_tag(self, task: Task, tag: Tag):
        task.tags.append(tag)
        task.updated_at = datetime.now(timezone.utc)
        self.session.add(task)
        await self.session.flush()

    async def detach_tag(self, task: Task, tag: Tag):
        task.tags.remove(tag)
        task.updated_at = datetime.now(timezone.utc)
        self.session.add(task)
        await self.session.flush()
