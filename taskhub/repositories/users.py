from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from taskhub.models import Task, User


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id) -> User | None:
        return await self.session.get(User, user_id)

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.exec(select(User).where(col(User.email) == email))
        return result.first()

    async def list_users(self, deleted: bool = False) -> list[User]:
        condition = (
            col(User.deleted_at).is_not(None) if deleted else col(User.deleted_at).is_(None)
        )
        result = await self.session.exec(
            select(User).where(condition).order_by(col(User.created_at).desc())
        )
        return list(result.all())

    async def count(self) -> int:
        """Count every user row, soft-deleted ones included."""
        result = await self.session.exec(select(func.count()).select_from(User))
        return result.one()

    async def count_active_tasks(self) -> dict[Any, int]:
        result = await self.session.exec(
            select(Task.user_id, func.count())
            .where(col(Task.deleted_at).is_(None))
            .group_by(col(Task.user_id))
        )
        return {user_id: count for user_id, count in result.all()}

    async def create(self, user: User) -> User:
        self.session.add(user)
        await self.session.flush()
        return user

    async def update(self, user: User, patch: dict[str, Any]) -> User:
        user.sqlmodel_update(patch)
        user.updated_at = datetime.now(timezone.utc)
        self.session.add(user)
        await self.session.flush()
        return user

    async def delete(self, user: User):
        await self.session.delete(user)
        await self.session.flush()
