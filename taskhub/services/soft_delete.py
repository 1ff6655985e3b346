"""
Soft-delete lifecycle for users and tasks.

Every entity is ACTIVE (deleted_at is null), DELETED (deleted_at set) or
PURGED (row gone). Transitions:

    ACTIVE  --soft delete--> DELETED
    DELETED --restore------> ACTIVE
    ACTIVE | DELETED --hard delete--> PURGED

Entity-state preconditions (the row exists, it is in the right state) are
enforced here so every caller gets the same errors. Who may trigger a
transition (ownership, admin role) is the calling service's business.

User-level transitions cascade to the user's tasks. Both writes happen in the
caller's session and are committed together.
"""

from collections import defaultdict
from datetime import datetime, timezone

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from taskhub.core.errors import InvalidTransitionError, NotFoundError
from taskhub.models import (
    DeletedUserResponse,
    Task,
    TaskResponse,
    TaskWithUserResponse,
    User,
    UserResponse,
)
from taskhub.repositories.tasks import TaskRepository
from taskhub.repositories.users import UserRepository

logger = structlog.get_logger(__name__)


class SoftDeleteService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.tasks = TaskRepository(session)
        self.users = UserRepository(session)

    async def _get_user(self, user_id) -> User:
        user = await self.users.get(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def _get_task(self, task_id) -> Task:
        task = await self.tasks.get(task_id, include_deleted=True)
        if not task:
            raise NotFoundError("Task not found")
        return task

    async def soft_delete_user(self, user_id) -> int:
        """Soft delete a user and every active task it owns. Returns the cascaded task count."""
        user = await self._get_user(user_id)
        if user.deleted_at is not None:
            raise InvalidTransitionError("User is already deleted")

        now = datetime.now(timezone.utc)
        cascaded = await self.tasks.update_many_by_owner(
            user_id, {"deleted_at": now}, only_active=True
        )
        await self.users.update(user, {"deleted_at": now})
        await self.session.commit()

        logger.info("user_soft_deleted", user_id=str(user_id), cascaded_tasks=cascaded)
        return cascaded

    async def soft_delete_task(self, task_id) -> Task:
        task = await self._get_task(task_id)
        if task.deleted_at is not None:
            raise InvalidTransitionError("Task is already deleted")

        await self.tasks.update(task, {"deleted_at": datetime.now(timezone.utc)})
        await self.session.commit()

        logger.info("task_soft_deleted", task_id=str(task_id))
        return task

    async def restore_user(self, user_id) -> int:
        """
        Restore a user and all of its tasks.

        The restore is blanket: tasks deleted individually before the user was
        deleted come back too.
        """
        user = await self._get_user(user_id)
        if user.deleted_at is None:
            raise InvalidTransitionError("User is not deleted")

        restored = await self.tasks.update_many_by_owner(user_id, {"deleted_at": None})
        await self.users.update(user, {"deleted_at": None})
        await self.session.commit()

        logger.info("user_restored", user_id=str(user_id), restored_tasks=restored)
        return restored

    async def restore_task(self, task_id) -> Task:
        task = await self._get_task(task_id)
        if task.deleted_at is None:
            raise InvalidTransitionError("Task is not deleted")

        await self.tasks.update(task, {"deleted_at": None})
        await self.session.commit()

        logger.info("task_restored", task_id=str(task_id))
        return task

    async def hard_delete_user(self, user_id) -> int:
        """Permanently delete a user and all of its tasks, whatever their state."""
        user = await self._get_user(user_id)

        tasks = await self.tasks.list_by_owner(user_id)
        for task in tasks:
            await self.tasks.delete(task)
        await self.users.delete(user)
        await self.session.commit()

        logger.info("user_hard_deleted", user_id=str(user_id), purged_tasks=len(tasks))
        return len(tasks)

    async def hard_delete_task(self, task_id):
        task = await self._get_task(task_id)

        await self.tasks.delete(task)
        await self.session.commit()

        logger.info("task_hard_deleted", task_id=str(task_id))

    async def find_deleted_users(self) -> list[DeletedUserResponse]:
        """Deleted users, each with its deleted tasks."""
        users = await self.users.list_users(deleted=True)

        deleted_tasks = defaultdict(list)
        for task in await self.tasks.list_deleted():
            deleted_tasks[task.user_id].append(TaskResponse.model_validate(task))

        return [
            DeletedUserResponse(
                **UserResponse.model_validate(user).model_dump(),
                deleted_at=user.deleted_at,
                tasks=deleted_tasks.get(user.id, []),
            )
            for user in users
        ]

    async def find_deleted_tasks(self) -> list[TaskWithUserResponse]:
        """Deleted tasks with their owner and tags."""
        tasks = await self.tasks.list_deleted()
        return [TaskWithUserResponse.model_validate(task) for task in tasks]
