import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from taskhub.cache.invalidation import CacheInvalidator
from taskhub.cache.layer import CacheLayer
from taskhub.core.errors import ConflictError, NotFoundError
from taskhub.models import (
    DeletedUserResponse,
    MessageResponse,
    Role,
    TaskWithUserResponse,
    UserDeletedResponse,
    UserResponse,
    UserWithCountResponse,
)
from taskhub.repositories.tasks import TaskRepository
from taskhub.repositories.users import UserRepository
from taskhub.services.soft_delete import SoftDeleteService

logger = structlog.get_logger(__name__)


class AdminService:
    """System-wide oversight. Callers are already verified admins."""

    def __init__(self, session: AsyncSession, cache: CacheLayer, invalidator: CacheInvalidator):
        self.session = session
        self.cache = cache
        self.invalidator = invalidator
        self.users = UserRepository(session)
        self.tasks = TaskRepository(session)
        self.lifecycle = SoftDeleteService(session)

    async def find_all_users(self) -> list[UserWithCountResponse]:
        users = await self.users.list_users()
        counts = await self.users.count_active_tasks()
        return [
            UserWithCountResponse(
                **UserResponse.model_validate(user).model_dump(),
                task_count=counts.get(user.id, 0),
            )
            for user in users
        ]

    async def find_all_tasks(self) -> list[TaskWithUserResponse]:
        tasks = await self.tasks.list_active(with_user=True)
        return [TaskWithUserResponse.model_validate(t) for t in tasks]

    async def update_user_role(self, user_id, role: Role) -> UserResponse:
        user = await self.users.get(user_id)
        if not user:
            raise NotFoundError("User not found")
        if user.role == role:
            raise ConflictError(f"User already has role {role.value}")

        await self.users.update(user, {"role": role})
        await self.session.commit()

        # cached stats are keyed by role
        await self.invalidator.user_changed(user.id)
        logger.info("user_role_updated", user_id=str(user_id), role=role.value)
        return UserResponse.model_validate(user)

    async def delete_user(self, user_id) -> UserDeletedResponse:
        cascaded = await self.lifecycle.soft_delete_user(user_id)
        await self.invalidator.user_changed(user_id)
        return UserDeletedResponse(
            message="User deleted (soft delete)",
            deleted_tasks=cascaded,
            can_restore=True,
        )

    async def delete_task(self, task_id) -> MessageResponse:
        task = await self.lifecycle.soft_delete_task(task_id)
        await self.invalidator.tasks_changed(task.user_id, task.id)
        return MessageResponse(message="Task deleted (soft delete)")

    async def find_deleted_users(self) -> list[DeletedUserResponse]:
        return await self.lifecycle.find_deleted_users()

    async def find_deleted_tasks(self) -> list[TaskWithUserResponse]:
        return await self.lifecycle.find_deleted_tasks()

    async def restore_user(self, user_id) -> MessageResponse:
        await self.lifecycle.restore_user(user_id)
        await self.invalidator.user_changed(user_id)
        return MessageResponse(message="User restored")

    async def restore_task(self, task_id) -> MessageResponse:
        task = await self.lifecycle.restore_task(task_id)
        await self.invalidator.tasks_changed(task.user_id, task.id)
        return MessageResponse(message="Task restored")

    async def hard_delete_user(self, user_id) -> MessageResponse:
        await self.lifecycle.hard_delete_user(user_id)
        await self.invalidator.user_changed(user_id)
        return MessageResponse(message="User permanently deleted")

    async def hard_delete_task(self, task_id) -> MessageResponse:
        task = await self.tasks.get(task_id, include_deleted=True)
        if not task:
            raise NotFoundError("Task not found")
        owner_id = task.user_id

        await self.lifecycle.hard_delete_task(task_id)
        await self.invalidator.tasks_changed(owner_id, task_id)
        return MessageResponse(message="Task permanently deleted")

    def cache_stats(self) -> dict:
        return self.cache.get_stats()
