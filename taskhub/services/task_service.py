import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from taskhub.cache import keys
from taskhub.cache.decorators import async_cached
from taskhub.cache.invalidation import CacheInvalidator
from taskhub.cache.layer import CacheLayer
from taskhub.core.config import Settings
from taskhub.core.errors import ForbiddenError, InvalidTransitionError, NotFoundError
from taskhub.models import (
    Pagination,
    Role,
    Task,
    TaskCreate,
    TaskPage,
    TaskQuery,
    TaskResponse,
    TaskUpdate,
    User,
)
from taskhub.repositories.tasks import TaskRepository
from taskhub.services.soft_delete import SoftDeleteService

logger = structlog.get_logger(__name__)


def ensure_can_access(user: User, task: Task):
    if task.user_id != user.id and user.role != Role.ADMIN:
        raise ForbiddenError("You do not have permission to access this task")


class TaskService:
    def __init__(
        self,
        session: AsyncSession,
        cache: CacheLayer,
        invalidator: CacheInvalidator,
        settings: Settings,
    ):
        self.session = session
        self.cache = cache
        self.invalidator = invalidator
        self.settings = settings
        self.enable_cache = settings.enable_cache
        self.tasks = TaskRepository(session)
        self.lifecycle = SoftDeleteService(session)

    async def create(self, user: User, task_data: TaskCreate) -> TaskResponse:
        task = Task(**task_data.model_dump(), user_id=user.id)
        await self.tasks.create(task)
        await self.session.commit()

        task = await self.tasks.get(task.id)
        await self.invalidator.tasks_changed(user.id, task.id)
        logger.info("task_created", task_id=str(task.id), user_id=str(user.id))
        return TaskResponse.model_validate(task)

    @async_cached(
        lambda user, query: keys.task_list_key(
            user.id, query.page, query.limit, query.status, query.priority, query.search
        ),
        "task_cache_ttl",
        scopes=lambda user, query: (keys.owner_scope(user.id), keys.ALL_TASKS_SCOPE),
    )
    async def find_all(self, user: User, query: TaskQuery) -> TaskPage:
        tasks, total = await self.tasks.find_by_owner(user.id, query)
        return TaskPage(
            tasks=[TaskResponse.model_validate(t) for t in tasks],
            pagination=Pagination(
                page=query.page,
                limit=query.limit,
                total=total,
                total_pages=-(-total // query.limit),
            ),
        )

    async def _get_accessible(self, user: User, task_id) -> Task:
        task = await self.tasks.get(task_id)
        if not task:
            raise NotFoundError("Task not found")
        ensure_can_access(user, task)
        return task

    @async_cached(
        lambda user, task_id: keys.task_key(task_id, user.id),
        "task_cache_ttl",
        scopes=lambda user, task_id: (
            keys.owner_scope(user.id),
            keys.task_scope(task_id),
            keys.ALL_TASKS_SCOPE,
        ),
    )
    async def find_one(self, user: User, task_id) -> TaskResponse:
        task = await self._get_accessible(user, task_id)
        return TaskResponse.model_validate(task)

    async def update(self, user: User, task_id, task_data: TaskUpdate) -> TaskResponse:
        task = await self._get_accessible(user, task_id)

        await self.tasks.update(task, task_data.model_dump(exclude_unset=True))
        await self.session.commit()

        await self.invalidator.tasks_changed(task.user_id, task.id)
        logger.info("task_updated", task_id=str(task.id), user_id=str(user.id))
        return TaskResponse.model_validate(task)

    async def remove(self, user: User, task_id):
        """User-initiated delete: a soft delete the owner or an admin can undo."""
        task = await self._get_accessible(user, task_id)

        await self.lifecycle.soft_delete_task(task.id)
        await self.invalidator.tasks_changed(task.user_id, task.id)

    async def restore(self, user: User, task_id) -> TaskResponse:
        task = await self.tasks.get(task_id, include_deleted=True)
        if not task:
            raise NotFoundError("Task not found")
        ensure_can_access(user, task)
        if task.deleted_at is None:
            raise InvalidTransitionError("Task is not deleted")

        task = await self.lifecycle.restore_task(task.id)
        await self.invalidator.tasks_changed(task.user_id, task.id)
        return TaskResponse.model_validate(task)
