import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from taskhub.cache import keys
from taskhub.cache.decorators import async_cached
from taskhub.cache.invalidation import CacheInvalidator
from taskhub.cache.layer import CacheLayer
from taskhub.core.config import Settings
from taskhub.core.errors import ConflictError, NotFoundError
from taskhub.models import Tag, TagCreate, TagResponse, TagUpdate, User
from taskhub.repositories.tags import TagRepository
from taskhub.repositories.tasks import TaskRepository
from taskhub.services.task_service import ensure_can_access

logger = structlog.get_logger(__name__)


class TagService:
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
        self.tags = TagRepository(session)
        self.tasks = TaskRepository(session)

    async def _get(self, tag_id) -> Tag:
        tag = await self.tags.get(tag_id)
        if not tag:
            raise NotFoundError("Tag not found")
        return tag

    async def create(self, tag_data: TagCreate) -> TagResponse:
        if await self.tags.get_by_name(tag_data.name):
            raise ConflictError("A tag with this name already exists")

        tag = await self.tags.create(Tag(**tag_data.model_dump()))
        await self.session.commit()

        await self.invalidator.tags_changed()
        logger.info("tag_created", tag_id=str(tag.id), name=tag.name)
        return TagResponse.model_validate(tag)

    @async_cached(lambda: keys.tag_list_key(), "tag_cache_ttl", scopes=lambda: (keys.TAGS_SCOPE,))
    async def find_all(self) -> list[dict]:
        tags = await self.tags.list_tags()
        return [TagResponse.model_validate(t).model_dump(mode="json") for t in tags]

    @async_cached(keys.tag_key, "tag_cache_ttl", scopes=lambda tag_id: (keys.TAGS_SCOPE,))
    async def find_one(self, tag_id) -> TagResponse:
        return TagResponse.model_validate(await self._get(tag_id))

    async def update(self, tag_id, tag_data: TagUpdate) -> TagResponse:
        tag = await self._get(tag_id)
        patch = tag_data.model_dump(exclude_unset=True)

        new_name = patch.get("name")
        if new_name and new_name != tag.name and await self.tags.get_by_name(new_name):
            raise ConflictError("A tag with this name already exists")

        await self.tags.update(tag, patch)
        await self.session.commit()

        await self.invalidator.tags_changed()
        return TagResponse.model_validate(tag)

    async def remove(self, tag_id):
        tag = await self.tags.get(tag_id, with_tasks=True)
        if not tag:
            raise NotFoundError("Tag not found")

        await self.tags.delete(tag)
        await self.session.commit()

        await self.invalidator.tags_changed()
        logger.info("tag_deleted", tag_id=str(tag_id))

    async def add_tag_to_task(self, user: User, task_id, tag_id):
        tag = await self._get(tag_id)
        task = await self.tasks.get(task_id)
        if not task:
            raise NotFoundError("Task not found")
        ensure_can_access(user, task)

        if any(t.id == tag.id for t in task.tags):
            raise ConflictError("Tag is already attached to this task")

        await self.tasks.attach_tag(task, tag)
        await self.session.commit()

        await self.invalidator.tasks_changed(task.user_id, task.id)

    async def remove_tag_from_task(self, user: User, task_id, tag_id):
        task = await self.tasks.get(task_id)
        if not task:
            raise NotFoundError("Task not found")
        ensure_can_access(user, task)

        tag = next((t for t in task.tags if t.id == tag_id), None)
        if tag is None:
            raise NotFoundError("Tag is not attached to this task")

        await self.tasks.detach_tag(task, tag)
        await self.session.commit()

        await self.invalidator.tasks_changed(task.user_id, task.id)
