import structlog

from taskhub.cache import keys
from taskhub.cache.layer import CacheLayer
from taskhub.core.config import Settings

logger = structlog.get_logger(__name__)


class CacheInvalidator:
    """
    Drops cached reads made stale by a mutation.

    ``pattern`` deletes whole key families by prefix (every owner's task
    listings go on any task change). ``index`` deletes only the keys the
    cache layer registered under the affected scopes.

    Invalidation never raises: the mutation has already been committed, so
    failures are logged and the stale entries age out at their TTL.
    """

    def __init__(self, cache: CacheLayer, settings: Settings):
        self.cache = cache
        self.enabled = settings.enable_cache
        self.strategy = settings.cache_invalidation

    async def tasks_changed(self, owner_id, task_id=None):
        await self._invalidate(
            patterns=(keys.TASK_LIST_PREFIX, keys.TASK_PREFIX, keys.STATS_PREFIX),
            scopes=(
                keys.owner_scope(owner_id),
                keys.ADMIN_STATS_SCOPE,
                *((keys.task_scope(task_id),) if task_id is not None else ()),
            ),
            reason="tasks_changed",
        )

    async def user_changed(self, user_id):
        # cascades touch every task of the user, including ones other
        # users (admins) have cached single reads of
        await self._invalidate(
            patterns=(keys.TASK_LIST_PREFIX, keys.TASK_PREFIX, keys.STATS_PREFIX),
            scopes=(
                keys.owner_scope(user_id),
                keys.ALL_TASKS_SCOPE,
                keys.ADMIN_STATS_SCOPE,
            ),
            reason="user_changed",
        )

    async def tags_changed(self):
        # task payloads embed their tags
        await self._invalidate(
            patterns=(
                keys.TAG_LIST_PREFIX,
                keys.TAG_PREFIX,
                keys.TASK_LIST_PREFIX,
                keys.TASK_PREFIX,
            ),
            scopes=(keys.TAGS_SCOPE, keys.ALL_TASKS_SCOPE),
            reason="tags_changed",
        )

    async def _invalidate(self, patterns, scopes, reason: str):
        if not self.enabled:
            return

        try:
            deleted = 0
            if self.strategy == "pattern":
                for prefix in patterns:
                    deleted += await self.cache.delete_pattern(f"{prefix}*")
            else:
                for scope in scopes:
                    deleted += await self.cache.delete_scope(scope)
            logger.debug(
                "Cache invalidated", reason=reason, strategy=self.strategy, deleted=deleted
            )
        except Exception as e:
            logger.warning(
                "Cache invalidation failed", reason=reason, error=str(e), exc_info=True
            )
