import math
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable

from sqlmodel.ext.asyncio.session import AsyncSession

from taskhub.cache import keys
from taskhub.cache.decorators import async_cached
from taskhub.cache.layer import CacheLayer
from taskhub.core.config import Settings
from taskhub.models import DashboardStats, Role, StatsResponse, Task, TaskPriority, TaskStatus, User
from taskhub.repositories.tasks import TaskRepository

CLOSED_STATUSES = {TaskStatus.COMPLETED, TaskStatus.CANCELLED}


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back naive; they are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def calculate_stats(tasks: Iterable[Task], now: datetime | None = None) -> StatsResponse:
    """
    Summarize tasks for the dashboard.

    A task is overdue when it has a due date strictly before ``now`` and is
    neither completed nor cancelled. The completion rate is a percentage
    rounded half up to one decimal place, 0 when there are no tasks.
    """
    now = _as_utc(now or datetime.now(timezone.utc))
    tasks = list(tasks)

    by_status = Counter(TaskStatus(t.status) for t in tasks)
    by_priority = Counter(TaskPriority(t.priority) for t in tasks)
    overdue = sum(
        1
        for t in tasks
        if t.due_date is not None
        and _as_utc(t.due_date) < now
        and TaskStatus(t.status) not in CLOSED_STATUSES
    )

    total = len(tasks)
    completion_rate = (
        # halves round up, not to even
        math.floor(by_status[TaskStatus.COMPLETED] / total * 1000 + 0.5) / 10 if total else 0
    )

    return StatsResponse(
        total_tasks=total,
        tasks_by_status={s.value: by_status[s] for s in TaskStatus},
        tasks_by_priority={p.value: by_priority[p] for p in TaskPriority},
        overdue_tasks=overdue,
        completion_rate=completion_rate,
    )


class StatsService:
    def __init__(self, session: AsyncSession, cache: CacheLayer, settings: Settings):
        self.cache = cache
        self.settings = settings
        self.enable_cache = settings.enable_cache
        self.tasks = TaskRepository(session)

    @async_cached(
        lambda user: keys.stats_key(user.id, user.role),
        "stats_cache_ttl",
        scopes=lambda user: (
            keys.owner_scope(user.id),
            *((keys.ADMIN_STATS_SCOPE,) if user.role == Role.ADMIN else ()),
        ),
    )
    async def get_dashboard_stats(self, user: User) -> DashboardStats:
        user_stats = calculate_stats(await self.tasks.list_by_owner(user.id, deleted=False))

        admin_stats = None
        if user.role == Role.ADMIN:
            admin_stats = calculate_stats(await self.tasks.list_active())

        return DashboardStats(**user_stats.model_dump(), admin_stats=admin_stats)
