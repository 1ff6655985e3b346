from datetime import datetime, timezone

import pytest

from taskhub.cache import keys
from taskhub.cache.invalidation import CacheInvalidator
from taskhub.cache.layer import CacheLayer
from taskhub.models import Role, Task, TaskPriority, TaskStatus
from taskhub.services.stats_service import StatsService, calculate_stats
from conftest import create_task, make_settings

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def make_task(status, due=None, priority=TaskPriority.MEDIUM):
    return Task(title="t", status=status, priority=priority, due_date=due, user_id=None)


def test_calculate_stats_counts_buckets_and_overdue():
    tasks = [
        make_task(TaskStatus.PENDING, datetime(2020, 1, 1, tzinfo=timezone.utc)),
        make_task(TaskStatus.COMPLETED, datetime(2023, 1, 1, tzinfo=timezone.utc)),
        make_task(TaskStatus.IN_PROGRESS, datetime(2025, 12, 31, tzinfo=timezone.utc)),
    ]

    stats = calculate_stats(tasks, now=NOW)

    assert stats.total_tasks == 3
    assert stats.tasks_by_status == {
        "PENDING": 1,
        "IN_PROGRESS": 1,
        "COMPLETED": 1,
        "CANCELLED": 0,
    }
    assert stats.tasks_by_priority == {"LOW": 0, "MEDIUM": 3, "HIGH": 0, "URGENT": 0}
    assert stats.overdue_tasks == 1
    assert stats.completion_rate == 33.3


def test_calculate_stats_empty():
    stats = calculate_stats([], now=NOW)

    assert stats.total_tasks == 0
    assert stats.completion_rate == 0
    assert stats.overdue_tasks == 0
    assert set(stats.tasks_by_status.values()) == {0}


def test_completion_rate_rounds_halves_up():
    tasks = [make_task(TaskStatus.COMPLETED)] + [make_task(TaskStatus.PENDING)] * 15

    # 1 of 16 is 6.25%
    assert calculate_stats(tasks, now=NOW).completion_rate == 6.3


def test_cancelled_and_undated_tasks_are_never_overdue():
    tasks = [
        make_task(TaskStatus.CANCELLED, datetime(2020, 1, 1, tzinfo=timezone.utc)),
        make_task(TaskStatus.PENDING),
        # naive timestamps are read as UTC
        make_task(TaskStatus.PENDING, datetime(2024, 5, 31)),
    ]

    assert calculate_stats(tasks, now=NOW).overdue_tasks == 1


async def test_dashboard_only_counts_own_active_tasks(session, cache, settings, user, other_user):
    await create_task(session, user, status=TaskStatus.COMPLETED)
    await create_task(session, user, deleted_at=NOW)
    await create_task(session, other_user)

    stats = await StatsService(session, cache, settings).get_dashboard_stats(user)

    assert stats["total_tasks"] == 1
    assert stats["completion_rate"] == 100.0
    assert stats["admin_stats"] is None


async def test_admin_dashboard_includes_system_wide_stats(
    session, cache, settings, user, other_user, admin
):
    await create_task(session, user, priority=TaskPriority.URGENT)
    await create_task(session, other_user)
    await create_task(session, other_user, deleted_at=NOW)

    stats = await StatsService(session, cache, settings).get_dashboard_stats(admin)

    assert stats["total_tasks"] == 0
    assert stats["admin_stats"]["total_tasks"] == 2
    assert stats["admin_stats"]["tasks_by_priority"]["URGENT"] == 1


@pytest.mark.parametrize("strategy", ["pattern", "index"])
async def test_admin_stats_invalidated_by_any_owner_change(
    session, user, admin, strategy
):
    settings = make_settings(cache_invalidation=strategy)
    cache = CacheLayer(settings)
    service = StatsService(session, cache, settings)
    await service.get_dashboard_stats(admin)
    assert await cache.get(keys.stats_key(admin.id, Role.ADMIN)) is not None

    await create_task(session, user)
    await CacheInvalidator(cache, settings).tasks_changed(user.id)

    stats = await service.get_dashboard_stats(admin)
    assert stats["admin_stats"]["total_tasks"] == 1
