"""Tests for the user/task soft-delete lifecycle."""

import uuid
from datetime import datetime, timezone

import pytest
from sqlmodel import select

from taskhub.core.errors import InvalidTransitionError, NotFoundError
from taskhub.models import Tag, TaskTagLink
from taskhub.repositories.tasks import TaskRepository
from taskhub.repositories.users import UserRepository
from taskhub.services.soft_delete import SoftDeleteService
from conftest import create_task


@pytest.fixture
def lifecycle(session):
    return SoftDeleteService(session)


async def test_soft_delete_user_cascades_to_active_tasks(session, lifecycle, user, other_user):
    first = await create_task(session, user, title="First")
    second = await create_task(session, user, title="Second")
    already_gone = await create_task(
        session, user, title="Old", deleted_at=datetime(2024, 1, 1, tzinfo=timezone.utc)
    )
    unrelated = await create_task(session, other_user, title="Bob's")

    cascaded = await lifecycle.soft_delete_user(user.id)

    assert cascaded == 2
    deleted = await lifecycle.find_deleted_tasks()
    assert {t.id for t in deleted} == {first.id, second.id, already_gone.id}
    assert all(t.deleted_at is not None for t in deleted)
    assert unrelated.id not in {t.id for t in deleted}
    assert user.deleted_at is not None


async def test_soft_delete_user_twice_is_rejected(lifecycle, user):
    await lifecycle.soft_delete_user(user.id)

    with pytest.raises(InvalidTransitionError):
        await lifecycle.soft_delete_user(user.id)


async def test_soft_delete_missing_user(lifecycle):
    with pytest.raises(NotFoundError):
        await lifecycle.soft_delete_user(uuid.uuid4())


async def test_restore_user_brings_back_every_task(session, lifecycle, user):
    task = await create_task(session, user, title="Cascaded")
    earlier = await create_task(session, user, title="Deleted on its own")
    await lifecycle.soft_delete_task(earlier.id)
    await lifecycle.soft_delete_user(user.id)

    restored = await lifecycle.restore_user(user.id)

    assert restored == 2
    tasks = await TaskRepository(session).list_by_owner(user.id)
    assert {t.id for t in tasks} == {task.id, earlier.id}
    assert all(t.deleted_at is None for t in tasks)
    assert user.id not in {u.id for u in await lifecycle.find_deleted_users()}


async def test_restore_active_user_is_rejected(lifecycle, user):
    with pytest.raises(InvalidTransitionError):
        await lifecycle.restore_user(user.id)


async def test_find_deleted_users_lists_their_deleted_tasks(session, lifecycle, user, other_user):
    task = await create_task(session, user)
    await create_task(session, other_user)
    await lifecycle.soft_delete_user(user.id)

    deleted_users = await lifecycle.find_deleted_users()

    assert [u.id for u in deleted_users] == [user.id]
    assert deleted_users[0].deleted_at is not None
    assert [t.id for t in deleted_users[0].tasks] == [task.id]


async def test_soft_delete_and_restore_task(session, lifecycle, user):
    task = await create_task(session, user)

    await lifecycle.soft_delete_task(task.id)
    assert await TaskRepository(session).get(task.id) is None

    deleted = await lifecycle.find_deleted_tasks()
    assert [t.id for t in deleted] == [task.id]
    assert deleted[0].user.id == user.id

    restored = await lifecycle.restore_task(task.id)
    assert restored.deleted_at is None
    assert await lifecycle.find_deleted_tasks() == []


async def test_task_transition_preconditions(session, lifecycle, user):
    task = await create_task(session, user)

    with pytest.raises(InvalidTransitionError):
        await lifecycle.restore_task(task.id)

    await lifecycle.soft_delete_task(task.id)
    with pytest.raises(InvalidTransitionError):
        await lifecycle.soft_delete_task(task.id)

    with pytest.raises(NotFoundError):
        await lifecycle.restore_task(uuid.uuid4())


async def test_hard_delete_task_is_irreversible(session, lifecycle, user):
    task = await create_task(session, user)
    await lifecycle.soft_delete_task(task.id)

    await lifecycle.hard_delete_task(task.id)

    assert await TaskRepository(session).get(task.id, include_deleted=True) is None
    with pytest.raises(NotFoundError):
        await lifecycle.restore_task(task.id)
    with pytest.raises(NotFoundError):
        await lifecycle.hard_delete_task(task.id)


async def test_hard_delete_user_purges_tasks_in_any_state(session, lifecycle, user):
    tag = Tag(name="urgent", color="#ff0000")
    active = await create_task(session, user, tags=[tag])
    deleted = await create_task(
        session, user, deleted_at=datetime(2024, 1, 1, tzinfo=timezone.utc)
    )

    purged = await lifecycle.hard_delete_user(user.id)

    assert purged == 2
    tasks = TaskRepository(session)
    assert await tasks.get(active.id, include_deleted=True) is None
    assert await tasks.get(deleted.id, include_deleted=True) is None
    assert await UserRepository(session).get(user.id) is None
    links = (await session.exec(select(TaskTagLink))).all()
    assert links == []
    with pytest.raises(NotFoundError):
        await lifecycle.restore_user(user.id)


async def test_hard_delete_works_on_deleted_user(lifecycle, user):
    await lifecycle.soft_delete_user(user.id)

    await lifecycle.hard_delete_user(user.id)

    assert await lifecycle.find_deleted_users() == []
