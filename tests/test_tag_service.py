import uuid

import pytest

from taskhub.core.errors import ConflictError, ForbiddenError, NotFoundError
from taskhub.models import Tag, TagCreate, TagUpdate, TaskQuery
from taskhub.services.tag_service import TagService
from taskhub.services.task_service import TaskService
from conftest import create_task


@pytest.fixture
def tags(session, cache, invalidator, settings):
    return TagService(session, cache, invalidator, settings)


@pytest.fixture
def task_service(session, cache, invalidator, settings):
    return TaskService(session, cache, invalidator, settings)


async def test_create_rejects_duplicate_names(tags):
    await tags.create(TagCreate(name="work", color="#00ff00"))

    with pytest.raises(ConflictError):
        await tags.create(TagCreate(name="work", color="#123"))


async def test_listing_is_sorted_and_refreshed_after_create(tags):
    await tags.create(TagCreate(name="zeta", color="#000000"))
    assert [t["name"] for t in await tags.find_all()] == ["zeta"]

    await tags.create(TagCreate(name="alpha", color="#ffffff"))

    assert [t["name"] for t in await tags.find_all()] == ["alpha", "zeta"]


async def test_rename_conflicts_with_other_tag(tags):
    home = await tags.create(TagCreate(name="home", color="#111111"))
    await tags.create(TagCreate(name="work", color="#222222"))

    with pytest.raises(ConflictError):
        await tags.update(home.id, TagUpdate(name="work"))

    # keeping its own name is not a clash
    updated = await tags.update(home.id, TagUpdate(name="home", color="#333333"))
    assert updated.color == "#333333"


async def test_find_one_reflects_update(tags):
    tag = await tags.create(TagCreate(name="home", color="#111111"))
    assert (await tags.find_one(tag.id))["name"] == "home"

    await tags.update(tag.id, TagUpdate(name="house"))

    assert (await tags.find_one(tag.id))["name"] == "house"


async def test_unknown_tag(tags):
    with pytest.raises(NotFoundError):
        await tags.find_one(uuid.uuid4())
    with pytest.raises(NotFoundError):
        await tags.remove(uuid.uuid4())


async def test_attach_and_detach(session, tags, task_service, user):
    task = await create_task(session, user)
    tag = await tags.create(TagCreate(name="urgent", color="#ff0000"))

    await tags.add_tag_to_task(user, task.id, tag.id)
    found = await task_service.find_one(user, task.id)
    assert [t["name"] for t in found["tags"]] == ["urgent"]

    with pytest.raises(ConflictError):
        await tags.add_tag_to_task(user, task.id, tag.id)

    await tags.remove_tag_from_task(user, task.id, tag.id)
    assert (await task_service.find_one(user, task.id))["tags"] == []

    with pytest.raises(NotFoundError):
        await tags.remove_tag_from_task(user, task.id, tag.id)


async def test_attach_requires_task_access(session, tags, user, other_user):
    task = await create_task(session, user)
    tag = await tags.create(TagCreate(name="urgent", color="#ff0000"))

    with pytest.raises(ForbiddenError):
        await tags.add_tag_to_task(other_user, task.id, tag.id)
    with pytest.raises(NotFoundError):
        await tags.add_tag_to_task(user, uuid.uuid4(), tag.id)
    with pytest.raises(NotFoundError):
        await tags.add_tag_to_task(user, task.id, uuid.uuid4())


async def test_tag_changes_refresh_cached_task_listings(session, tags, task_service, user):
    tag = Tag(name="errand", color="#abcdef")
    await create_task(session, user, tags=[tag])
    page = await task_service.find_all(user, TaskQuery())
    assert page["tasks"][0]["tags"][0]["name"] == "errand"

    await tags.update(tag.id, TagUpdate(name="chore"))

    page = await task_service.find_all(user, TaskQuery())
    assert page["tasks"][0]["tags"][0]["name"] == "chore"


async def test_removing_a_tag_detaches_it_from_tasks(session, tags, task_service, user):
    tag = Tag(name="errand", color="#abcdef")
    task = await create_task(session, user, tags=[tag])

    await tags.remove(tag.id)

    assert (await task_service.find_one(user, task.id))["tags"] == []
    assert await tags.find_all() == []
