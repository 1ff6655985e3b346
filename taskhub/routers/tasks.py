import uuid

from fastapi import APIRouter, Query, status

from taskhub.dependencies import CurrentUser, TaskServiceDep
from taskhub.models import (
    TaskCreate,
    TaskPage,
    TaskPriority,
    TaskQuery,
    TaskResponse,
    TaskStatus,
    TaskUpdate,
)

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(task_data: TaskCreate, user: CurrentUser, service: TaskServiceDep):
    """Create a new task"""
    return await service.create(user, task_data)


@router.get("", response_model=TaskPage)
async def get_tasks(
    user: CurrentUser,
    service: TaskServiceDep,
    status: TaskStatus | None = None,
    priority: TaskPriority | None = None,
    search: str | None = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
):
    query = TaskQuery(status=status, priority=priority, search=search, page=page, limit=limit)
    return await service.find_all(user, query)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: uuid.UUID, user: CurrentUser, service: TaskServiceDep):
    """Get a specific task by ID"""
    return await service.find_one(user, task_id)


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: uuid.UUID, task_data: TaskUpdate, user: CurrentUser, service: TaskServiceDep
):
    return await service.update(user, task_id, task_data)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: uuid.UUID, user: CurrentUser, service: TaskServiceDep):
    """Soft delete a task"""
    await service.remove(user, task_id)


@router.post("/{task_id}/restore", response_model=TaskResponse)
async def restore_task(task_id: uuid.UUID, user: CurrentUser, service: TaskServiceDep):
    return await service.restore(user, task_id)
