import uuid

from fastapi import APIRouter, Depends

from taskhub.dependencies import AdminServiceDep, get_admin_user
from taskhub.models import (
    DeletedUserResponse,
    MessageResponse,
    RoleUpdate,
    TaskWithUserResponse,
    UserDeletedResponse,
    UserResponse,
    UserWithCountResponse,
)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(get_admin_user)])


@router.get("/users", response_model=list[UserWithCountResponse])
async def get_users(service: AdminServiceDep):
    return await service.find_all_users()


@router.get("/tasks", response_model=list[TaskWithUserResponse])
async def get_tasks(service: AdminServiceDep):
    return await service.find_all_tasks()


@router.get("/users/deleted", response_model=list[DeletedUserResponse])
async def get_deleted_users(service: AdminServiceDep):
    return await service.find_deleted_users()


@router.get("/tasks/deleted", response_model=list[TaskWithUserResponse])
async def get_deleted_tasks(service: AdminServiceDep):
    return await service.find_deleted_tasks()


@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def update_user_role(user_id: uuid.UUID, body: RoleUpdate, service: AdminServiceDep):
    return await service.update_user_role(user_id, body.role)


@router.delete("/users/{user_id}", response_model=UserDeletedResponse)
async def delete_user(user_id: uuid.UUID, service: AdminServiceDep):
    """Soft delete a user and cascade to its tasks"""
    return await service.delete_user(user_id)


@router.delete("/tasks/{task_id}", response_model=MessageResponse)
async def delete_task(task_id: uuid.UUID, service: AdminServiceDep):
    return await service.delete_task(task_id)


@router.post("/users/{user_id}/restore", response_model=MessageResponse)
async def restore_user(user_id: uuid.UUID, service: AdminServiceDep):
    return await service.restore_user(user_id)


@router.post("/tasks/{task_id}/restore", response_model=MessageResponse)
async def restore_task(task_id: uuid.UUID, service: AdminServiceDep):
    return await service.restore_task(task_id)


@router.delete("/users/{user_id}/permanent", response_model=MessageResponse)
async def hard_delete_user(user_id: uuid.UUID, service: AdminServiceDep):
    return await service.hard_delete_user(user_id)


@router.delete("/tasks/{task_id}/permanent", response_model=MessageResponse)
async def hard_delete_task(task_id: uuid.UUID, service: AdminServiceDep):
    return await service.hard_delete_task(task_id)


@router.get("/cache/stats")
async def get_cache_stats(service: AdminServiceDep):
    return service.cache_stats()
