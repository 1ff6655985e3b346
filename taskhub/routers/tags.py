import uuid

from fastapi import APIRouter, status

from taskhub.dependencies import CurrentUser, TagServiceDep
from taskhub.models import MessageResponse, TagAttach, TagCreate, TagResponse, TagUpdate

router = APIRouter(prefix="/tags", tags=["tags"])


@router.post("", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create_tag(tag_data: TagCreate, _: CurrentUser, service: TagServiceDep):
    return await service.create(tag_data)


@router.get("", response_model=list[TagResponse])
async def get_tags(_: CurrentUser, service: TagServiceDep):
    return await service.find_all()


@router.get("/{tag_id}", response_model=TagResponse)
async def get_tag(tag_id: uuid.UUID, _: CurrentUser, service: TagServiceDep):
    return await service.find_one(tag_id)


@router.patch("/{tag_id}", response_model=TagResponse)
async def update_tag(
    tag_id: uuid.UUID, tag_data: TagUpdate, _: CurrentUser, service: TagServiceDep
):
    return await service.update(tag_id, tag_data)


@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tag(tag_id: uuid.UUID, _: CurrentUser, service: TagServiceDep):
    await service.remove(tag_id)


@router.post(
    "/tasks/{task_id}", response_model=MessageResponse, status_code=status.HTTP_201_CREATED
)
async def add_tag_to_task(
    task_id: uuid.UUID, body: TagAttach, user: CurrentUser, service: TagServiceDep
):
    await service.add_tag_to_task(user, task_id, body.tag_id)
    return MessageResponse(message="Tag added to task")


@router.delete("/tasks/{task_id}/{tag_id}", response_model=MessageResponse)
async def remove_tag_from_task(
    task_id: uuid.UUID, tag_id: uuid.UUID, user: CurrentUser, service: TagServiceDep
):
    await service.remove_tag_from_task(user, task_id, tag_id)
    return MessageResponse(message="Tag removed from task")
