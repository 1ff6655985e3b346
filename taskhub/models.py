import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated

from pydantic import EmailStr, StringConstraints, field_validator
from sqlalchemy import Column, DateTime, ForeignKey, Uuid
from sqlmodel import Field, Relationship, SQLModel


def get_utc_now():
    """Helper function to get current UTC time with timezone"""
    return datetime.now(timezone.utc)


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


HEX_COLOR = r"^#(?:[0-9a-fA-F]{3}){1,2}$"
HexColor = Annotated[str, StringConstraints(pattern=HEX_COLOR)]


def _created_at_column():
    return Column(DateTime(timezone=True), nullable=False)


def _nullable_ts_column(index: bool = False):
    return Column(DateTime(timezone=True), nullable=True, index=index)


# ━━━ Tables ━━━


class TaskTagLink(SQLModel, table=True):
    __tablename__ = "task_tags"

    task_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True)
    )
    tag_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True)
    )


class User(SQLModel, table=True):
    """Database model"""

    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    email: str = Field(max_length=255, unique=True, index=True)
    name: str = Field(max_length=100)
    password_hash: str
    role: Role = Field(default=Role.USER)
    created_at: datetime = Field(
        default_factory=get_utc_now, sa_column=_created_at_column()
    )
    updated_at: datetime | None = Field(default=None, sa_column=_nullable_ts_column())
    deleted_at: datetime | None = Field(
        default=None, sa_column=_nullable_ts_column(index=True)
    )

    # tasks are purged explicitly before their user, never nulled out
    tasks: list["Task"] = Relationship(
        back_populates="user", sa_relationship_kwargs={"passive_deletes": "all"}
    )


class Tag(SQLModel, table=True):
    __tablename__ = "tags"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(max_length=50, unique=True, index=True)
    color: str = Field(max_length=7)
    created_at: datetime = Field(
        default_factory=get_utc_now, sa_column=_created_at_column()
    )
    updated_at: datetime | None = Field(default=None, sa_column=_nullable_ts_column())

    tasks: list["Task"] = Relationship(back_populates="tags", link_model=TaskTagLink)


class Task(SQLModel, table=True):
    """Database model"""

    __tablename__ = "tasks"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    title: str = Field(min_length=1, max_length=200, index=True)
    description: str | None = Field(default=None)
    status: TaskStatus = Field(default=TaskStatus.PENDING, index=True)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, index=True)
    due_date: datetime | None = Field(default=None, sa_column=_nullable_ts_column())
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(
        default_factory=get_utc_now, sa_column=_created_at_column()
    )
    updated_at: datetime | None = Field(default=None, sa_column=_nullable_ts_column())
    deleted_at: datetime | None = Field(
        default=None, sa_column=_nullable_ts_column(index=True)
    )

    user: User = Relationship(back_populates="tasks")
    tags: list[Tag] = Relationship(back_populates="tasks", link_model=TaskTagLink)


# ━━━ Request schemas ━━━


class TaskCreate(SQLModel):
    """Schema for creating a task"""

    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: datetime | None = None


class TaskUpdate(SQLModel):
    """Schema for updating a task - all fields optional"""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: datetime | None = None

    @field_validator("title", "status", "priority")
    @classmethod
    def not_null(cls, value):
        # may be omitted, but not cleared
        if value is None:
            raise ValueError("may not be null")
        return value


class TaskQuery(SQLModel):
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    search: str | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)


class TagCreate(SQLModel):
    name: str = Field(min_length=1, max_length=50)
    color: HexColor


class TagUpdate(SQLModel):
    name: str | None = Field(default=None, min_length=1, max_length=50)
    color: HexColor | None = None


class TagAttach(SQLModel):
    tag_id: uuid.UUID


class UserRegister(SQLModel):
    email: EmailStr
    name: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=6, max_length=128)


class UserLogin(SQLModel):
    email: EmailStr
    password: str


class RoleUpdate(SQLModel):
    role: Role


# ━━━ Response schemas ━━━


class TagResponse(SQLModel):
    id: uuid.UUID
    name: str
    color: str
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class UserSummary(SQLModel):
    id: uuid.UUID
    name: str
    email: str

    model_config = {"from_attributes": True}


class UserResponse(UserSummary):
    role: Role
    created_at: datetime
    updated_at: datetime | None = None


class TaskResponse(SQLModel):
    """Schema for task responses"""

    id: uuid.UUID
    title: str
    description: str | None = None
    status: TaskStatus
    priority: TaskPriority
    due_date: datetime | None = None
    user_id: uuid.UUID
    created_at: datetime
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
    tags: list[TagResponse] = []

    model_config = {"from_attributes": True}


class TaskWithUserResponse(TaskResponse):
    user: UserSummary


class DeletedUserResponse(UserResponse):
    deleted_at: datetime | None = None
    tasks: list[TaskResponse] = []


class UserWithCountResponse(UserResponse):
    task_count: int


class Pagination(SQLModel):
    page: int
    limit: int
    total: int
    total_pages: int


class TaskPage(SQLModel):
    tasks: list[TaskResponse]
    pagination: Pagination


class StatsResponse(SQLModel):
    total_tasks: int
    tasks_by_status: dict[str, int]
    tasks_by_priority: dict[str, int]
    overdue_tasks: int
    completion_rate: float


class DashboardStats(StatsResponse):
    admin_stats: StatsResponse | None = None


class TokenResponse(SQLModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class MessageResponse(SQLModel):
    message: str


class UserDeletedResponse(MessageResponse):
    deleted_tasks: int
    can_restore: bool
