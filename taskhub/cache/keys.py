"""Cache key builders and reverse-index scopes shared by reads and invalidation."""

from taskhub.models import Role, TaskPriority, TaskStatus

TASK_LIST_PREFIX = "tasks:"
TASK_PREFIX = "task:"
TAG_LIST_PREFIX = "tags:"
TAG_PREFIX = "tag:"
STATS_PREFIX = "stats:"

# Reverse-index scopes
ALL_TASKS_SCOPE = "tasks"
TAGS_SCOPE = "tags"
ADMIN_STATS_SCOPE = "admin-stats"


def _enum_or_all(value: TaskStatus | TaskPriority | None) -> str:
    return value.value if value is not None else "all"


def task_list_key(
    user_id,
    page: int,
    limit: int,
    status: TaskStatus | None = None,
    priority: TaskPriority | None = None,
    search: str | None = None,
) -> str:
    return (
        f"tasks:user:{user_id}:page:{page}:limit:{limit}"
        f":status:{_enum_or_all(status)}:priority:{_enum_or_all(priority)}"
        f":search:{search or 'none'}"
    )


def task_key(task_id, user_id) -> str:
    return f"task:{task_id}:user:{user_id}"


def tag_list_key() -> str:
    return "tags:all"


def tag_key(tag_id) -> str:
    return f"tag:{tag_id}"


def stats_key(user_id, role: Role) -> str:
    return f"stats:user:{user_id}:role:{role.value}"


def owner_scope(user_id) -> str:
    return f"owner:{user_id}"


def task_scope(task_id) -> str:
    return f"task:{task_id}"
