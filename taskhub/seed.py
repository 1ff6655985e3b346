"""Load demo data into the database: ``python -m taskhub.seed``.

Existing users, tasks and tags are wiped first.
"""

import asyncio
from datetime import timedelta

import structlog
from sqlalchemy import delete
from sqlmodel.ext.asyncio.session import AsyncSession

from taskhub.core.config import get_settings
from taskhub.core.logging import setup_logging
from taskhub.core.security import hash_password
from taskhub.database import async_session, create_db_and_tables
from taskhub.models import (
    Role,
    Tag,
    Task,
    TaskPriority,
    TaskStatus,
    TaskTagLink,
    User,
    get_utc_now,
)

logger = structlog.get_logger(__name__)

DEFAULT_PASSWORD = "password123"

ADMIN = ("admin@example.com", "Administrator")
USERS = [
    ("john@example.com", "John Smith"),
    ("mary@example.com", "Mary Johnson"),
    ("peter@example.com", "Peter Brown"),
    ("anna@example.com", "Anna Davis"),
]
TAGS = [
    ("Urgent", "#FF0000"),
    ("Important", "#FFA500"),
    ("Development", "#008000"),
    ("Bug", "#800080"),
    ("Feature", "#0000FF"),
]

# title, description, status, priority, due in days, tag names
TASK_TEMPLATES = [
    (
        "Implement login flow",
        "Wire the sign-in form to the auth API",
        TaskStatus.PENDING,
        TaskPriority.MEDIUM,
        7,
        ("Urgent", "Development"),
    ),
    (
        "Fix pagination bug",
        "Last page repeats items from the previous one",
        TaskStatus.IN_PROGRESS,
        TaskPriority.HIGH,
        3,
        ("Bug", "Important"),
    ),
    (
        "Write release notes",
        "Summarize the changes shipped this sprint",
        TaskStatus.COMPLETED,
        TaskPriority.LOW,
        -1,
        ("Feature",),
    ),
    (
        "Review pull requests",
        "Go through the open reviews",
        TaskStatus.PENDING,
        TaskPriority.MEDIUM,
        5,
        (),
    ),
    (
        "Plan team offsite",
        "Postponed until next quarter",
        TaskStatus.CANCELLED,
        TaskPriority.LOW,
        10,
        (),
    ),
]


async def clear(session: AsyncSession) -> None:
    for model in (TaskTagLink, Task, Tag, User):
        await session.execute(delete(model))


async def seed(session: AsyncSession, password: str = DEFAULT_PASSWORD) -> dict[str, int]:
    """Replace all data with a demo admin, four users with five tasks each, and five tags."""
    await clear(session)

    password_hash = hash_password(password)
    now = get_utc_now()

    admin = User(email=ADMIN[0], name=ADMIN[1], password_hash=password_hash, role=Role.ADMIN)
    users = [User(email=email, name=name, password_hash=password_hash) for email, name in USERS]
    tags = {name: Tag(name=name, color=color) for name, color in TAGS}
    session.add(admin)
    session.add_all(users)
    session.add_all(tags.values())

    tasks = []
    for user in users:
        for title, description, status, priority, due_in, tag_names in TASK_TEMPLATES:
            tasks.append(
                Task(
                    title=title,
                    description=description,
                    status=status,
                    priority=priority,
                    due_date=now + timedelta(days=due_in),
                    user_id=user.id,
                    tags=[tags[name] for name in tag_names],
                )
            )
    session.add_all(tasks)
    await session.commit()

    summary = {"users": len(users) + 1, "tags": len(tags), "tasks": len(tasks)}
    logger.info("Database seeded", **summary)
    return summary


async def main() -> None:
    setup_logging(get_settings())
    await create_db_and_tables()
    async with async_session() as session:
        await seed(session)


if __name__ == "__main__":
    asyncio.run(main())
