import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlmodel.ext.asyncio.session import AsyncSession
from typing_extensions import Annotated

from taskhub.cache.invalidation import CacheInvalidator
from taskhub.cache.layer import CacheLayer, get_cache
from taskhub.core.config import SettingsDep
from taskhub.core.security import decode_access_token
from taskhub.database import get_db
from taskhub.models import Role, User
from taskhub.repositories.users import UserRepository
from taskhub.services.admin_service import AdminService
from taskhub.services.auth_service import AuthService
from taskhub.services.stats_service import StatsService
from taskhub.services.tag_service import TagService
from taskhub.services.task_service import TaskService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

DbDep = Annotated[AsyncSession, Depends(get_db)]
CacheDep = Annotated[CacheLayer, Depends(get_cache)]


async def get_current_user(
    db: DbDep, settings: SettingsDep, token: str = Depends(oauth2_scheme)
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    payload = decode_access_token(token, settings)
    if payload is None or payload.get("sub") is None:
        raise credentials_exception
    try:
        user_id = uuid.UUID(payload["sub"])
    except ValueError:
        raise credentials_exception

    user = await UserRepository(db).get(user_id)
    # soft-deleted accounts keep their row but lose access
    if user is None or user.deleted_at is not None:
        raise credentials_exception
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


async def get_admin_user(user: CurrentUser) -> User:
    if user.role != Role.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required",
        )
    return user


AdminUser = Annotated[User, Depends(get_admin_user)]


def get_invalidator(cache: CacheDep, settings: SettingsDep) -> CacheInvalidator:
    return CacheInvalidator(cache, settings)


InvalidatorDep = Annotated[CacheInvalidator, Depends(get_invalidator)]


def get_task_service(
    db: DbDep, cache: CacheDep, invalidator: InvalidatorDep, settings: SettingsDep
) -> TaskService:
    return TaskService(db, cache, invalidator, settings)


def get_tag_service(
    db: DbDep, cache: CacheDep, invalidator: InvalidatorDep, settings: SettingsDep
) -> TagService:
    return TagService(db, cache, invalidator, settings)


def get_stats_service(db: DbDep, cache: CacheDep, settings: SettingsDep) -> StatsService:
    return StatsService(db, cache, settings)


def get_admin_service(
    db: DbDep, cache: CacheDep, invalidator: InvalidatorDep
) -> AdminService:
    return AdminService(db, cache, invalidator)


def get_auth_service(db: DbDep, settings: SettingsDep) -> AuthService:
    return AuthService(db, settings)


TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]
TagServiceDep = Annotated[TagService, Depends(get_tag_service)]
StatsServiceDep = Annotated[StatsService, Depends(get_stats_service)]
AdminServiceDep = Annotated[AdminService, Depends(get_admin_service)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
