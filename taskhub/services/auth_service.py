import structlog
from fastapi import HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession

from taskhub.core.config import Settings
from taskhub.core.errors import ConflictError
from taskhub.core.security import create_access_token, hash_password, verify_password
from taskhub.models import Role, TokenResponse, User, UserLogin, UserRegister, UserResponse
from taskhub.repositories.users import UserRepository

logger = structlog.get_logger(__name__)


class AuthService:
    def __init__(self, session: AsyncSession, settings: Settings):
        self.session = session
        self.settings = settings
        self.users = UserRepository(session)

    def _token_for(self, user: User) -> TokenResponse:
        access_token = create_access_token(
            {"sub": str(user.id), "email": user.email, "role": user.role.value},
            self.settings,
        )
        return TokenResponse(access_token=access_token, user=UserResponse.model_validate(user))

    async def register(self, data: UserRegister) -> TokenResponse:
        if await self.users.get_by_email(data.email):
            logger.warning("auth_register_failed", email=data.email, reason="email_taken")
            raise ConflictError("Email is already in use")

        # one-time bootstrap: the very first account administers the system
        is_first_user = await self.users.count() == 0
        user = User(
            email=data.email,
            name=data.name,
            password_hash=hash_password(data.password),
            role=Role.ADMIN if is_first_user else Role.USER,
        )
        await self.users.create(user)
        await self.session.commit()

        logger.info(
            "user_registered", user_id=str(user.id), role=user.role.value, first_user=is_first_user
        )
        return self._token_for(user)

    async def login(self, data: UserLogin) -> TokenResponse:
        user = await self.users.get_by_email(data.email)
        if (
            not user
            or user.deleted_at is not None
            or not verify_password(data.password, user.password_hash)
        ):
            logger.warning("auth_login_failed", email=data.email)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )

        logger.info("user_login", user_id=str(user.id))
        return self._token_for(user)
