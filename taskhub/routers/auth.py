from fastapi import APIRouter, status

from taskhub.dependencies import AuthServiceDep, CurrentUser
from taskhub.models import TokenResponse, UserLogin, UserRegister, UserResponse

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(data: UserRegister, service: AuthServiceDep):
    return await service.register(data)


@router.post("/login", response_model=TokenResponse)
async def login(data: UserLogin, service: AuthServiceDep):
    return await service.login(data)


@router.get("/me", response_model=UserResponse)
async def me(user: CurrentUser):
    return user
