from fastapi import APIRouter

from taskhub.dependencies import CurrentUser, StatsServiceDep
from taskhub.models import DashboardStats

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/dashboard", response_model=DashboardStats)
async def get_dashboard_stats(user: CurrentUser, service: StatsServiceDep):
    """Task statistics for the caller; admins also get system-wide figures."""
    return await service.get_dashboard_stats(user)
