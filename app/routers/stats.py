# app/routers/stats.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_auth
from app.database import get_session
from app.models.user import User
from app.repositories.stats_repo import StatsRepository
from app.repositories.store_repo import StoreRepository
from app.schemas.stats import ClientStats, DriverStats, StoreOwnerStats
from app.services.stats_service import StatsService

router = APIRouter(prefix="/stats", tags=["Stats"])

service = StatsService(StatsRepository(), StoreRepository())


@router.get("/me", response_model=DriverStats | StoreOwnerStats | ClientStats)
def get_my_stats(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Personal statistics for the caller's role (client, driver, store owner).
    """
    return service.get_my_stats(session, current_user)
