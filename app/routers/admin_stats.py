# app/routers/admin_stats.py
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from app.core.auth import require_admin
from app.database import get_session
from app.repositories.stats_repo import StatsRepository
from app.repositories.store_repo import StoreRepository
from app.schemas.stats import AdminDashboardStats
from app.services.stats_service import StatsService

router = APIRouter(prefix="/admin/stats", tags=["Admin Stats"])

repo = StatsRepository()
service = StatsService(repo, StoreRepository())


@router.get(
    "",
    response_model=AdminDashboardStats,
    dependencies=[Depends(require_admin)],
)
def get_admin_dashboard_stats(
    top_products: int = Query(5, ge=1, le=50),
    latest_orders: int = Query(5, ge=1, le=50),
    session: Session = Depends(get_session),
):
    """
    Aggregated statistics for the admin dashboard.

    Query params (optional):
      - top_products: how many best sellers to list, defaults to 5
      - latest_orders: how many recent orders to list, defaults to 5

    Money totals only count delivered orders.
    Only accessible to users with role='admin'.
    """
    return service.get_admin_dashboard_stats(
        session=session,
        top_n_products=top_products,
        latest_n_orders=latest_orders,
    )
