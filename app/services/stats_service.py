# app/services/stats_service.py
from datetime import datetime, timezone

from sqlmodel import Session

from app.core.errors import ForbiddenError
from app.models.order import Order
from app.models.user import User
from app.repositories.stats_repo import ACTIVE_EXCLUDED, StatsRepository
from app.repositories.store_repo import StoreRepository
from app.schemas.stats import (
    AdminDashboardStats,
    ClientStats,
    DriverStats,
    LatestOrderSummary,
    StoreOwnerStats,
    TopProduct,
)


def _start_of_today() -> datetime:
    now = datetime.now(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class StatsService:
    """
    Orchestrates aggregated dashboard statistics.
    """

    def __init__(self, repo: StatsRepository, store_repo: StoreRepository):
        self.repo = repo
        self.store_repo = store_repo

    def get_admin_dashboard_stats(
        self,
        session: Session,
        top_n_products: int = 5,
        latest_n_orders: int = 5,
    ) -> AdminDashboardStats:
        today = _start_of_today()

        by_status = self.repo.count_by_status(session)
        total_orders = sum(by_status.values())
        delivered = self.repo.delivered_totals(session)
        delivered_today = self.repo.delivered_totals(session, self.repo.delivered_since(today))
        completed = delivered["count"]

        top_rows = self.repo.top_products(session, limit=top_n_products)
        top_products = [
            TopProduct(
                product_id=product_id,
                name=name,
                total_quantity=int(total_quantity or 0),
                total_revenue=float(product_revenue or 0.0),
            )
            for product_id, name, total_quantity, product_revenue in top_rows
        ]

        latest_orders = [
            LatestOrderSummary(
                id=o.id,
                order_number=o.order_number,
                created_at=o.created_at,
                customer_id=o.customer_id,
                store_id=o.store_id,
                total=o.total,
                status=o.status,
            )
            for o in self.repo.latest_orders(session, limit=latest_n_orders)
        ]

        return AdminDashboardStats(
            today=today.date(),
            total_orders=total_orders,
            completed_orders=completed,
            pending_orders=by_status.get("pending", 0),
            active_orders=sum(
                count for status, count in by_status.items() if status not in ACTIVE_EXCLUDED
            ),
            cancelled_orders=by_status.get("cancelled", 0),
            total_platform_earnings=delivered["platform_earnings"],
            total_commissions=delivered["commission"],
            total_service_fees=delivered["service_fee"],
            total_driver_earnings=delivered["driver_earnings"],
            total_revenue=delivered["revenue"],
            average_order_value=delivered["revenue"] / completed if completed else 0.0,
            average_platform_earning_per_order=(
                delivered["platform_earnings"] / completed if completed else 0.0
            ),
            total_drivers=self.repo.count_users(
                session, User.role == "driver", User.approved == True  # noqa: E712
            ),
            pending_drivers=self.repo.count_users(
                session, User.role == "driver", User.approved == False  # noqa: E712
            ),
            available_drivers=self.repo.count_users(
                session,
                User.role == "driver",
                User.approved == True,  # noqa: E712
                User.available == True,  # noqa: E712
            ),
            total_clients=self.repo.count_users(session, User.role == "client"),
            orders_today=self.repo.count_orders(session, self.repo.created_since(today)),
            earnings_today=delivered_today["platform_earnings"],
            top_products=top_products,
            latest_orders=latest_orders,
        )

    def get_my_stats(
        self,
        session: Session,
        user: User,
    ) -> ClientStats | DriverStats | StoreOwnerStats:
        """
        Per-role personal statistics. Admins use the dashboard instead.
        """
        if user.role == "client":
            by_status = self.repo.count_by_status(session, Order.customer_id == user.id)
            return ClientStats(
                total_orders=sum(by_status.values()),
                total_spent=self.repo.total_spent(session, user.id),
                completed_orders=by_status.get("delivered", 0),
                cancelled_orders=by_status.get("cancelled", 0),
            )

        if user.role == "driver":
            mine = Order.driver_id == user.id
            today = self.repo.delivered_totals(
                session, mine, self.repo.delivered_since(_start_of_today())
            )
            return DriverStats(
                total_deliveries=user.total_deliveries,
                total_earnings=user.total_earnings,
                active_orders=self.repo.count_orders(
                    session, mine, Order.status.not_in(ACTIVE_EXCLUDED)
                ),
                completed_today=today["count"],
                earnings_today=today["driver_earnings"],
            )

        if user.role == "store_owner":
            store_ids = self.store_repo.list_ids_for_owner(session, user.id)
            in_my_stores = Order.store_id.in_(store_ids)
            by_status = self.repo.count_by_status(session, in_my_stores)
            return StoreOwnerStats(
                total_orders=sum(by_status.values()),
                active_orders=sum(
                    count for status, count in by_status.items() if status not in ACTIVE_EXCLUDED
                ),
                completed_orders=by_status.get("delivered", 0),
                cancelled_orders=by_status.get("cancelled", 0),
                gross_sales=self.repo.delivered_totals(session, in_my_stores)["subtotal"],
            )

        raise ForbiddenError(
            "Personal stats are not available for this role",
            allowedRoles=["client", "driver", "store_owner"],
        )
