# app/repositories/stats_repo.py
import uuid
from datetime import datetime

from sqlalchemy import func
from sqlmodel import Session, select

from app.models.user import User
from app.models.order import Order, OrderItem

ACTIVE_EXCLUDED = ("delivered", "cancelled")


class StatsRepository:
    """
    Read-only aggregated queries for dashboards.
    """

    # ---- Orders ----

    def count_orders(self, session: Session, *criteria) -> int:
        stmt = select(func.count()).select_from(Order).where(*criteria)
        # SQLModel's Session.exec() -> ScalarResult -> use .one()
        value = session.exec(stmt).one()
        return int(value or 0)

    def count_by_status(self, session: Session, *criteria) -> dict[str, int]:
        stmt = (
            select(Order.status, func.count())
            .where(*criteria)
            .group_by(Order.status)
        )
        return {status: int(count) for status, count in session.exec(stmt).all()}

    def delivered_totals(self, session: Session, *criteria) -> dict[str, float]:
        """
        Money sums over delivered orders matching `criteria`.
        """
        stmt = select(
            func.count(),
            func.coalesce(func.sum(Order.platform_earnings), 0.0),
            func.coalesce(func.sum(Order.commission), 0.0),
            func.coalesce(func.sum(Order.service_fee), 0.0),
            func.coalesce(func.sum(Order.driver_earnings), 0.0),
            func.coalesce(func.sum(Order.total), 0.0),
            func.coalesce(func.sum(Order.subtotal), 0.0),
        ).where(Order.status == "delivered", *criteria)
        count, platform, commission, service, driver, revenue, subtotal = session.exec(stmt).one()
        return {
            "count": int(count or 0),
            "platform_earnings": float(platform or 0.0),
            "commission": float(commission or 0.0),
            "service_fee": float(service or 0.0),
            "driver_earnings": float(driver or 0.0),
            "revenue": float(revenue or 0.0),
            "subtotal": float(subtotal or 0.0),
        }

    def total_spent(self, session: Session, customer_id: uuid.UUID) -> float:
        """Sum of totals of a customer's non-cancelled orders."""
        stmt = select(func.coalesce(func.sum(Order.total), 0.0)).where(
            Order.customer_id == customer_id,
            Order.status != "cancelled",
        )
        return float(session.exec(stmt).one() or 0.0)

    def top_products(
        self,
        session: Session,
        limit: int = 5,
    ) -> list[tuple]:
        """
        Top products by quantity across delivered orders, using the
        line item snapshot (name and price at time of order).
        """
        qty_sum = func.coalesce(func.sum(OrderItem.quantity), 0)
        revenue_sum = func.coalesce(func.sum(OrderItem.line_total), 0.0)

        stmt = (
            select(
                OrderItem.product_id,
                func.max(OrderItem.product_name),
                qty_sum.label("total_quantity"),
                revenue_sum.label("total_revenue"),
            )
            .join(Order, Order.id == OrderItem.order_id)
            .where(Order.status == "delivered")
            .group_by(OrderItem.product_id)
            .order_by(qty_sum.desc())
            .limit(limit)
        )

        return list(session.exec(stmt).all())

    def latest_orders(
        self,
        session: Session,
        limit: int = 5,
    ) -> list[Order]:
        """
        Latest N orders by created_at (any status).
        """
        stmt = (
            select(Order)
            .order_by(Order.created_at.desc())
            .limit(limit)
        )
        return list(session.exec(stmt).all())

    # ---- Users ----

    def count_users(self, session: Session, *criteria) -> int:
        stmt = select(func.count()).select_from(User).where(*criteria)
        value = session.exec(stmt).one()
        return int(value or 0)

    @staticmethod
    def created_since(moment: datetime):
        return Order.created_at >= moment

    @staticmethod
    def delivered_since(moment: datetime):
        return Order.delivered_at >= moment
