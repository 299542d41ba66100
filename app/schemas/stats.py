# app/schemas/stats.py
import uuid
from datetime import date, datetime

from pydantic import ConfigDict
from sqlmodel import SQLModel

from app.schemas.order import OrderStatus


class TopProduct(SQLModel):
    """
    Aggregated stats for top-selling products (delivered orders only).
    """
    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    name: str
    total_quantity: int
    total_revenue: float


class LatestOrderSummary(SQLModel):
    """
    Lightweight info for last N orders.
    """
    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID
    order_number: int
    created_at: datetime
    customer_id: uuid.UUID
    store_id: uuid.UUID
    total: float
    status: OrderStatus


class AdminDashboardStats(SQLModel):
    """
    Full payload for admin dashboard.

    Money totals only count delivered orders: platform earnings are
    realized on delivery.
    """
    model_config = ConfigDict(extra="forbid")

    today: date

    total_orders: int
    completed_orders: int
    pending_orders: int
    active_orders: int
    cancelled_orders: int

    total_platform_earnings: float
    total_commissions: float
    total_service_fees: float
    total_driver_earnings: float
    total_revenue: float
    average_order_value: float
    average_platform_earning_per_order: float

    total_drivers: int
    pending_drivers: int
    available_drivers: int
    total_clients: int

    orders_today: int
    earnings_today: float

    top_products: list[TopProduct]
    latest_orders: list[LatestOrderSummary]


class ClientStats(SQLModel):
    model_config = ConfigDict(extra="forbid")

    total_orders: int
    total_spent: float
    completed_orders: int
    cancelled_orders: int


class DriverStats(SQLModel):
    model_config = ConfigDict(extra="forbid")

    total_deliveries: int
    total_earnings: float
    active_orders: int
    completed_today: int
    earnings_today: float


class StoreOwnerStats(SQLModel):
    model_config = ConfigDict(extra="forbid")

    total_orders: int
    active_orders: int
    completed_orders: int
    cancelled_orders: int
    # Sum of subtotals of delivered orders, before commission
    gross_sales: float
