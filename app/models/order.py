# app/models/order.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Order(SQLModel, table=True):
    """
    Marketplace order.

    Financials are computed once at creation:
      total = subtotal + delivery_fee + service_fee
      commission = subtotal * COMMISSION_RATE

    driver_earnings is filled on driver assignment and
    platform_earnings (commission + service_fee) on delivery.

    `version` is bumped by every status change / assignment and used as
    a compare-and-set guard, so two actors racing on a stale status
    cannot both apply their side effects.
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_number: int = Field(
        unique=True,
        index=True,
        description="Human-facing sequential number",
    )

    customer_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )
    store_id: uuid.UUID = Field(
        foreign_key="stores.id",
        index=True,
    )
    driver_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="users.id",
        index=True,
    )

    subtotal: float
    delivery_fee: float
    service_fee: float
    commission: float
    total: float
    driver_earnings: float | None = None
    platform_earnings: float | None = None

    # pending | accepted | preparing | ready | picked_up | on_way
    # | delivered | cancelled
    status: str = Field(
        default="pending",
        index=True,
        description="Order status lifecycle",
    )

    delivery_address: str = Field(
        description="Full delivery address",
    )
    # cash | card (payment itself is handled outside this service)
    payment_method: str = Field(default="cash")
    notes: str | None = None

    distance: float | None = Field(
        default=None,
        description="Delivery distance in km, when known",
    )

    version: int = Field(default=1)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    accepted_at: datetime | None = None
    ready_at: datetime | None = None
    picked_up_at: datetime | None = None
    assigned_at: datetime | None = None
    delivered_at: datetime | None = None


class OrderItem(SQLModel, table=True):
    """
    Line item snapshot taken when the order is created.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    position: int = Field(ge=0)

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    product_name: str

    # Price at time of order
    unit_price: float

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    line_total: float


class OrderStatusEntry(SQLModel, table=True):
    """
    Append-only status history. Rows are never updated or deleted.
    """

    __tablename__ = "order_status_history"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    position: int = Field(default=0, ge=0)

    status: str
    note: str = ""
    updated_by: uuid.UUID | None = Field(default=None, foreign_key="users.id")

    timestamp: datetime = Field(default_factory=utcnow)
