# app/schemas/order.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

OrderStatus = Literal[
    "pending",
    "accepted",
    "preparing",
    "ready",
    "picked_up",
    "on_way",
    "delivered",
    "cancelled",
]
PaymentMethod = Literal["cash", "card"]


class OrderLineCreate(SQLModel):
    """
    One cart line: which product and how many.
    Price and name are always taken from the current product row.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    quantity: int = Field(gt=0)


class OrderCreate(SQLModel):
    """
    Payload for placing an order.

    Client provides:
      - store_id
      - items (product_id + quantity)
      - delivery_address
      - payment_method (cash | card)
      - notes (optional)

    Backend derives:
      - customer_id from token
      - status = 'pending'
      - subtotal / fees / commission / total
      - order_number
    """

    model_config = ConfigDict(extra="forbid")

    store_id: uuid.UUID
    # An empty list is rejected by OrderService with a 400
    items: list[OrderLineCreate]
    delivery_address: str
    payment_method: PaymentMethod = "cash"
    notes: str | None = None

    @field_validator("delivery_address")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("notes", mode="before")
    @classmethod
    def normalize_notes(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OrderItemRead(SQLModel):
    """
    Representation of a single order line item.
    """

    product_id: uuid.UUID
    product_name: str
    unit_price: float
    quantity: int
    line_total: float


class OrderStatusEntryRead(SQLModel):
    status: OrderStatus
    timestamp: datetime
    note: str
    updated_by: uuid.UUID | None = None


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items/history).
    """

    id: uuid.UUID
    order_number: int
    customer_id: uuid.UUID
    store_id: uuid.UUID
    driver_id: uuid.UUID | None
    status: OrderStatus
    subtotal: float
    delivery_fee: float
    service_fee: float
    commission: float
    total: float
    driver_earnings: float | None
    platform_earnings: float | None
    delivery_address: str
    payment_method: PaymentMethod
    notes: str | None
    distance: float | None
    created_at: datetime
    updated_at: datetime
    accepted_at: datetime | None
    ready_at: datetime | None
    picked_up_at: datetime | None
    assigned_at: datetime | None
    delivered_at: datetime | None


class OrderDetailRead(OrderRead):
    """
    Full order view including line items and status history.
    """

    items: list[OrderItemRead]
    status_history: list[OrderStatusEntryRead]


class OrderStatusUpdate(SQLModel):
    """
    Payload to move an order to its next status.

    `status` is a plain string: whether it is reachable is decided by the
    order workflow, which answers with the allowed states.
    """

    model_config = ConfigDict(extra="forbid")

    status: str
    note: str = Field(default="", max_length=500)

    @field_validator("note", mode="before")
    @classmethod
    def normalize_note(cls, v: str | None) -> str:
        if v is None:
            return ""
        return v.strip()
