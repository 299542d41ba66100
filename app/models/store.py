# app/models/store.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Store(SQLModel, table=True):
    """
    Store (restaurant / shop) selling products on the marketplace.

    Managed by the catalog side of the platform; the order core only
    reads owner_id, is_open, min_order and delivery_fee.
    """

    __tablename__ = "stores"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    owner_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    name: str = Field(max_length=100)

    is_open: bool = Field(default=True)

    min_order: float = Field(
        default=0.0,
        ge=0,
        description="Minimum cart subtotal accepted by the store",
    )

    delivery_fee: float = Field(
        default=0.0,
        ge=0,
        description="Flat delivery fee charged on every order",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
