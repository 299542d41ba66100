# app/models/product.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """
    Product listed by a store.

    Orders copy name and price into their line items at creation time,
    so later edits here never change an existing order.
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    store_id: uuid.UUID = Field(
        foreign_key="stores.id",
        index=True,
    )

    name: str = Field(
        max_length=100,
        index=True,
    )

    price: float = Field(
        gt=0,
        description="Current unit price",
    )

    available: bool = Field(
        default=True,
        index=True,
        description="Whether the product can be ordered right now",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
