# app/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Persistent user profile.

    Identity:
      - id: matches the JWT "sub" issued by the auth service

    Role:
      - "client" | "driver" | "store_owner" | "admin"

    Driver-only fields:
      - approved: set by an admin, required before taking orders
      - available: toggled by the driver
      - total_deliveries / total_earnings: cumulative, only ever
        incremented when an order is delivered
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    email: str = Field(
        unique=True,
        index=True,
    )

    name: str = Field(
        max_length=100,
    )

    # Application role
    role: str = Field(
        default="client",
        index=True,
        description="Application role: client | driver | store_owner | admin",
    )

    approved: bool = Field(
        default=False,
        description="Driver approved by an admin",
    )
    available: bool = Field(
        default=False,
        description="Driver currently accepting orders",
    )

    total_deliveries: int = Field(default=0, ge=0)
    total_earnings: float = Field(default=0.0)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
