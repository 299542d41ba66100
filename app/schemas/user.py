# app/schemas/user.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import EmailStr, ConfigDict
from sqlmodel import SQLModel

# App-level roles
Role = Literal["client", "driver", "store_owner", "admin"]


class UserRead(SQLModel):
    """Response schema returned to clients."""

    id: uuid.UUID
    email: EmailStr
    name: str
    role: Role
    created_at: datetime


class DriverRead(UserRead):
    """User read model including driver-only fields."""

    approved: bool
    available: bool
    total_deliveries: int
    total_earnings: float


class AvailabilityUpdate(SQLModel):
    """
    Driver payload to go online/offline.
    """

    model_config = ConfigDict(extra="forbid")

    available: bool
