# app/core/realtime.py
import uuid
from functools import lru_cache

from sqlmodel import Session

from app.database import engine
from app.repositories.user_repo import UserRepository
from app.services.notifications import ConnectionRegistry, NotificationDispatcher

_user_repo = UserRepository()


def user_ids_for_role(role: str) -> list[uuid.UUID]:
    """
    Resolve a role to user ids with a short-lived session.

    Runs outside any request session: the dispatcher works after the
    response has been sent.
    """
    with Session(engine) as session:
        return _user_repo.list_ids_by_role(session, role)


@lru_cache
def get_registry() -> ConnectionRegistry:
    """
    The single connection registry of this process.

    Torn down in the application lifespan (close_all).
    """
    return ConnectionRegistry()


@lru_cache
def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(get_registry(), role_lookup=user_ids_for_role)
