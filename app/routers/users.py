# app/routers/users.py
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlmodel import Session

from app.core.auth import require_admin, require_auth, require_driver
from app.core.realtime import get_dispatcher
from app.database import get_session
from app.models.user import User
from app.repositories.user_repo import UserRepository
from app.schemas.user import AvailabilityUpdate, DriverRead, UserRead
from app.services.notifications import NotificationOutbox
from app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])

repo = UserRepository()
service = UserService(repo)


# -------- Self profile --------


@router.get("/me", response_model=DriverRead | UserRead)
def read_me(current_user: User = Depends(require_auth)):
    """
    Return the authenticated user's profile.

    Drivers also get their approval, availability and delivery totals.
    """
    user = service.get_me(current_user)
    if user.role == "driver":
        return DriverRead.model_validate(user)
    return UserRead.model_validate(user)


@router.patch("/me/availability", response_model=DriverRead)
def update_my_availability(
    payload: AvailabilityUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_driver),
):
    """
    Driver goes online/offline.

    Auth:
      - role='driver'; going online requires an approved account.
    """
    return service.set_availability(session, current_user, payload)


# -------- Admin endpoints --------


@router.get(
    "/drivers/pending",
    response_model=list[DriverRead],
    dependencies=[Depends(require_admin)],
)
def list_pending_drivers(session: Session = Depends(get_session)):
    """
    Drivers waiting for approval (admin only).
    """
    return service.list_pending_drivers(session)


@router.patch(
    "/{user_id}/approve",
    response_model=DriverRead,
    dependencies=[Depends(require_admin)],
)
def approve_driver(
    user_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
):
    """
    Approve a driver account (admin only).

    The driver is notified over the realtime channel.
    """
    outbox = NotificationOutbox()
    driver = service.approve_driver(session, user_id, outbox)
    background_tasks.add_task(get_dispatcher().deliver, outbox)
    return driver


@router.delete(
    "/{user_id}/reject",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def reject_driver(
    user_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Reject a pending driver and delete the account (admin only).

    Approved drivers cannot be rejected (409).
    """
    service.reject_driver(session, user_id)
    return None
