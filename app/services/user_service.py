# app/services/user_service.py
import logging
import uuid

from sqlmodel import Session

from app.core.errors import ConflictError, ForbiddenError, NotFoundError
from app.models.user import User
from app.repositories.user_repo import UserRepository
from app.schemas.notification import Notification
from app.schemas.user import AvailabilityUpdate
from app.services.notifications import NotificationOutbox

logger = logging.getLogger(__name__)


class UserService:
    """
    Business logic for User.

    Responsibilities:
      - driver self-service (availability)
      - admin approval of drivers
      - map domain errors to HTTP errors
    """

    def __init__(self, repo: UserRepository):
        self.repo = repo

    # ----- Self profile -----

    def get_me(self, current_user: User) -> User:
        """Return the current authenticated user."""
        return current_user

    def set_availability(
        self,
        session: Session,
        driver: User,
        payload: AvailabilityUpdate,
    ) -> User:
        """
        Driver goes online/offline.

        Only approved drivers may become available; going offline is
        always allowed.
        """
        if driver.role != "driver":
            raise ForbiddenError("Only drivers have availability", allowedRoles=["driver"])
        if payload.available and not driver.approved:
            raise ForbiddenError("Driver account is pending approval")

        driver.available = payload.available
        return self.repo.update(session, driver)

    # ----- Admin operations -----

    def list_pending_drivers(self, session: Session) -> list[User]:
        return self.repo.list_pending_drivers(session)

    def get_driver(self, session: Session, user_id: uuid.UUID) -> User:
        """
        Raises:
            NotFoundError: if no driver has this id.
        """
        user = self.repo.get_by_id(session, user_id)
        if not user or user.role != "driver":
            raise NotFoundError("Driver not found", driverId=str(user_id))
        return user

    def approve_driver(
        self,
        session: Session,
        user_id: uuid.UUID,
        outbox: NotificationOutbox,
    ) -> User:
        """
        Approve a pending driver (admin only). Approval also puts the
        driver online, and the driver is notified.
        """
        driver = self.get_driver(session, user_id)
        if driver.approved:
            raise ConflictError("Driver is already approved", driverId=str(driver.id))

        driver.approved = True
        driver.available = True
        driver = self.repo.update(session, driver)
        logger.info("Driver %s approved", driver.id)

        outbox.to_user(
            driver.id,
            Notification(
                title="Account approved",
                message="Your driver account was approved. You can start taking orders.",
                type="success",
            ),
        )
        return driver

    def reject_driver(self, session: Session, user_id: uuid.UUID) -> None:
        """
        Reject a pending driver (admin only) by removing the account.

        Pending drivers can never have claimed an order, so nothing
        references the row. Approved drivers are kept.
        """
        driver = self.get_driver(session, user_id)
        if driver.approved:
            raise ConflictError(
                "Approved drivers cannot be rejected",
                driverId=str(driver.id),
            )

        self.repo.delete(session, driver)
        logger.info("Driver %s rejected and removed", user_id)
