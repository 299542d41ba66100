# app/repositories/user_repo.py
import uuid

from sqlalchemy import update
from sqlmodel import Session, select

from app.models.user import User


class UserRepository:
    """
    Data access layer for User.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic
    """

    def get_by_id(self, session: Session, user_id: uuid.UUID) -> User | None:
        """Return a User by primary key, or None if not found."""
        return session.get(User, user_id)

    def list_ids_by_role(self, session: Session, role: str) -> list[uuid.UUID]:
        """Ids of every user holding `role` (notification fan-out)."""
        stmt = select(User.id).where(User.role == role)
        return list(session.exec(stmt).all())

    def list_pending_drivers(self, session: Session) -> list[User]:
        stmt = (
            select(User)
            .where(User.role == "driver", User.approved == False)  # noqa: E712
            .order_by(User.created_at)
        )
        return session.exec(stmt).all()

    def update(self, session: Session, user: User) -> User:
        """Persist changes to an existing User."""
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    def delete(self, session: Session, user: User) -> None:
        """Delete a User."""
        session.delete(user)
        session.commit()

    def credit_delivery(
        self,
        session: Session,
        driver_id: uuid.UUID,
        earnings: float,
    ) -> int:
        """
        Add one delivery and `earnings` to a driver in a single UPDATE.

        Both counters move in the same statement, computed by the
        database from the current row, so concurrent credits are never
        lost and never applied half-way. No commit here.

        Returns the number of rows updated (0 if the driver is gone).
        """
        stmt = (
            update(User)
            .where(User.id == driver_id)
            .values(
                total_deliveries=User.total_deliveries + 1,
                total_earnings=User.total_earnings + earnings,
            )
            .execution_options(synchronize_session="fetch")
        )
        return session.execute(stmt).rowcount
