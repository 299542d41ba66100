# app/repositories/order_repo.py
import uuid

from sqlalchemy import func, update
from sqlmodel import Session, select

from app.models.order import Order, OrderItem, OrderStatusEntry


class OrderRepository:
    """
    Data access layer for orders, order_items and order_status_history.

    NOTE:
      - No commits here; creation and transitions are multi-step
        transactions. The service is responsible for session.commit().
    """

    # ---- Orders ----

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> Order | None:
        return session.get(Order, order_id)

    def list_for_customer(
        self,
        session: Session,
        customer_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.customer_id == customer_id)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def list_for_driver(
        self,
        session: Session,
        driver_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.driver_id == driver_id)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def list_for_stores(
        self,
        session: Session,
        store_ids: list[uuid.UUID],
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        if not store_ids:
            return []
        stmt = (
            select(Order)
            .where(Order.store_id.in_(store_ids))
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def list_all(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = select(Order).order_by(Order.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def list_available(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        """Ready orders nobody has claimed yet, oldest first."""
        stmt = (
            select(Order)
            .where(Order.status == "ready", Order.driver_id == None)  # noqa: E711
            .order_by(Order.ready_at)
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def max_order_number(self, session: Session) -> int:
        stmt = select(func.coalesce(func.max(Order.order_number), 0))
        return int(session.exec(stmt).one())

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()  # Assign PK
        session.refresh(order)
        return order

    def update_order(self, session: Session, order: Order) -> Order:
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    def claim_version(
        self,
        session: Session,
        order_id: uuid.UUID,
        expected_version: int,
    ) -> bool:
        """
        Compare-and-set the order's version: expected -> expected + 1.

        Returns False when another transaction already moved the order
        past `expected_version`. On Postgres the UPDATE also takes the
        row lock, so a concurrent claimer waits for our commit and then
        sees the new version.
        """
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.version == expected_version)
            .values(version=expected_version + 1)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = (
            select(OrderItem)
            .where(OrderItem.order_id == order_id)
            .order_by(OrderItem.position)
        )
        return session.exec(stmt).all()

    def create_items(
        self,
        session: Session,
        items: list[OrderItem],
    ) -> list[OrderItem]:
        session.add_all(items)
        session.flush()
        return items

    # ---- Status history ----

    def list_history_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderStatusEntry]:
        stmt = (
            select(OrderStatusEntry)
            .where(OrderStatusEntry.order_id == order_id)
            .order_by(OrderStatusEntry.position)
        )
        return session.exec(stmt).all()

    def append_history(
        self,
        session: Session,
        entry: OrderStatusEntry,
    ) -> OrderStatusEntry:
        """
        Append a history row at the next position for its order.
        """
        stmt = select(func.count()).select_from(OrderStatusEntry).where(
            OrderStatusEntry.order_id == entry.order_id
        )
        entry.position = int(session.exec(stmt).one())
        session.add(entry)
        session.flush()
        return entry
