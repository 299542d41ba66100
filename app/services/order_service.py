# app/services/order_service.py
import logging
import threading
import uuid
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from app.core.config import Settings, get_settings
from app.core.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from app.models.order import Order, OrderItem, OrderStatusEntry, utcnow
from app.models.user import User
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.repositories.store_repo import StoreRepository
from app.repositories.user_repo import UserRepository
from app.schemas.notification import Notification
from app.schemas.order import (
    OrderCreate,
    OrderDetailRead,
    OrderItemRead,
    OrderStatusEntryRead,
    OrderStatusUpdate,
)
from app.services.notifications import NotificationOutbox
from app.services.order_workflow import (
    Effect,
    TransitionPlan,
    plan_transition,
    status_message,
)
from app.services.pricing import (
    driver_earnings_for,
    platform_earnings_for,
    price_cart,
)

logger = logging.getLogger(__name__)

# Serializes "read max(order_number) -> insert -> commit" inside this
# process. The UNIQUE constraint on orders.order_number catches the
# remaining cross-process race.
_order_number_lock = threading.Lock()


class OrderService:
    """
    Business logic for the order lifecycle.

    Responsibilities:
      - Create orders from a cart (validation, pricing, numbering)
      - Apply status transitions planned by `order_workflow`
      - Bind drivers to ready orders and credit them on delivery
      - Queue notifications for every affected party
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        store_repo: StoreRepository,
        product_repo: ProductRepository,
        user_repo: UserRepository,
        settings: Settings | None = None,
    ):
        self.order_repo = order_repo
        self.store_repo = store_repo
        self.product_repo = product_repo
        self.user_repo = user_repo
        self.settings = settings or get_settings()

    # -------- Creation --------

    def create_order(
        self,
        session: Session,
        customer: User,
        payload: OrderCreate,
        outbox: NotificationOutbox,
    ) -> OrderDetailRead:
        """
        Place a new order for `customer`.

        Steps:
          1. Store must exist and be open.
          2. Every product must exist in that store and be available.
          3. Price the cart (current prices) and enforce store.min_order.
          4. Assign order_number = max + 1 under the numbering lock.
          5. Insert order, item snapshots and the first history entry,
             then commit.
          6. Queue "new order" for the store owner and all admins.

        Any failure before the commit leaves nothing behind.
        """
        if customer.role != "client":
            raise ForbiddenError("Only clients can place orders", allowedRoles=["client"])
        if not payload.items:
            raise ValidationError("Order must contain at least one item")

        # 1) Store
        store = self.store_repo.get_by_id(session, payload.store_id)
        if not store:
            raise NotFoundError("Store not found", storeId=str(payload.store_id))
        if not store.is_open:
            raise ConflictError("Store is closed", storeId=str(store.id))

        # 2) Products
        products = self.product_repo.get_many(
            session, (line.product_id for line in payload.items)
        )
        lines = []
        for line in payload.items:
            product = products.get(line.product_id)
            if product is None or product.store_id != store.id:
                raise NotFoundError("Product not found", productId=str(line.product_id))
            if not product.available:
                raise ConflictError(
                    f"Product '{product.name}' is not available",
                    productId=str(product.id),
                )
            lines.append((product, line.quantity))

        # 3) Pricing
        pricing = price_cart(lines, store, self.settings)

        # 4-5) Number + persist
        with _order_number_lock:
            try:
                now = utcnow()
                order = Order(
                    order_number=self.order_repo.max_order_number(session) + 1,
                    customer_id=customer.id,
                    store_id=store.id,
                    subtotal=pricing.subtotal,
                    delivery_fee=pricing.delivery_fee,
                    service_fee=pricing.service_fee,
                    commission=pricing.commission,
                    total=pricing.total,
                    status="pending",
                    delivery_address=payload.delivery_address,
                    payment_method=payload.payment_method,
                    notes=payload.notes,
                    created_at=now,
                    updated_at=now,
                )
                order = self.order_repo.create_order(session, order)

                self.order_repo.create_items(
                    session,
                    [
                        OrderItem(
                            order_id=order.id,
                            position=position,
                            product_id=line.product.id,
                            product_name=line.product.name,
                            unit_price=line.product.price,
                            quantity=line.quantity,
                            line_total=line.line_total,
                        )
                        for position, line in enumerate(pricing.lines)
                    ],
                )
                self.order_repo.append_history(
                    session,
                    OrderStatusEntry(
                        order_id=order.id,
                        status="pending",
                        note="order created",
                        timestamp=now,
                    ),
                )
                session.commit()
            except IntegrityError as e:
                session.rollback()
                logger.warning("Order number collision while creating order: %s", e)
                raise ConflictError("Order number already taken, please retry") from e
            except SQLAlchemyError as e:
                session.rollback()
                logger.exception("Failed to persist new order")
                raise InternalError("Could not save order") from e

        session.refresh(order)
        logger.info(
            "Order #%s created by %s at store %s (total %.2f)",
            order.order_number, customer.id, store.id, order.total,
        )

        # 6) Notifications
        outbox.to_user(
            store.owner_id,
            Notification(
                title="New order",
                message=f"Order #{order.order_number} - ${order.total:.2f}",
                type="success",
                order_id=order.id,
                status=order.status,
            ),
        )
        outbox.to_role(
            "admin",
            Notification(
                title="New order on platform",
                message=f"Order #{order.order_number} placed at {store.name}",
                type="info",
                order_id=order.id,
                status=order.status,
            ),
        )

        return self._build_order_detail(session, order)

    # -------- Queries --------

    def list_orders(
        self,
        session: Session,
        actor: User,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        """
        Orders visible to the actor:
          - client: their own
          - driver: assigned to them
          - store_owner: placed at any store they own
          - admin: all
        """
        if actor.role == "client":
            return self.order_repo.list_for_customer(session, actor.id, skip, limit)
        if actor.role == "driver":
            return self.order_repo.list_for_driver(session, actor.id, skip, limit)
        if actor.role == "store_owner":
            store_ids = self.store_repo.list_ids_for_owner(session, actor.id)
            return self.order_repo.list_for_stores(session, store_ids, skip, limit)
        return self.order_repo.list_all(session, skip, limit)

    def list_available_orders(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        """Ready, unassigned orders a driver can claim."""
        return self.order_repo.list_available(session, skip, limit)

    def get_order(
        self,
        session: Session,
        actor: User,
        order_id: uuid.UUID,
    ) -> OrderDetailRead:
        """
        Single order with items and history.

        - 404 if the order does not exist.
        - 403 unless the actor is a party to it (drivers may also see
          ready orders nobody has claimed yet).
        """
        order = self._get_order_or_404(session, order_id)

        allowed = actor.role == "admin" or actor.id in (order.customer_id, order.driver_id)
        if not allowed and actor.role == "store_owner":
            allowed = self._owns_store(session, actor, order)
        if not allowed and actor.role == "driver":
            allowed = order.status == "ready" and order.driver_id is None
        if not allowed:
            raise ForbiddenError("Not authorized to view this order", orderId=str(order.id))

        return self._build_order_detail(session, order)

    # -------- Transitions --------

    def update_status(
        self,
        session: Session,
        actor: User,
        order_id: uuid.UUID,
        payload: OrderStatusUpdate,
        outbox: NotificationOutbox,
    ) -> OrderDetailRead:
        """
        Move an order to `payload.status`.

        Validation (role, reachable state, ownership, driver eligibility)
        happens before anything is written. The status write, its
        history entry and all side effects commit together. A concurrent
        update that got there first makes this one fail with 409.
        """
        order = self._get_order_or_404(session, order_id)

        plan = plan_transition(
            order.status,
            payload.status,
            actor.role,
            has_driver=order.driver_id is not None,
        )
        self._check_party(session, actor, order)
        if Effect.CLAIM_DRIVER in plan.effects:
            self._ensure_driver_can_claim(actor)

        self._claim(session, order)

        now = utcnow()
        try:
            self._apply_effects(session, order, plan, actor, now)
            order.status = plan.status
            order.updated_at = now
            self.order_repo.append_history(
                session,
                OrderStatusEntry(
                    order_id=order.id,
                    status=plan.status,
                    note=payload.note,
                    updated_by=actor.id,
                    timestamp=now,
                ),
            )
            self.order_repo.update_order(session, order)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Failed to persist transition for order %s", order_id)
            raise InternalError("Could not update order status") from e

        session.refresh(order)
        logger.info(
            "Order #%s: %s -> %s by %s (%s)",
            order.order_number, plan.previous, plan.status, actor.id, actor.role,
        )

        store = self.store_repo.get_by_id(session, order.store_id)
        self._queue_transition_notifications(
            order, plan, actor, outbox, store_owner_id=store.owner_id if store else None
        )
        return self._build_order_detail(session, order)

    # -------- Driver assignment --------

    def assign_driver(
        self,
        session: Session,
        actor: User,
        order_id: uuid.UUID,
        outbox: NotificationOutbox,
    ) -> OrderDetailRead:
        """
        Manual claim of a ready order by the calling driver.

        Rules:
          - caller is an approved, available driver (else 403)
          - order is 'ready' and has no driver yet (else 409)
        """
        if actor.role != "driver":
            raise ForbiddenError("Only drivers can claim orders", allowedRoles=["driver"])
        self._ensure_driver_can_claim(actor)

        order = self._get_order_or_404(session, order_id)
        if order.status != "ready":
            raise ConflictError(
                "Order is not ready for pickup",
                currentStatus=order.status,
                orderId=str(order.id),
            )
        if order.driver_id is not None:
            raise ConflictError("Order already has a driver", orderId=str(order.id))

        self._claim(session, order)

        now = utcnow()
        try:
            self._bind_driver(order, actor, now)
            order.updated_at = now
            self.order_repo.update_order(session, order)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Failed to assign driver to order %s", order_id)
            raise InternalError("Could not assign driver") from e

        session.refresh(order)
        logger.info("Order #%s claimed by driver %s", order.order_number, actor.id)

        outbox.to_user(order.customer_id, self._driver_assigned_notification(order, actor))
        return self._build_order_detail(session, order)

    # -------- Internal helpers --------

    def _get_order_or_404(self, session: Session, order_id: uuid.UUID) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise NotFoundError("Order not found", orderId=str(order_id))
        return order

    def _owns_store(self, session: Session, actor: User, order: Order) -> bool:
        store = self.store_repo.get_by_id(session, order.store_id)
        return store is not None and store.owner_id == actor.id

    def _check_party(self, session: Session, actor: User, order: Order) -> None:
        """The actor's role is allowed; make sure it is *their* order."""
        if actor.role == "client" and order.customer_id != actor.id:
            raise ForbiddenError("You can only update your own orders", orderId=str(order.id))
        if actor.role == "store_owner" and not self._owns_store(session, actor, order):
            raise ForbiddenError("Order belongs to another store", orderId=str(order.id))
        if actor.role == "driver" and order.driver_id not in (None, actor.id):
            raise ForbiddenError("Order is assigned to another driver", orderId=str(order.id))

    def _ensure_driver_can_claim(self, driver: User) -> None:
        if not driver.approved:
            raise ForbiddenError("Driver account is pending approval")
        if not driver.available:
            raise ForbiddenError("Driver is not available")

    def _claim(self, session: Session, order: Order) -> None:
        """Bump the order version or fail if someone else already did."""
        expected = order.version
        if not self.order_repo.claim_version(session, order.id, expected):
            session.rollback()
            raise ConflictError(
                "Order was modified concurrently; reload and retry",
                orderId=str(order.id),
            )
        order.version = expected + 1

    def _bind_driver(self, order: Order, driver: User, now: datetime) -> None:
        order.driver_id = driver.id
        order.assigned_at = now
        order.driver_earnings = driver_earnings_for(order, self.settings)

    def _apply_effects(
        self,
        session: Session,
        order: Order,
        plan: TransitionPlan,
        actor: User,
        now: datetime,
    ) -> None:
        """Persistent side effects of a transition (no commit)."""
        for effect in plan.effects:
            if effect is Effect.STAMP_ACCEPTED:
                order.accepted_at = now
            elif effect is Effect.STAMP_READY:
                order.ready_at = now
            elif effect is Effect.STAMP_PICKED_UP:
                order.picked_up_at = now
            elif effect is Effect.CLAIM_DRIVER:
                self._bind_driver(order, actor, now)
            elif effect is Effect.STAMP_DELIVERED:
                order.delivered_at = now
            elif effect is Effect.REALIZE_PLATFORM_EARNINGS:
                order.platform_earnings = platform_earnings_for(order)
            elif effect is Effect.CREDIT_DRIVER:
                updated = self.user_repo.credit_delivery(
                    session, order.driver_id, order.driver_earnings or 0.0
                )
                if not updated:
                    logger.warning(
                        "Driver %s of order #%s not found; nothing credited",
                        order.driver_id, order.order_number,
                    )

    def _queue_transition_notifications(
        self,
        order: Order,
        plan: TransitionPlan,
        actor: User,
        outbox: NotificationOutbox,
        store_owner_id: uuid.UUID | None = None,
    ) -> None:
        if Effect.CLAIM_DRIVER in plan.effects:
            outbox.to_user(order.customer_id, self._driver_assigned_notification(order, actor))

        if Effect.NOTIFY_CUSTOMER in plan.effects:
            title, message = status_message(order.status, order.order_number)
            outbox.to_user(
                order.customer_id,
                Notification(
                    title=title,
                    message=message,
                    type="error" if order.status == "cancelled" else "info",
                    order_id=order.id,
                    status=order.status,
                ),
            )

        if Effect.BROADCAST_READY in plan.effects:
            outbox.to_role(
                "driver",
                Notification(
                    title="New order available",
                    message=f"Order #{order.order_number} is ready for pickup",
                    type="info",
                    order_id=order.id,
                    status=order.status,
                ),
            )

        if Effect.NOTIFY_CANCELLED in plan.effects:
            # Store owner and assigned driver; the customer got the status
            # message above and the actor already knows.
            others = [
                uid
                for uid in (store_owner_id, order.driver_id)
                if uid is not None and uid not in (actor.id, order.customer_id)
            ]
            if others:
                who = actor.role.replace("_", " ")
                outbox.to_users(
                    others,
                    Notification(
                        title="Order cancelled",
                        message=f"Order #{order.order_number} was cancelled by the {who}",
                        type="warning",
                        order_id=order.id,
                        status=order.status,
                    ),
                )

    def _driver_assigned_notification(self, order: Order, driver: User) -> Notification:
        return Notification(
            title="Driver assigned",
            message=f"{driver.name} will deliver your order #{order.order_number}",
            type="info",
            order_id=order.id,
            status=order.status,
        )

    def _build_order_detail(self, session: Session, order: Order) -> OrderDetailRead:
        """
        Compose OrderDetailRead from the order, its items and its history.
        """
        items = self.order_repo.list_items_for_order(session, order.id)
        history = self.order_repo.list_history_for_order(session, order.id)

        return OrderDetailRead(
            **order.model_dump(),
            items=[
                OrderItemRead(
                    product_id=it.product_id,
                    product_name=it.product_name,
                    unit_price=it.unit_price,
                    quantity=it.quantity,
                    line_total=it.line_total,
                )
                for it in items
            ],
            status_history=[
                OrderStatusEntryRead(
                    status=h.status,
                    timestamp=h.timestamp,
                    note=h.note,
                    updated_by=h.updated_by,
                )
                for h in history
            ],
        )
