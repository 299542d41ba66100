# app/routers/orders.py
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlmodel import Session

from app.core.auth import require_auth, require_client, require_driver
from app.core.realtime import get_dispatcher
from app.database import get_session
from app.models.user import User
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.repositories.store_repo import StoreRepository
from app.repositories.user_repo import UserRepository
from app.schemas.order import (
    OrderCreate,
    OrderDetailRead,
    OrderRead,
    OrderStatusUpdate,
)
from app.services.notifications import NotificationOutbox
from app.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])

order_repo = OrderRepository()
store_repo = StoreRepository()
product_repo = ProductRepository()
user_repo = UserRepository()
service = OrderService(order_repo, store_repo, product_repo, user_repo)


def _dispatch_after_response(background_tasks: BackgroundTasks, outbox: NotificationOutbox) -> None:
    """Send queued notifications once the response is out."""
    if len(outbox):
        background_tasks.add_task(get_dispatcher().deliver, outbox)


@router.post(
    "",
    response_model=OrderDetailRead,
    status_code=status.HTTP_201_CREATED,
)
def create_order(
    payload: OrderCreate,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_client),
):
    """
    Place an order at a store.

    Auth:
      - Only role='client' can order.

    Notifies the store owner and all admins.
    """
    outbox = NotificationOutbox()
    order = service.create_order(session, current_user, payload, outbox)
    _dispatch_after_response(background_tasks, outbox)
    return order


@router.get(
    "",
    response_model=list[OrderRead],
)
def list_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    skip: int = 0,
    limit: int = 50,
):
    """
    List orders visible to the caller (newest first).

      client      -> own orders
      driver      -> orders assigned to them
      store_owner -> orders of their stores
      admin       -> all orders
    """
    return service.list_orders(session, current_user, skip, limit)


@router.get(
    "/available",
    response_model=list[OrderRead],
    dependencies=[Depends(require_driver)],
)
def list_available_orders(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
):
    """
    Ready orders without a driver (drivers only).
    """
    return service.list_available_orders(session, skip, limit)


@router.get(
    "/{order_id}",
    response_model=OrderDetailRead,
)
def get_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Get one order with items and status history.
    """
    return service.get_order(session, current_user, order_id)


@router.patch(
    "/{order_id}/status",
    response_model=OrderDetailRead,
)
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Move an order to its next status.

      pending   -> accepted, cancelled    (store_owner, client)

      accepted  -> preparing, cancelled   (store_owner)

      preparing -> ready, cancelled       (store_owner)

      ready     -> picked_up, cancelled   (driver)

      picked_up -> on_way                 (driver)

      on_way    -> delivered              (driver)

    Errors carry `allowedRoles` / `allowedStates` for the client to retry.
    """
    outbox = NotificationOutbox()
    order = service.update_status(session, current_user, order_id, payload, outbox)
    _dispatch_after_response(background_tasks, outbox)
    return order


@router.post(
    "/{order_id}/assign",
    response_model=OrderDetailRead,
)
def assign_driver(
    order_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Claim a ready order as the calling driver.

    The driver must be approved and available; the order must be ready
    and unassigned.
    """
    outbox = NotificationOutbox()
    order = service.assign_driver(session, current_user, order_id, outbox)
    _dispatch_after_response(background_tasks, outbox)
    return order
