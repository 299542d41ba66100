import os
import tempfile

import pytest

_db_dir = tempfile.mkdtemp(prefix="delivery-orders-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ["JWT_SECRET"] = "test-secret"

from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from app.core.auth import create_access_token  # noqa: E402
from app.core.realtime import get_dispatcher, get_registry  # noqa: E402
from app.database import engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models.order import Order  # noqa: E402
from app.models.product import Product  # noqa: E402
from app.models.store import Store  # noqa: E402
from app.models.user import User  # noqa: E402
from app.repositories.order_repo import OrderRepository  # noqa: E402
from app.repositories.product_repo import ProductRepository  # noqa: E402
from app.repositories.store_repo import StoreRepository  # noqa: E402
from app.repositories.user_repo import UserRepository  # noqa: E402
from app.schemas.order import OrderCreate, OrderLineCreate  # noqa: E402
from app.services.notifications import NotificationOutbox  # noqa: E402
from app.services.order_service import OrderService  # noqa: E402


@pytest.fixture(autouse=True)
def _database():
    SQLModel.metadata.create_all(engine)
    get_registry.cache_clear()
    get_dispatcher.cache_clear()
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session():
    with Session(engine) as session:
        yield session


def _add(session: Session, obj):
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return obj


@pytest.fixture
def client_user(session):
    return _add(session, User(email="client@example.com", name="Carla Client", role="client"))


@pytest.fixture
def other_client(session):
    return _add(session, User(email="other@example.com", name="Oscar Other", role="client"))


@pytest.fixture
def driver(session):
    return _add(
        session,
        User(
            email="driver@example.com",
            name="Dana Driver",
            role="driver",
            approved=True,
            available=True,
        ),
    )


@pytest.fixture
def second_driver(session):
    return _add(
        session,
        User(
            email="driver2@example.com",
            name="Dev Driver",
            role="driver",
            approved=True,
            available=True,
        ),
    )


@pytest.fixture
def pending_driver(session):
    return _add(session, User(email="new-driver@example.com", name="Pat Pending", role="driver"))


@pytest.fixture
def owner(session):
    return _add(session, User(email="owner@example.com", name="Olga Owner", role="store_owner"))


@pytest.fixture
def admin(session):
    return _add(session, User(email="admin@example.com", name="Ada Admin", role="admin"))


@pytest.fixture
def store(session, owner):
    return _add(
        session,
        Store(owner_id=owner.id, name="Pizza Place", min_order=20.0, delivery_fee=30.0),
    )


@pytest.fixture
def pizza(session, store):
    return _add(session, Product(store_id=store.id, name="Margherita", price=12.5))


@pytest.fixture
def soda(session, store):
    return _add(session, Product(store_id=store.id, name="Soda", price=2.0))


@pytest.fixture
def service():
    return OrderService(
        OrderRepository(),
        StoreRepository(),
        ProductRepository(),
        UserRepository(),
    )


@pytest.fixture
def outbox():
    return NotificationOutbox()


@pytest.fixture
def place_order(session, service, client_user, store, pizza, soda):
    """Create a pending order: 2 x pizza + 3 x soda = 31.00 subtotal."""

    def _place(customer: User | None = None) -> Order:
        payload = OrderCreate(
            store_id=store.id,
            items=[
                OrderLineCreate(product_id=pizza.id, quantity=2),
                OrderLineCreate(product_id=soda.id, quantity=3),
            ],
            delivery_address="1 Main Street",
        )
        detail = service.create_order(
            session, customer or client_user, payload, NotificationOutbox()
        )
        return session.get(Order, detail.id)

    return _place


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}

    return _headers


@pytest.fixture
def api():
    with TestClient(app) as client:
        yield client
