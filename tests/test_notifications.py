import asyncio
import uuid

from app.schemas.notification import Notification
from app.services.notifications import (
    ConnectionRegistry,
    NotificationDispatcher,
    NotificationOutbox,
)


class FakeConnection:
    def __init__(self, fail: bool = False):
        self.sent: list[dict] = []
        self.fail = fail
        self.closed = False

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket is gone")
        self.sent.append(data)

    async def close(self):
        self.closed = True


def _note(title: str = "Hello") -> Notification:
    return Notification(title=title, message="Something happened")


def _dispatcher(registry, roles=None):
    roles = roles or {}
    return NotificationDispatcher(registry, role_lookup=lambda role: roles.get(role, []))


def test_register_lookup_unregister():
    registry = ConnectionRegistry()
    user_id = uuid.uuid4()
    conn = FakeConnection()

    registry.register(user_id, conn)
    assert registry.lookup(user_id) is conn
    assert registry.active_count == 1

    assert registry.unregister(conn) == [user_id]
    assert registry.lookup(user_id) is None
    assert registry.active_count == 0


def test_reconnect_replaces_mapping_and_old_close_keeps_new():
    registry = ConnectionRegistry()
    user_id = uuid.uuid4()
    old, new = FakeConnection(), FakeConnection()

    registry.register(user_id, old)
    registry.register(user_id, new)
    assert registry.lookup(user_id) is new

    # The old socket closing must not drop the new session
    assert registry.unregister(old) == []
    assert registry.lookup(user_id) is new


def test_close_all_empties_registry():
    registry = ConnectionRegistry()
    conns = [FakeConnection(), FakeConnection()]
    for conn in conns:
        registry.register(uuid.uuid4(), conn)

    asyncio.run(registry.close_all())

    assert registry.active_count == 0
    assert all(conn.closed for conn in conns)


def test_notify_user_sends_typed_payload():
    registry = ConnectionRegistry()
    user_id, order_id = uuid.uuid4(), uuid.uuid4()
    conn = FakeConnection()
    registry.register(user_id, conn)

    note = Notification(
        title="Order ready",
        message="Your order #3 is ready",
        order_id=order_id,
        status="ready",
    )
    assert asyncio.run(_dispatcher(registry).notify_user(user_id, note)) is True

    [payload] = conn.sent
    assert payload["type"] == "notification"
    data = payload["data"]
    assert data["title"] == "Order ready"
    assert data["type"] == "info"
    assert data["order_id"] == str(order_id)
    assert data["status"] == "ready"
    assert "timestamp" in data


def test_notify_offline_user_is_dropped():
    registry = ConnectionRegistry()
    assert asyncio.run(_dispatcher(registry).notify_user(uuid.uuid4(), _note())) is False


def test_broken_connection_is_dropped_and_unregistered():
    registry = ConnectionRegistry()
    user_id = uuid.uuid4()
    registry.register(user_id, FakeConnection(fail=True))

    assert asyncio.run(_dispatcher(registry).notify_user(user_id, _note())) is False
    assert registry.lookup(user_id) is None


def test_notify_multiple_counts_deliveries():
    registry = ConnectionRegistry()
    online, broken, offline = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    registry.register(online, FakeConnection())
    registry.register(broken, FakeConnection(fail=True))

    delivered = asyncio.run(
        _dispatcher(registry).notify_multiple([online, broken, offline], _note())
    )
    assert delivered == 1


def test_notify_role_resolves_users():
    registry = ConnectionRegistry()
    d1, d2 = uuid.uuid4(), uuid.uuid4()
    c1 = FakeConnection()
    registry.register(d1, c1)

    dispatcher = _dispatcher(registry, roles={"driver": [d1, d2]})
    assert asyncio.run(dispatcher.notify_role("driver", _note("New order available"))) == 1
    assert c1.sent[0]["data"]["title"] == "New order available"


def test_deliver_drains_outbox_and_survives_failures():
    registry = ConnectionRegistry()
    customer, admin = uuid.uuid4(), uuid.uuid4()
    customer_conn, admin_conn = FakeConnection(), FakeConnection()
    registry.register(customer, customer_conn)
    registry.register(admin, admin_conn)

    def role_lookup(role):
        if role == "driver":
            raise RuntimeError("database unavailable")
        return [admin]

    dispatcher = NotificationDispatcher(registry, role_lookup=role_lookup)

    outbox = NotificationOutbox()
    outbox.to_role("driver", _note("broadcast"))
    outbox.to_user(customer, _note("to customer"))
    outbox.to_role("admin", _note("to admins"))
    outbox.to_users([customer, admin], _note("to both"))

    asyncio.run(dispatcher.deliver(outbox))

    assert len(outbox) == 0
    assert [m["data"]["title"] for m in customer_conn.sent] == ["to customer", "to both"]
    assert [m["data"]["title"] for m in admin_conn.sent] == ["to admins", "to both"]


def test_registering_a_connection_under_another_user_moves_it():
    registry = ConnectionRegistry()
    first, second = uuid.uuid4(), uuid.uuid4()
    conn = FakeConnection()

    registry.register(first, conn)
    registry.register(second, conn)

    assert registry.lookup(first) is None
    assert registry.lookup(second) is conn
    assert registry.active_count == 1
    assert asyncio.run(_dispatcher(registry).notify_user(first, _note())) is False
    assert conn.sent == []


def test_registering_same_user_twice_keeps_one_binding():
    registry = ConnectionRegistry()
    user_id = uuid.uuid4()
    conn = FakeConnection()

    registry.register(user_id, conn)
    registry.register(user_id, conn)

    assert registry.lookup(user_id) is conn
    assert registry.active_count == 1
