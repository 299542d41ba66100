import uuid

import pytest

API = "/api/v1"


@pytest.fixture
def order_body(store, pizza, soda):
    return {
        "store_id": str(store.id),
        "items": [
            {"product_id": str(pizza.id), "quantity": 2},
            {"product_id": str(soda.id), "quantity": 3},
        ],
        "delivery_address": "1 Main Street",
        "payment_method": "card",
    }


@pytest.fixture
def create_order(api, auth_headers, client_user, order_body):
    def _create() -> dict:
        res = api.post(f"{API}/orders", json=order_body, headers=auth_headers(client_user))
        assert res.status_code == 201, res.text
        return res.json()

    return _create


@pytest.fixture
def set_status(api, auth_headers):
    def _set(order_id: str, status: str, actor) -> dict:
        res = api.patch(
            f"{API}/orders/{order_id}/status",
            json={"status": status},
            headers=auth_headers(actor),
        )
        assert res.status_code == 200, res.text
        return res.json()

    return _set


@pytest.fixture
def delivered_order(create_order, set_status, owner, driver):
    order = create_order()
    for status in ("accepted", "preparing", "ready"):
        set_status(order["id"], status, owner)
    for status in ("picked_up", "on_way", "delivered"):
        set_status(order["id"], status, driver)
    return order


def test_root_and_health(api):
    assert api.get("/").json()["status"] == "ok"
    assert api.get("/health").json() == {"status": "ok", "active_connections": 0}


def test_create_order(create_order):
    body = create_order()
    assert body["order_number"] == 1
    assert body["status"] == "pending"
    assert body["payment_method"] == "card"
    assert body["total"] == 71.0
    assert len(body["items"]) == 2
    assert body["status_history"][0]["status"] == "pending"


def test_create_order_requires_auth(api, order_body):
    res = api.post(f"{API}/orders", json=order_body)
    assert res.status_code == 401


def test_only_clients_can_create(api, auth_headers, driver, order_body):
    res = api.post(f"{API}/orders", json=order_body, headers=auth_headers(driver))
    assert res.status_code == 403


def test_below_minimum_error_body(api, auth_headers, client_user, store, soda):
    res = api.post(
        f"{API}/orders",
        json={
            "store_id": str(store.id),
            "items": [{"product_id": str(soda.id), "quantity": 1}],
            "delivery_address": "1 Main Street",
        },
        headers=auth_headers(client_user),
    )
    assert res.status_code == 400
    body = res.json()
    assert body["minOrder"] == 20.0
    assert body["currentTotal"] == 2.0
    assert "error" in body


def test_empty_cart_error_body(api, auth_headers, client_user, store):
    res = api.post(
        f"{API}/orders",
        json={"store_id": str(store.id), "items": [], "delivery_address": "x"},
        headers=auth_headers(client_user),
    )
    assert res.status_code == 400
    assert res.json() == {"error": "Order must contain at least one item"}


def test_malformed_payload_uses_error_body(api, auth_headers, client_user, store, soda):
    res = api.post(
        f"{API}/orders",
        json={
            "store_id": str(store.id),
            "items": [{"product_id": str(soda.id), "quantity": 0}],
            "delivery_address": "1 Main Street",
        },
        headers=auth_headers(client_user),
    )
    assert res.status_code == 400
    body = res.json()
    assert body["error"] == "Invalid request"
    assert "detail" not in body
    assert [f["loc"][-1] for f in body["fields"]] == ["quantity"]


def test_forbidden_transition_body(api, auth_headers, create_order, driver):
    order = create_order()
    res = api.patch(
        f"{API}/orders/{order['id']}/status",
        json={"status": "accepted"},
        headers=auth_headers(driver),
    )
    assert res.status_code == 403
    assert res.json()["allowedRoles"] == ["store_owner", "client"]


def test_invalid_transition_body(api, auth_headers, create_order, owner):
    order = create_order()
    res = api.patch(
        f"{API}/orders/{order['id']}/status",
        json={"status": "delivered"},
        headers=auth_headers(owner),
    )
    assert res.status_code == 409
    assert res.json() == {
        "error": "Cannot move order from 'pending' to 'delivered'",
        "allowedStates": ["accepted", "cancelled"],
        "currentStatus": "pending",
    }


def test_unknown_status_lists_allowed_states(api, auth_headers, create_order, owner):
    order = create_order()
    res = api.patch(
        f"{API}/orders/{order['id']}/status",
        json={"status": "shipped"},
        headers=auth_headers(owner),
    )
    assert res.status_code == 409
    body = res.json()
    assert body["allowedStates"] == ["accepted", "cancelled"]
    assert body["currentStatus"] == "pending"


def test_unknown_order_is_404(api, auth_headers, owner):
    res = api.get(f"{API}/orders/{uuid.uuid4()}", headers=auth_headers(owner))
    assert res.status_code == 404
    assert res.json()["error"] == "Order not found"


def test_order_visibility(api, auth_headers, create_order, client_user, other_client, owner, admin):
    order = create_order()
    url = f"{API}/orders/{order['id']}"

    assert api.get(url, headers=auth_headers(client_user)).status_code == 200
    assert api.get(url, headers=auth_headers(owner)).status_code == 200
    assert api.get(url, headers=auth_headers(admin)).status_code == 200
    assert api.get(url, headers=auth_headers(other_client)).status_code == 403

    mine = api.get(f"{API}/orders", headers=auth_headers(client_user)).json()
    assert [o["id"] for o in mine] == [order["id"]]
    assert api.get(f"{API}/orders", headers=auth_headers(other_client)).json() == []


def test_driver_claim_flow(api, auth_headers, create_order, set_status, owner, driver):
    order = create_order()
    for status in ("accepted", "preparing", "ready"):
        set_status(order["id"], status, owner)

    available = api.get(f"{API}/orders/available", headers=auth_headers(driver)).json()
    assert [o["id"] for o in available] == [order["id"]]

    res = api.post(f"{API}/orders/{order['id']}/assign", headers=auth_headers(driver))
    assert res.status_code == 200
    assert res.json()["driver_id"] == str(driver.id)

    again = api.post(f"{API}/orders/{order['id']}/assign", headers=auth_headers(driver))
    assert again.status_code == 409


def test_available_orders_drivers_only(api, auth_headers, client_user):
    res = api.get(f"{API}/orders/available", headers=auth_headers(client_user))
    assert res.status_code == 403


def test_driver_profile_and_availability(api, auth_headers, driver):
    me = api.get(f"{API}/users/me", headers=auth_headers(driver)).json()
    assert me["approved"] is True
    assert me["available"] is True

    res = api.patch(
        f"{API}/users/me/availability",
        json={"available": False},
        headers=auth_headers(driver),
    )
    assert res.status_code == 200
    assert res.json()["available"] is False


def test_client_profile_has_no_driver_fields(api, auth_headers, client_user):
    me = api.get(f"{API}/users/me", headers=auth_headers(client_user)).json()
    assert me["role"] == "client"
    assert "approved" not in me


def test_pending_driver_cannot_go_online(api, auth_headers, pending_driver):
    res = api.patch(
        f"{API}/users/me/availability",
        json={"available": True},
        headers=auth_headers(pending_driver),
    )
    assert res.status_code == 403


def test_admin_approves_driver(api, auth_headers, admin, pending_driver):
    pending = api.get(f"{API}/users/drivers/pending", headers=auth_headers(admin)).json()
    assert [d["id"] for d in pending] == [str(pending_driver.id)]

    res = api.patch(f"{API}/users/{pending_driver.id}/approve", headers=auth_headers(admin))
    assert res.status_code == 200
    assert res.json()["approved"] is True
    assert res.json()["available"] is True

    again = api.patch(f"{API}/users/{pending_driver.id}/approve", headers=auth_headers(admin))
    assert again.status_code == 409


def test_approve_requires_admin(api, auth_headers, owner, pending_driver):
    res = api.patch(f"{API}/users/{pending_driver.id}/approve", headers=auth_headers(owner))
    assert res.status_code == 403


def test_admin_rejects_pending_driver(api, auth_headers, admin, pending_driver):
    res = api.delete(f"{API}/users/{pending_driver.id}/reject", headers=auth_headers(admin))
    assert res.status_code == 204

    pending = api.get(f"{API}/users/drivers/pending", headers=auth_headers(admin)).json()
    assert pending == []

    again = api.delete(f"{API}/users/{pending_driver.id}/reject", headers=auth_headers(admin))
    assert again.status_code == 404
    assert again.json() == {"error": "Driver not found", "driverId": str(pending_driver.id)}


def test_approved_driver_cannot_be_rejected(api, auth_headers, admin, driver):
    res = api.delete(f"{API}/users/{driver.id}/reject", headers=auth_headers(admin))
    assert res.status_code == 409
    assert res.json()["driverId"] == str(driver.id)


def test_reject_requires_admin(api, auth_headers, owner, pending_driver):
    res = api.delete(f"{API}/users/{pending_driver.id}/reject", headers=auth_headers(owner))
    assert res.status_code == 403


def test_reject_non_driver_is_404(api, auth_headers, admin, client_user):
    res = api.delete(f"{API}/users/{client_user.id}/reject", headers=auth_headers(admin))
    assert res.status_code == 404


def test_admin_stats(api, auth_headers, admin, delivered_order, create_order):
    create_order()

    res = api.get(f"{API}/admin/stats", headers=auth_headers(admin))
    assert res.status_code == 200
    stats = res.json()

    assert stats["total_orders"] == 2
    assert stats["completed_orders"] == 1
    assert stats["pending_orders"] == 1
    assert stats["active_orders"] == 1
    assert stats["total_platform_earnings"] == pytest.approx(16.2)
    assert stats["total_commissions"] == pytest.approx(6.2)
    assert stats["total_driver_earnings"] == pytest.approx(46.0)
    assert stats["total_revenue"] == pytest.approx(71.0)
    assert stats["orders_today"] == 2
    assert stats["earnings_today"] == pytest.approx(16.2)
    assert stats["total_drivers"] == 1
    assert stats["available_drivers"] == 1
    assert stats["top_products"][0]["name"] == "Soda"
    assert stats["top_products"][0]["total_quantity"] == 3
    assert len(stats["latest_orders"]) == 2


def test_admin_stats_requires_admin(api, auth_headers, owner):
    assert api.get(f"{API}/admin/stats", headers=auth_headers(owner)).status_code == 403


def test_my_stats(api, auth_headers, delivered_order, client_user, driver, owner, admin):
    driver_stats = api.get(f"{API}/stats/me", headers=auth_headers(driver)).json()
    assert driver_stats["total_deliveries"] == 1
    assert driver_stats["total_earnings"] == pytest.approx(46.0)
    assert driver_stats["completed_today"] == 1
    assert driver_stats["active_orders"] == 0

    client_stats = api.get(f"{API}/stats/me", headers=auth_headers(client_user)).json()
    assert client_stats["total_orders"] == 1
    assert client_stats["total_spent"] == pytest.approx(71.0)

    owner_stats = api.get(f"{API}/stats/me", headers=auth_headers(owner)).json()
    assert owner_stats["gross_sales"] == pytest.approx(31.0)

    assert api.get(f"{API}/stats/me", headers=auth_headers(admin)).status_code == 403


def test_socket_rejects_malformed_messages(api):
    with api.websocket_connect("/ws/notifications") as ws:
        ws.send_text("not json")
        assert ws.receive_json()["type"] == "error"

        ws.send_json({"type": "register", "userId": "nope"})
        assert ws.receive_json()["type"] == "error"


def test_socket_receives_new_order(api, owner, create_order):
    with api.websocket_connect("/ws/notifications") as ws:
        ws.send_json({"type": "register", "userId": str(owner.id)})
        assert ws.receive_json() == {"type": "registered", "userId": str(owner.id)}
        assert api.get("/health").json()["active_connections"] == 1

        order = create_order()

        message = ws.receive_json()
        assert message["type"] == "notification"
        assert message["data"]["title"] == "New order"
        assert message["data"]["order_id"] == order["id"]

    assert api.get("/health").json()["active_connections"] == 0


def test_socket_receives_approval(api, auth_headers, admin, pending_driver):
    with api.websocket_connect("/ws/notifications") as ws:
        ws.send_json({"type": "register", "userId": str(pending_driver.id)})
        ws.receive_json()

        api.patch(f"{API}/users/{pending_driver.id}/approve", headers=auth_headers(admin))

        message = ws.receive_json()
        assert message["data"]["title"] == "Account approved"
        assert message["type"] == "notification"


def test_socket_re_register_moves_to_new_user(api, owner, client_user, create_order):
    with api.websocket_connect("/ws/notifications") as ws:
        ws.send_json({"type": "register", "userId": str(owner.id)})
        ws.receive_json()
        ws.send_json({"type": "register", "userId": str(client_user.id)})
        assert ws.receive_json() == {"type": "registered", "userId": str(client_user.id)}
        assert api.get("/health").json()["active_connections"] == 1

        create_order()

        # The owner's "New order" must not reach this socket
        ws.send_json({"type": "register", "userId": str(client_user.id)})
        assert ws.receive_json()["type"] == "registered"
