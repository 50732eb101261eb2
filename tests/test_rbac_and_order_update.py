def test_order_lifecycle_scenario(admin, register_client, product):
    alice = register_client("Alice", "alice@example.com")

    r = alice.post("/orders", json={"productId": product["id"]})
    assert r.status_code == 201
    order = r.json()["order"]
    assert order["status"] == "pending"
    assert order["paymentMethod"] == "pending"
    assert order["progress"] == 25
    assert order["product"]["title"] == "Contract Review"

    r = admin.put(f"/orders/{order['id']}", json={"status": "completed"})
    assert r.status_code == 200
    assert r.json()["order"]["status"] == "completed"
    assert r.json()["order"]["progress"] == 100

    r = alice.put(f"/orders/{order['id']}", json={"status": "anything"})
    assert r.status_code == 403
    assert alice.get(f"/orders/{order['id']}").json()["order"]["status"] == "completed"


def test_status_and_payment_updates_do_not_overwrite_each_other(admin, register_client, product):
    alice = register_client("Alice", "alice@example.com")
    oid = alice.post("/orders", json={"productId": product["id"]}).json()["order"]["id"]

    assert admin.put(f"/orders/{oid}", json={"status": "in_progress"}).status_code == 200
    assert alice.put(f"/orders/{oid}", json={"paymentMethod": "bank_transfer"}).status_code == 200

    order = admin.get(f"/orders/{oid}").json()["order"]
    assert order["status"] == "in_progress"
    assert order["paymentMethod"] == "bank_transfer"


def test_client_patch_with_status_is_rejected_as_a_whole(register_client, product):
    alice = register_client("Alice", "alice@example.com")
    oid = alice.post("/orders", json={"productId": product["id"], "paymentMethod": "paypal"}).json()["order"]["id"]

    r = alice.put(f"/orders/{oid}", json={"paymentMethod": "credit_card", "status": "pending"})
    assert r.status_code == 403

    # nothing from the rejected body was applied
    assert alice.get(f"/orders/{oid}").json()["order"]["paymentMethod"] == "paypal"


def test_client_cannot_set_invoice_url(admin, register_client, product):
    alice = register_client("Alice", "alice@example.com")
    oid = alice.post("/orders", json={"productId": product["id"]}).json()["order"]["id"]

    assert alice.put(f"/orders/{oid}", json={"invoiceUrl": "/invoices/1.pdf"}).status_code == 403
    r = admin.put(f"/orders/{oid}", json={"invoiceUrl": "/invoices/1.pdf"})
    assert r.status_code == 200
    assert r.json()["order"]["invoiceUrl"] == "/invoices/1.pdf"


def test_admin_invalid_status_and_backward_transition(admin, register_client, product):
    alice = register_client("Alice", "alice@example.com")
    oid = alice.post("/orders", json={"productId": product["id"]}).json()["order"]["id"]

    r = admin.put(f"/orders/{oid}", json={"status": "shipped"})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid status value"

    assert admin.put(f"/orders/{oid}", json={"status": "completed"}).status_code == 200
    r = admin.put(f"/orders/{oid}", json={"status": "pending"})
    assert r.status_code == 200
    assert r.json()["order"]["status"] == "pending"


def test_clients_only_see_their_own_orders(admin, register_client, product):
    alice = register_client("Alice", "alice@example.com")
    bob = register_client("Bob", "bob@example.com")
    a1 = alice.post("/orders", json={"productId": product["id"]}).json()["order"]["id"]
    alice.post("/orders", json={"productId": product["id"]})
    b1 = bob.post("/orders", json={"productId": product["id"]}).json()["order"]["id"]

    alice_orders = alice.get("/orders").json()["orders"]
    assert len(alice_orders) == 2
    assert all(o["userId"] == alice.user["id"] for o in alice_orders)

    assert bob.get(f"/orders/{a1}").status_code == 403
    assert bob.put(f"/orders/{a1}", json={"paymentMethod": "paypal"}).status_code == 403
    assert bob.get(f"/orders/{b1}").status_code == 200

    all_orders = admin.get("/orders").json()["orders"]
    assert len(all_orders) == 3
    assert {o["user"]["email"] for o in all_orders} == {"alice@example.com", "bob@example.com"}


def test_order_creation_rules(client, admin, register_client, product):
    assert client.post("/orders", json={"productId": product["id"]}).status_code == 403
    assert admin.post("/orders", json={"productId": product["id"]}).status_code == 403

    alice = register_client("Alice", "alice@example.com")
    r = alice.post("/orders", json={"productId": 999})
    assert r.status_code == 404
    assert r.json() == {"error": "Product not found"}
    assert alice.post("/orders", json={}).status_code == 400


def test_anonymous_order_access_is_unauthorized(client, register_client, product):
    alice = register_client("Alice", "alice@example.com")
    oid = alice.post("/orders", json={"productId": product["id"]}).json()["order"]["id"]

    assert client.get("/orders").status_code == 401
    assert client.get(f"/orders/{oid}").status_code == 401
    assert client.put(f"/orders/{oid}", json={"paymentMethod": "paypal"}).status_code == 401


def test_only_admin_deletes_orders(admin, register_client, product):
    alice = register_client("Alice", "alice@example.com")
    oid = alice.post("/orders", json={"productId": product["id"]}).json()["order"]["id"]

    assert alice.delete(f"/orders/{oid}").status_code == 403
    assert admin.delete(f"/orders/{oid}").status_code == 200
    assert admin.delete(f"/orders/{oid}").status_code == 404
    assert alice.get("/orders").json()["orders"] == []


def test_missing_order_is_not_found(admin):
    assert admin.get("/orders/999").status_code == 404
    assert admin.put("/orders/999", json={"status": "completed"}).status_code == 404
