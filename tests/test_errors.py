from legaldesk import crud


def test_request_validation_is_reported_as_400(admin):
    r = admin.post("/products", content=b"{not json", headers={"content-type": "application/json"})
    assert r.status_code == 400
    assert set(r.json()) == {"error"}

    r = admin.get("/orders/not-a-number")
    assert r.status_code == 400
    assert r.json()["error"].startswith("order_id")


def test_unknown_route_uses_error_body(client):
    r = client.get("/no-such-route")
    assert r.status_code == 404
    assert "error" in r.json()


def test_unexpected_errors_are_hidden(make_client, monkeypatch):
    def boom(db):
        raise RuntimeError("database password is hunter2")

    monkeypatch.setattr(crud, "list_products", boom)
    c = make_client(raise_server_exceptions=False)
    r = c.get("/products")
    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error"}
    assert "hunter2" not in r.text
