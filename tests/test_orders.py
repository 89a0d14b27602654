from decimal import Decimal


def _order(client, **overrides):
    payload = {"user_email": "buyer@example.com", "company_cin": "U72900KA2010PTC000111", "company_name": "Acme Pvt Ltd"}
    payload.update(overrides)
    return client.post("/api/orders/create", json=payload)


def test_create_order_then_duplicate(client, make_account):
    user = make_account(email="buyer@example.com")
    r = _order(client, user_id=user.id)
    assert r.status_code == 201
    body = r.json()
    assert body["isDuplicate"] is False
    assert body["order"]["status"] == "pending"
    assert Decimal(body["order"]["amount"]) == Decimal("299.00")
    assert body["order_id"].startswith("ORD-U72900KA2010PTC000111-")

    r = _order(client, user_id=user.id)
    assert r.status_code == 200
    dup = r.json()
    assert dup["isDuplicate"] is True
    assert dup["order_id"] == body["order_id"]
    assert dup["message"] == "Order already exists for this company today"


def test_different_company_is_not_duplicate(client, make_account):
    user = make_account(email="buyer@example.com")
    assert _order(client, user_id=user.id).status_code == 201
    r = _order(client, user_id=user.id, company_cin="L17110MH1973PLC019786", company_name="Other Ltd")
    assert r.status_code == 201
    assert r.json()["isDuplicate"] is False


def test_order_for_unknown_user_is_400(client):
    r = _order(client, user_id=4242)
    assert r.status_code == 400
    assert "foreign key" in r.json()["message"]


def test_order_requires_company_and_buyer(client):
    assert _order(client, company_cin="").status_code == 400
    assert _order(client, company_name="   ").status_code == 400
    r = client.post("/api/orders/create", json={"company_cin": "C1", "company_name": "Acme"})
    assert r.status_code == 400


def test_guest_orders_by_email(client):
    assert _order(client).status_code == 201
    assert _order(client).json()["isDuplicate"] is True
    r = client.get("/api/orders", params={"email": "buyer@example.com"})
    assert r.status_code == 200
    orders = r.json()["orders"]
    assert len(orders) == 1
    assert orders[0]["user_full_name"] is None
    assert client.get("/api/orders", params={"email": "nobody@example.com"}).json()["orders"] == []
    assert client.get("/api/orders").status_code == 400


def test_company_name_is_sanitized(client):
    r = _order(client, company_name="<b>Acme</b><script>x</script>")
    assert r.status_code == 201
    assert "<" not in r.json()["order"]["company_name"]
