import pytest

ADDRESS = {"street": "1 Main St", "city": "Pune", "state": "MH", "zip": "411001"}


def _login(client, email="alice@example.com", **extra):
    resp = client.post("/session/login", json={"email": email, **extra})
    assert resp.status_code == 200
    return resp.json()["user"]


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["initialized"] is True
    assert resp.json()["products"] == 5


def test_mock_login_assigns_roles(client):
    user = _login(client, "shopper@example.com")
    assert (user["role"], user["name"]) == ("user", "shopper")
    admin = _login(client, "admin@uhsinstore.com", name="Boss")
    assert (admin["role"], admin["name"]) == ("admin", "Boss")
    assert client.get("/session").json()["user"]["email"] == "admin@uhsinstore.com"


def test_login_rejects_bad_email(client):
    assert client.post("/session/login", json={"email": "nope"}).status_code == 400


def test_list_and_filter_products(client):
    body = client.get("/products", params={"category": "Audio"}).json()
    assert [p["name"] for p in body["products"]] == ["SonicWave Elite TWS"]
    body = client.get("/products", params={"sort": "price_asc"}).json()
    assert body["products"][0]["name"] == "HyperConnect HDMI 2.1"
    assert "ratingCount" in body["products"][0]


def test_product_detail_and_unknown_product(client):
    body = client.get("/products/1").json()
    assert body["product"]["name"] == "ThunderCharge 65W GaN"
    assert body["wishlisted"] is False
    assert client.get("/products/missing").status_code == 404


def test_wishlist_redirects_to_auth_when_signed_out(client):
    resp = client.post("/wishlist/1")
    assert resp.status_code == 401
    assert resp.json()["redirect"] == "auth"


def test_cart_and_coupon(client):
    client.post("/cart/3")
    client.post("/cart/3")
    assert client.post("/cart/missing").status_code == 404
    body = client.get("/cart", params={"coupon": "SAVE10"}).json()
    assert body["subtotal"] == 49.98
    assert round(body["total"], 2) == 44.98
    assert client.get("/cart", params={"coupon": "BOGUS"}).status_code == 400
    assert client.delete("/cart/3").json()["cart_count"] == 0
    client.post("/cart/1")
    client.delete("/cart")
    assert client.get("/cart").json()["lines"] == []


def test_checkout_flow(client):
    _login(client)
    client.post("/cart/1")
    client.post("/cart/4")
    resp = client.post("/checkout", json={"paymentMethod": "COD", "shippingAddress": ADDRESS})
    assert resp.status_code == 200
    body = resp.json()
    assert body["order"]["total"] == pytest.approx(84.99)
    assert body["order"]["status"] == "Processing"
    assert body["redirect"] == "orders"
    # the fake remote answers 503, so the order only lives locally
    assert body["notice"]
    assert client.get("/cart").json()["item_count"] == 0

    orders = client.get("/orders").json()["orders"]
    assert [o["id"] for o in orders] == [body["order"]["id"]]

    cancelled = client.post(f"/orders/{body['order']['id']}/cancel").json()["order"]
    assert cancelled["status"] == "Cancelled"
    assert client.post(f"/orders/{body['order']['id']}/cancel").status_code == 400


def test_checkout_validation(client):
    assert client.post("/checkout", json={"paymentMethod": "COD", "shippingAddress": ADDRESS}).status_code == 401
    _login(client)
    resp = client.post("/checkout", json={"paymentMethod": "COD", "shippingAddress": ADDRESS})
    assert resp.json()["detail"] == "Your cart is empty"
    client.post("/cart/1")
    partial = {**ADDRESS, "zip": " "}
    resp = client.post("/checkout", json={"paymentMethod": "COD", "shippingAddress": partial})
    assert resp.status_code == 400
    assert "delivery destination" in resp.json()["detail"]


def test_rate_and_review(client):
    assert client.post("/products/2/rate", json={"rating": 9}).status_code == 422
    before = client.get("/products/2").json()["product"]["ratingCount"]
    body = client.post("/products/2/rate", json={"rating": 5}).json()
    assert body["rating_count"] == before + 1

    resp = client.post("/products/2/reviews", json={"userName": "Bo", "rating": 4, "comment": " "})
    assert resp.status_code == 400
    resp = client.post("/products/2/reviews", json={"userName": "Bo", "rating": 4, "comment": "Great"})
    assert resp.json()["product"]["reviews"][0]["userName"] == "Bo"


def test_admin_routes_need_admin_role(client):
    assert client.get("/admin/logs").status_code == 401
    _login(client)
    assert client.get("/admin/logs").status_code == 403


def test_admin_product_lifecycle(client):
    _login(client, "admin@uhsinstore.com")
    resp = client.put("/admin/products", json={"name": "Dock", "stock": 2})
    assert resp.status_code == 400
    assert resp.json()["missing"] == ["price", "category"]

    product = client.put("/admin/products", json={"name": "Dock", "price": 60, "category": "Connectivity"}).json()["product"]
    assert client.get("/products").json()["products"][0]["id"] == product["id"]

    assert client.delete(f"/admin/products/{product['id']}").status_code == 200
    logs = client.get("/admin/logs").json()["logs"]
    assert [(l["action"], l["type"]) for l in logs] == [("Deleted Product", "error"), ("Created Product", "success")]
    stats = client.get("/admin/stats").json()
    assert stats["products_count"] == 5


def test_admin_order_status_and_users(client):
    _login(client)
    client.post("/cart/5")
    order_id = client.post("/checkout", json={"paymentMethod": "COD", "shippingAddress": ADDRESS}).json()["order"]["id"]
    shopper_id = client.get("/session").json()["user"]["id"]

    _login(client, "admin@uhsinstore.com")
    resp = client.put(f"/admin/orders/{order_id}/status", json={"status": "Shipped"})
    assert resp.json()["order"]["status"] == "Shipped"
    assert client.get("/admin/orders", params={"status": "Shipped"}).json()["orders"][0]["id"] == order_id

    users = client.get("/admin/users").json()["users"]
    assert {u["id"] for u in users} >= {shopper_id}
    promoted = client.post(f"/admin/users/{shopper_id}/role").json()["user"]
    assert promoted["role"] == "admin"
    assert client.post("/admin/users/ghost/role").status_code == 404


def test_logout(client):
    _login(client)
    client.post("/cart/1")
    assert client.post("/session/logout").json()["redirect"] == "home"
    assert client.get("/session").json() == {"user": None, "cart_count": 0}


def test_cart_count_counts_quantities(client):
    client.post("/cart/1")
    assert client.post("/cart/1").json()["cart_count"] == 2
    client.post("/cart/2")
    assert client.get("/session").json()["cart_count"] == 3
    assert client.get("/cart").json()["item_count"] == 3
    assert client.delete("/cart/2").json()["cart_count"] == 2


def test_rating_out_of_range_is_a_client_error(client, monkeypatch):
    from store import Store

    original = Store.rate_product

    # Push the vote past the request model so the store range check answers.
    def rate(self, product_id, rating):
        return original(self, product_id, rating + 5)

    monkeypatch.setattr(Store, "rate_product", rate)
    resp = client.post("/products/1/rate", json={"rating": 3})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Rating must be between 1 and 5"
