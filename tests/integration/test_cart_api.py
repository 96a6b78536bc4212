CART_URL = "/api/v1/cart"


def _set_cookie_header(resp) -> str:
    return resp.headers.get("set-cookie", "")

def test_add_item_sets_cart_cookie(client, carts, catalog):
    catalog.add_product("p1", inventory=5)
    resp = client.post(f"{CART_URL}/items", json={"product_id": "p1", "quantity": 2})
    assert resp.status_code == 200
    assert resp.json() == {"data": [{"product_id": "p1", "quantity": 2}], "error": None}

    header = _set_cookie_header(resp).lower()
    assert "cartid=" in header
    assert "httponly" in header
    assert "samesite=lax" in header
    assert "max-age=2592000" in header
    assert client.cookies.get("cartId") in carts.rows

def test_add_twice_merges_and_keeps_cookie(client, carts, catalog):
    catalog.add_product("p1", inventory=10)
    client.post(f"{CART_URL}/items", json={"product_id": "p1", "quantity": 2})
    resp = client.post(f"{CART_URL}/items", json={"product_id": "p1", "quantity": 3})
    assert resp.json()["data"] == [{"product_id": "p1", "quantity": 5}]
    # même jeton: pas de nouveau Set-Cookie
    assert "cartId=" not in _set_cookie_header(resp)

def test_read_cart_views(client, carts, catalog):
    catalog.add_product("p1", price="12.00", inventory=5)
    client.post(f"{CART_URL}/items", json={"product_id": "p1", "quantity": 1})
    resp = client.get(CART_URL)
    assert resp.status_code == 200
    view = resp.json()["data"][0]
    assert view["id"] == "p1"
    assert view["price"] == "12.00"
    assert view["quantity"] == 1
    assert resp.headers["cache-control"].startswith("no-store")

    stores = client.get(f"{CART_URL}/stores").json()["data"]
    assert stores == [catalog.products["p1"]["store_id"]]

def test_read_cart_without_cookie_is_empty(client, carts, catalog):
    assert client.get(CART_URL).json() == {"data": [], "error": None}

def test_out_of_stock_is_typed_error(client, carts, catalog):
    catalog.add_product("p1", inventory=1)
    resp = client.post(f"{CART_URL}/items", json={"product_id": "p1", "quantity": 3})
    assert resp.status_code == 409
    assert resp.json() == {"data": None, "error": "Product is out of stock, please try again later.", "code": "out_of_stock"}
    assert carts.rows == {}

def test_unknown_product_is_404(client, carts, catalog):
    resp = client.post(f"{CART_URL}/items", json={"product_id": "nope", "quantity": 1})
    assert resp.status_code == 404
    assert resp.json()["code"] == "product_not_found"

def test_invalid_body_is_422(client, carts, catalog):
    resp = client.post(f"{CART_URL}/items", json={"product_id": "p1", "quantity": 0})
    assert resp.status_code == 422

def test_patch_quantity_and_zero_removes(client, carts, catalog):
    catalog.add_product("p1", inventory=10)
    catalog.add_product("p2", inventory=10)
    client.post(f"{CART_URL}/items", json={"product_id": "p1", "quantity": 1})
    client.post(f"{CART_URL}/items", json={"product_id": "p2", "quantity": 1})

    resp = client.patch(f"{CART_URL}/items/p1", json={"quantity": 4})
    assert {"product_id": "p1", "quantity": 4} in resp.json()["data"]

    resp = client.patch(f"{CART_URL}/items/p1", json={"quantity": 0})
    assert resp.json()["data"] == [{"product_id": "p2", "quantity": 1}]

    resp = client.delete(f"{CART_URL}/items/p1")
    assert resp.status_code == 200
    assert resp.json()["data"] == [{"product_id": "p2", "quantity": 1}]

def test_patch_unknown_cart_clears_cookie(client, carts, catalog):
    client.cookies.set("cartId", "3f0e2b0c-0000-4000-8000-000000000000")
    resp = client.patch(f"{CART_URL}/items/p1", json={"quantity": 2})
    assert resp.status_code == 404
    assert resp.json()["code"] == "cart_not_found"
    assert "max-age=0" in _set_cookie_header(resp).lower()

def test_patch_unknown_item(client, carts, catalog):
    catalog.add_product("p1")
    client.post(f"{CART_URL}/items", json={"product_id": "p1", "quantity": 1})
    resp = client.patch(f"{CART_URL}/items/p2", json={"quantity": 2})
    assert resp.status_code == 404
    assert resp.json()["code"] == "item_not_found"

def test_delete_many_then_last_item_expires_cookie(client, carts, catalog):
    catalog.add_product("p1")
    catalog.add_product("p2")
    client.post(f"{CART_URL}/items", json={"product_id": "p1", "quantity": 1})
    client.post(f"{CART_URL}/items", json={"product_id": "p2", "quantity": 1})

    resp = client.post(f"{CART_URL}/items/delete", json={"product_ids": ["p1", "p2"]})
    assert resp.json() == {"data": [], "error": None}
    assert "max-age=0" in _set_cookie_header(resp).lower()
    assert carts.rows == {}

def test_clear_cart(client, carts, catalog):
    catalog.add_product("p1")
    client.post(f"{CART_URL}/items", json={"product_id": "p1", "quantity": 1})
    resp = client.delete(CART_URL)
    assert resp.status_code == 200
    assert carts.rows == {}

def test_clear_without_cart_is_404(client, carts, catalog):
    resp = client.delete(CART_URL)
    assert resp.status_code == 404
    assert resp.json()["code"] == "cart_not_found"

def test_closed_cart_gets_new_token(client, carts, catalog):
    catalog.add_product("p1")
    closed = carts.add([{"productId": "p1", "quantity": 1}], closed=True)
    client.cookies.set("cartId", closed.id)
    resp = client.post(f"{CART_URL}/items", json={"product_id": "p1", "quantity": 2})
    assert resp.json()["data"] == [{"product_id": "p1", "quantity": 2}]
    assert closed.id not in carts.rows
    (new_id,) = carts.rows.keys()
    assert f"cartId={new_id}" in _set_cookie_header(resp)
