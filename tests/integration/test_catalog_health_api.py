def test_products_listing(client, monkeypatch):
    monkeypatch.setattr(
        "storefront.catalog.repository.fetch_products",
        lambda **kwargs: ([{"id": "p1", "name": "deck", "categories": {"name": "decks"}}], 1),
    )
    resp = client.get("/api/v1/products?sort=price.desc&page=1&per_page=10")
    assert resp.status_code == 200
    assert resp.json() == {"data": [{"id": "p1", "name": "deck", "category": "decks"}], "page_count": 1, "error": None}

def test_products_unknown_sort(client):
    resp = client.get("/api/v1/products?sort=secret.asc")
    assert resp.status_code == 422
    assert resp.json()["code"] == "invalid_sort"

def test_featured_products(client, monkeypatch):
    monkeypatch.setattr("storefront.catalog.repository.fetch_featured_products", lambda limit: [{"id": "p1"}])
    resp = client.get("/api/v1/products/featured")
    assert resp.json() == {"data": [{"id": "p1"}], "error": None}

def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}
    assert resp.headers["x-content-type-options"] == "nosniff"

def test_health_cache(client):
    assert client.get("/health/cache").json() == {"ok": True}

def test_health_rate_limit_disabled_in_tests(client):
    assert client.get("/health/rate-limit").json()["enabled"] is False
