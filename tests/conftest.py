import os

os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import uuid
from typing import Any, Dict, Generator, List, Optional
from unittest.mock import MagicMock

import fakeredis
import pytest
from fastapi.testclient import TestClient

from storefront.app import app as fastapi_app
from storefront.cart.models import Cart, LineItem
from storefront.errors import CartConflict
from storefront.utils import cache
from storefront.utils.security import require_user

STORE_ID = "11111111-1111-4111-8111-111111111111"
OTHER_STORE_ID = "22222222-2222-4222-8222-222222222222"
ACCOUNT_ID = "acct_test_store"

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

@pytest.fixture
def seller():
    return {"id": "seller-1", "email": "seller@example.com", "metadata": {}, "token": "fake-token"}

@pytest.fixture
def seller_client(app, client, seller):
    app.dependency_overrides[require_user] = lambda: seller
    try:
        yield client
    finally:
        app.dependency_overrides.pop(require_user, None)

# Aucun accès réseau Supabase pendant les tests
@pytest.fixture(autouse=True)
def mock_supabase(monkeypatch):
    monkeypatch.setattr("storefront.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: MagicMock())

# Cache Redis en mémoire
@pytest.fixture(autouse=True)
def fake_cache(monkeypatch):
    fake = fakeredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr(cache, "_client", fake)
    return fake


class FakeCartStore:
    """Table 'carts' en mémoire, mêmes règles que le repository (version compare-and-set)."""

    def __init__(self):
        self.rows: Dict[str, Cart] = {}
        self.fail_next_update = False

    def add(self, items: List[Dict[str, Any]], **fields) -> Cart:
        cart = Cart(id=str(uuid.uuid4()), items=items, **fields)
        self.rows[cart.id] = cart
        return cart

    def fetch_cart(self, cart_id: str) -> Optional[Cart]:
        cart = self.rows.get(str(cart_id))
        return cart.model_copy(deep=True) if cart else None

    def insert_cart(self, items: List[LineItem]) -> Cart:
        cart = Cart(id=str(uuid.uuid4()), items=[LineItem.model_validate(it) for it in items])
        self.rows[cart.id] = cart
        return cart.model_copy(deep=True)

    def update_items(self, cart: Cart, items: List[LineItem]) -> Cart:
        stored = self.rows.get(cart.id)
        if self.fail_next_update or stored is None or stored.version != cart.version:
            self.fail_next_update = False
            raise CartConflict()
        stored.items = [LineItem.model_validate(it) for it in items]
        stored.version += 1
        return stored.model_copy(deep=True)

    def set_payment_intent(self, cart_id: str, payment_intent_id, client_secret) -> None:
        stored = self.rows.get(str(cart_id))
        if stored:
            stored.payment_intent_id = payment_intent_id
            stored.client_secret = client_secret

    def close_cart(self, cart_id: str) -> bool:
        stored = self.rows.get(str(cart_id))
        if not stored:
            return False
        stored.closed = True
        return True

    def delete_cart(self, cart_id: str) -> None:
        self.rows.pop(str(cart_id), None)


class FakeCatalog:
    """Produits, boutiques et comptes Stripe en mémoire (lignes au format Supabase)."""

    def __init__(self):
        self.products: Dict[str, Dict[str, Any]] = {}
        self.stores: Dict[str, Dict[str, Any]] = {}
        self.payments: Dict[str, Dict[str, Any]] = {}

    def add_store(self, store_id: str, *, user_id: str = "seller-1", account_id: Optional[str] = None, submitted: bool = False):
        self.stores[store_id] = {"id": store_id, "name": f"store-{store_id[:4]}", "user_id": user_id, "stripe_account_id": account_id if submitted else None}
        if account_id:
            self.payments[store_id] = {"store_id": store_id, "stripe_account_id": account_id, "details_submitted": submitted}
        return self.stores[store_id]

    def add_product(self, product_id: str, *, price: str = "10.00", inventory: int = 10, store_id: str = STORE_ID, created_at: str = "2024-01-01T00:00:00"):
        self.products[product_id] = {
            "id": product_id,
            "name": f"product-{product_id}",
            "images": [],
            "price": price,
            "inventory": inventory,
            "store_id": store_id,
            "created_at": created_at,
        }
        return self.products[product_id]

    def fetch_product(self, product_id: str):
        return self.products.get(str(product_id))

    def fetch_products_by_ids(self, ids, store_id=None):
        rows = []
        for pid in ids:
            product = self.products.get(str(pid))
            if not product or (store_id and product["store_id"] != store_id):
                continue
            store = self.stores.get(product["store_id"]) or {}
            rows.append({
                **product,
                "stores": {"name": store.get("name"), "stripe_account_id": store.get("stripe_account_id")},
                "categories": {"name": "decks"},
                "subcategories": None,
            })
        return rows

    def fetch_store(self, store_id: str):
        return self.stores.get(str(store_id))

    def fetch_store_payment(self, store_id: str):
        return self.payments.get(str(store_id))

    def upsert_store_payment(self, store_id: str, values: Dict[str, Any]) -> None:
        self.payments[str(store_id)] = {**self.payments.get(str(store_id), {}), "store_id": str(store_id), **values}

    def update_store_stripe_account(self, store_id: str, account_id: str) -> None:
        self.stores[str(store_id)]["stripe_account_id"] = account_id


@pytest.fixture
def carts(monkeypatch) -> FakeCartStore:
    store = FakeCartStore()
    for name in ("fetch_cart", "insert_cart", "update_items", "set_payment_intent", "close_cart", "delete_cart"):
        monkeypatch.setattr(f"storefront.cart.repository.{name}", getattr(store, name))
    return store

@pytest.fixture
def catalog(monkeypatch) -> FakeCatalog:
    fake = FakeCatalog()
    for name in ("fetch_product", "fetch_products_by_ids", "fetch_store"):
        monkeypatch.setattr(f"storefront.catalog.repository.{name}", getattr(fake, name))
    for name in ("fetch_store_payment", "upsert_store_payment", "update_store_stripe_account"):
        monkeypatch.setattr(f"storefront.payments.repository.{name}", getattr(fake, name))
    fake.add_store(STORE_ID, account_id=ACCOUNT_ID, submitted=True)
    return fake

@pytest.fixture
def stripe_calls(monkeypatch):
    """
    Remplace les appels Stripe de l'orchestrateur et enregistre les appels.
    - retrieve_payment_intent renvoie stripe_calls.intents[id] (dict modifiable par le test).
    """
    calls: Dict[str, Any] = {"create": [], "update": [], "intents": {}}

    def _create(**kwargs):
        calls["create"].append(kwargs)
        intent_id = f"pi_{len(calls['create'])}"
        intent = {"id": intent_id, "client_secret": f"{intent_id}_secret", "status": "requires_payment_method", "amount": kwargs["amount"], "metadata": kwargs["metadata"]}
        calls["intents"][intent_id] = intent
        return intent

    def _update(intent_id, **kwargs):
        calls["update"].append({"id": intent_id, **kwargs})
        intent = calls["intents"].setdefault(intent_id, {"id": intent_id, "status": "requires_payment_method"})
        intent.update({"amount": kwargs["amount"], "metadata": kwargs["metadata"]})
        return {**intent, "client_secret": f"{intent_id}_secret"}

    def _retrieve(intent_id, stripe_account):
        return dict(calls["intents"].get(intent_id) or {"id": intent_id, "status": "canceled"})

    monkeypatch.setattr("storefront.payments.stripe_client.create_payment_intent", _create)
    monkeypatch.setattr("storefront.payments.stripe_client.update_payment_intent", _update)
    monkeypatch.setattr("storefront.payments.stripe_client.retrieve_payment_intent", _retrieve)
    return calls
