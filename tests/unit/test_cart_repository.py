import pytest
from unittest.mock import MagicMock

import storefront.cart.repository as repo
from storefront.cart.models import Cart, LineItem
from storefront.errors import CartConflict, StorageError

CART_ID = "3f0e2b0c-0000-4000-8000-000000000000"

class _Resp:
    def __init__(self, data=None, count=None):
        self.data = data
        self.count = count

def _mk_client(data=None):
    # chaîne PostgREST: chaque méthode renvoie le même builder
    client = MagicMock()
    builder = MagicMock()
    client.table.return_value = builder
    for name in ("select", "insert", "update", "delete", "eq", "limit"):
        getattr(builder, name).return_value = builder
    builder.execute.return_value = _Resp(data=data)
    return client, builder

def _row(**overrides):
    row = {"id": CART_ID, "items": [{"productId": "p1", "quantity": 2}], "closed": False, "version": 3}
    row.update(overrides)
    return row

def test_is_valid_token():
    assert repo.is_valid_token(CART_ID) is True
    assert repo.is_valid_token("abc") is False
    assert repo.is_valid_token(None) is False

def test_fetch_cart_parses_row(monkeypatch):
    client, builder = _mk_client([_row()])
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    cart = repo.fetch_cart(CART_ID)
    assert cart.id == CART_ID
    assert cart.items == [LineItem(product_id="p1", quantity=2)]
    builder.eq.assert_called_with("id", CART_ID)

def test_fetch_cart_invalid_token_skips_query(monkeypatch):
    client, _ = _mk_client([_row()])
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    assert repo.fetch_cart("not-a-uuid") is None
    client.table.assert_not_called()

def test_fetch_cart_missing_row(monkeypatch):
    client, _ = _mk_client([])
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    assert repo.fetch_cart(CART_ID) is None

def test_fetch_cart_corrupted_items_raise_storage_error(monkeypatch):
    client, _ = _mk_client([_row(items=[{"productId": "p1", "quantity": 0}])])
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    with pytest.raises(StorageError):
        repo.fetch_cart(CART_ID)

def test_fetch_cart_exception(monkeypatch):
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: (_ for _ in ()).throw(Exception("boom")))
    with pytest.raises(StorageError):
        repo.fetch_cart(CART_ID)

def test_insert_cart_payload(monkeypatch):
    client, builder = _mk_client([_row(version=1)])
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    cart = repo.insert_cart([LineItem(product_id="p1", quantity=2)])
    assert cart.version == 1
    builder.insert.assert_called_once_with({
        "items": [{"productId": "p1", "quantity": 2}],
        "closed": False,
        "version": 1,
    })

def test_update_items_is_conditional_on_version(monkeypatch):
    client, builder = _mk_client([_row(version=4, items=[{"productId": "p1", "quantity": 5}])])
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    cart = Cart.model_validate(_row())
    updated = repo.update_items(cart, [LineItem(product_id="p1", quantity=5)])
    assert updated.version == 4
    payload = builder.update.call_args.args[0]
    assert payload["version"] == 4
    assert payload["items"] == [{"productId": "p1", "quantity": 5}]
    builder.eq.assert_any_call("id", CART_ID)
    builder.eq.assert_any_call("version", 3)

def test_update_items_no_row_is_conflict(monkeypatch):
    client, _ = _mk_client([])
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    with pytest.raises(CartConflict):
        repo.update_items(Cart.model_validate(_row()), [LineItem(product_id="p1", quantity=1)])

def test_close_and_delete(monkeypatch):
    client, builder = _mk_client([_row(closed=True)])
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    assert repo.close_cart(CART_ID) is True
    assert builder.update.call_args.args[0]["closed"] is True

    repo.delete_cart(CART_ID)
    builder.delete.assert_called_once()
    repo.delete_cart("garbage")
    builder.delete.assert_called_once()
