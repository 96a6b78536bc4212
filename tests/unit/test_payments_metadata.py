import json

import pytest

from storefront.errors import InvalidAmount
from storefront.payments import metadata as meta


def test_make_metadata_snapshot():
    md = meta.make_metadata("cart-1", [{"product_id": "p1", "price": "10.00", "quantity": 2}])
    assert md["cartId"] == "cart-1"
    assert json.loads(md["items"]) == [{"productId": "p1", "price": "10.00", "quantity": 2}]

def test_make_metadata_truncates_whole_lines():
    items = [{"product_id": f"{i:036d}", "price": "10.00", "quantity": 1} for i in range(20)]
    md = meta.make_metadata("cart-1", items)
    assert len(md["items"]) <= meta.METADATA_VALUE_MAX
    decoded = json.loads(md["items"])
    assert 0 < len(decoded) < 20
    assert decoded[0]["productId"] == items[0]["product_id"]

def test_extract_helpers():
    intent = {
        "metadata": {"cartId": "c1", "items": json.dumps([{"productId": "p1", "quantity": 1}])},
        "shipping": {"address": {"postal_code": " 75 001 "}},
    }
    assert meta.extract_cart_id(intent) == "c1"
    assert meta.extract_items(intent) == [{"productId": "p1", "quantity": 1}]
    assert meta.extract_postal_code(intent) == "75001"

def test_extract_helpers_tolerate_missing_data():
    assert meta.extract_cart_id({}) is None
    assert meta.extract_items({"metadata": {"items": "{broken"}}) == []
    assert meta.extract_postal_code({"shipping": None}) == ""
    assert meta.normalize_postal_code(None) == ""

def test_make_metadata_keeps_every_product_id():
    long_ids = [f"{i:036d}" * 4 for i in range(30)]
    md = meta.make_metadata("cart-1", [{"product_id": p, "price": "1.00", "quantity": 1} for p in long_ids])
    chunk_keys = [k for k in md if k.startswith(meta.PRODUCT_IDS_PREFIX)]
    assert len(chunk_keys) > 1
    assert all(len(md[k]) <= meta.METADATA_VALUE_MAX for k in chunk_keys)
    assert meta.extract_product_ids({"metadata": md}) == long_ids

def test_make_metadata_oversized_single_id():
    md = meta.make_metadata("cart-1", [{"product_id": "x" * 600, "price": "1.00", "quantity": 1}])
    assert md["items"] == "[]"
    assert meta.extract_product_ids({"metadata": md}) == ["x" * 600]

def test_make_metadata_too_many_products():
    ids = [f"{i:036d}" * 10 for i in range(100)]
    with pytest.raises(InvalidAmount):
        meta.make_metadata("cart-1", [{"product_id": p, "price": "1.00", "quantity": 1} for p in ids])

def test_extract_product_ids_fallbacks():
    legacy = {"metadata": {"items": json.dumps([{"productId": "p1"}, {"quantity": 1}])}}
    assert meta.extract_product_ids(legacy) == ["p1"]
    assert meta.extract_product_ids({"metadata": {"productIds_0": "[\"p1\""}}) == []
    assert meta.extract_product_ids({}) == []

def test_with_stale_keys_cleared():
    previous = {"metadata": {"cartId": "cart-1", "productIds_0": "[\"p1\",", "productIds_1": "\"p2\"]"}}
    md = meta.with_stale_keys_cleared(previous, meta.make_metadata("cart-1", [{"product_id": "p1", "price": "1.00", "quantity": 1}]))
    assert md["productIds_0"] == "[\"p1\"]"
    assert md["productIds_1"] == ""
    assert meta.extract_product_ids({"metadata": md}) == ["p1"]
