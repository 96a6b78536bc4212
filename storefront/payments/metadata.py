"""
Sérialisation/désérialisation des métadonnées Stripe d'un PaymentIntent.
- cartId: panier lié.
- items: aperçu lisible [{productId, price, quantity}], tronqué.
- productIds_0..N: liste complète des produits facturés, répartie sur plusieurs clés.
"""
import json
from typing import Any, Dict, List, Optional

from storefront.errors import InvalidAmount

# Stripe: 500 caractères par valeur, 50 clés par objet
METADATA_VALUE_MAX = 500
METADATA_KEYS_MAX = 50
PRODUCT_IDS_PREFIX = "productIds_"

# module storefront.payments.metadata
def _product_id_chunks(product_ids: List[str]) -> Dict[str, str]:
    encoded = json.dumps(product_ids, separators=(",", ":"))
    chunks = [encoded[i:i + METADATA_VALUE_MAX] for i in range(0, len(encoded), METADATA_VALUE_MAX)]
    # cartId et items occupent deux clés
    if len(chunks) > METADATA_KEYS_MAX - 2:
        raise InvalidAmount("Too many products for a single payment.")
    return {f"{PRODUCT_IDS_PREFIX}{i}": chunk for i, chunk in enumerate(chunks)}

def make_metadata(cart_id: str, items: List[Dict[str, Any]]) -> Dict[str, str]:
    """
    Métadonnées d'un PaymentIntent.
    - cartId: jeton du panier lié (vérifié au retour de paiement).
    - items: JSON [{productId, price, quantity}] tronqué par lignes entières
      pour rester un JSON valide sous la limite Stripe (affichage seulement).
    - productIds_<n>: JSON complet des produits facturés découpé en morceaux,
      source du solde du panier après paiement.
    - InvalidAmount si la liste ne tient pas dans les clés disponibles.
    """
    snapshot = [
        {"productId": it.get("product_id"), "price": str(it.get("price")), "quantity": int(it.get("quantity") or 0)}
        for it in items
    ]
    product_ids = [str(it["productId"]) for it in snapshot if it["productId"]]
    encoded = json.dumps(snapshot, separators=(",", ":"))
    while len(encoded) > METADATA_VALUE_MAX and snapshot:
        snapshot.pop()
        encoded = json.dumps(snapshot, separators=(",", ":"))
    return {"cartId": str(cart_id), "items": encoded, **_product_id_chunks(product_ids)}

def with_stale_keys_cleared(intent: Dict[str, Any], metadata: Dict[str, str]) -> Dict[str, str]:
    """Stripe fusionne la metadata à la mise à jour: les morceaux en trop sont vidés ("" = clé supprimée)."""
    previous = (intent or {}).get("metadata") or {}
    stale = {k: "" for k in previous if k.startswith(PRODUCT_IDS_PREFIX) and k not in metadata}
    return {**metadata, **stale}

def extract_cart_id(intent: Dict[str, Any]) -> Optional[str]:
    meta = (intent or {}).get("metadata") or {}
    return meta.get("cartId") or None

def extract_items(intent: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Tolérant aux erreurs: retourne [] si le JSON est absent ou illisible."""
    meta = (intent or {}).get("metadata") or {}
    try:
        items = json.loads(meta.get("items") or "[]")
    except (TypeError, ValueError):
        return []
    return items if isinstance(items, list) else []

def extract_product_ids(intent: Dict[str, Any]) -> List[str]:
    """
    Produits facturés par l'intent.
    - Recompose productIds_0..N dans l'ordre.
    - Intent sans ces clés: repli sur l'aperçu 'items'.
    - [] si le JSON recomposé est illisible.
    """
    meta = (intent or {}).get("metadata") or {}
    chunks = []
    while f"{PRODUCT_IDS_PREFIX}{len(chunks)}" in meta:
        chunks.append(str(meta[f"{PRODUCT_IDS_PREFIX}{len(chunks)}"] or ""))
    if not chunks:
        return [str(it["productId"]) for it in extract_items(intent) if isinstance(it, dict) and it.get("productId")]
    try:
        ids = json.loads("".join(chunks))
    except ValueError:
        return []
    return [str(p) for p in ids if p] if isinstance(ids, list) else []

def normalize_postal_code(code: Optional[str]) -> str:
    return "".join(str(code or "").split())

def extract_postal_code(intent: Dict[str, Any]) -> str:
    """Code postal de livraison du PaymentIntent, espaces retirés ("" si absent)."""
    shipping = (intent or {}).get("shipping") or {}
    address = shipping.get("address") or {}
    return normalize_postal_code(address.get("postal_code"))
