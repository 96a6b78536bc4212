"""
Accès aux données pour la feature 'cart' (table 'carts').
- Les lignes sont validées en entrée/sortie via storefront.cart.models (pydantic).
- Les mises à jour d'items sont conditionnelles sur 'version' (compare-and-set):
  une écriture concurrente perdue lève CartConflict au lieu d'écraser l'autre.
- Les erreurs Supabase sont journalisées puis converties en StorageError.
"""
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID
import logging

from pydantic import ValidationError

import storefront.infra.supabase_client as supabase_client
from storefront.errors import CartConflict, StorageError
from .models import Cart, LineItem

logger = logging.getLogger(__name__)

CARTS_TABLE = "carts"

# module storefront.cart.repository
def is_valid_token(cart_id: Optional[str]) -> bool:
    """Un jeton panier est un UUID; tout autre contenu de cookie est ignoré."""
    if not cart_id:
        return False
    try:
        UUID(str(cart_id))
        return True
    except ValueError:
        return False

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def _items_payload(items: List[LineItem]) -> List[dict]:
    return [LineItem.model_validate(it).to_row() for it in items]

def _first_cart(res) -> Optional[Cart]:
    rows = res.data or []
    row = rows[0] if isinstance(rows, list) and rows else None
    if not row:
        return None
    return Cart.model_validate(row)

def fetch_cart(cart_id: str) -> Optional[Cart]:
    """
    Lit un panier par son jeton.
    - Retourne None si le jeton est invalide ou si la ligne n'existe pas.
    - Lève StorageError si la base est injoignable ou la ligne corrompue.
    """
    if not is_valid_token(cart_id):
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(CARTS_TABLE)
            .select("*")
            .eq("id", str(cart_id))
            .limit(1)
            .execute()
        )
        return _first_cart(res)
    except ValidationError:
        logger.exception("cart.repository.fetch_cart invalid row cart_id=%s", cart_id)
        raise StorageError()
    except Exception:
        logger.exception("cart.repository.fetch_cart failed cart_id=%s", cart_id)
        raise StorageError()

def insert_cart(items: List[LineItem]) -> Cart:
    """Crée un panier ouvert avec les items donnés et retourne la ligne créée (avec son id)."""
    payload = {"items": _items_payload(items), "closed": False, "version": 1}
    try:
        res = supabase_client.get_service_supabase().table(CARTS_TABLE).insert(payload).execute()
        cart = _first_cart(res)
    except Exception:
        logger.exception("cart.repository.insert_cart failed items=%s", len(items))
        raise StorageError()
    if cart is None:
        logger.error("cart.repository.insert_cart returned no row")
        raise StorageError()
    return cart

def update_items(cart: Cart, items: List[LineItem]) -> Cart:
    """
    Remplace la liste complète des items si la version lue est toujours la version stockée.
    - Succès: retourne le panier à jour (version + 1).
    - Aucune ligne touchée: le panier a changé (ou disparu) entre lecture et écriture -> CartConflict.
    """
    payload = {
        "items": _items_payload(items),
        "version": cart.version + 1,
        "updated_at": _now_iso(),
    }
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(CARTS_TABLE)
            .update(payload)
            .eq("id", cart.id)
            .eq("version", cart.version)
            .execute()
        )
        updated = _first_cart(res)
    except Exception:
        logger.exception("cart.repository.update_items failed cart_id=%s", cart.id)
        raise StorageError()
    if updated is None:
        logger.warning("cart.repository.update_items version conflict cart_id=%s version=%s", cart.id, cart.version)
        raise CartConflict()
    return updated

def set_payment_intent(cart_id: str, payment_intent_id: Optional[str], client_secret: Optional[str]) -> None:
    """Attache (ou détache avec None) le PaymentIntent courant du panier."""
    try:
        (
            supabase_client.get_service_supabase()
            .table(CARTS_TABLE)
            .update({
                "payment_intent_id": payment_intent_id,
                "client_secret": client_secret,
                "updated_at": _now_iso(),
            })
            .eq("id", str(cart_id))
            .execute()
        )
    except Exception:
        logger.exception("cart.repository.set_payment_intent failed cart_id=%s", cart_id)
        raise StorageError()

def close_cart(cart_id: str) -> bool:
    """Ferme le panier (paiement réussi). Retourne True si une ligne a été modifiée."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(CARTS_TABLE)
            .update({"closed": True, "updated_at": _now_iso()})
            .eq("id", str(cart_id))
            .execute()
        )
        return bool(res.data)
    except Exception:
        logger.exception("cart.repository.close_cart failed cart_id=%s", cart_id)
        raise StorageError()

def delete_cart(cart_id: str) -> None:
    """Supprime la ligne panier (no-op si elle n'existe pas)."""
    if not is_valid_token(cart_id):
        return
    try:
        supabase_client.get_service_supabase().table(CARTS_TABLE).delete().eq("id", str(cart_id)).execute()
    except Exception:
        logger.exception("cart.repository.delete_cart failed cart_id=%s", cart_id)
        raise StorageError()
