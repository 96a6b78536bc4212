"""
Cas d'usage 'cart': moteur de réconciliation du panier.

- Le jeton panier (cart_id) est un argument explicite de chaque opération;
  la vue le lit dans le cookie et repose celui renvoyé par CartMutation.
- Chaque mutation relit le panier, recalcule la liste complète et la réécrit
  (écriture conditionnelle sur la version, voir repository.update_items).
- Chaque mutation déclenche revalidate_path("/").
"""
import logging
from typing import Dict, Iterable, List, Optional

from storefront.catalog import repository as catalog_repo
from storefront.errors import (
    CartNotFound,
    InvalidQuantity,
    ItemNotFound,
    OutOfStock,
    ProductNotFound,
    StorefrontError,
)
from storefront.utils import cache
from . import repository
from .models import Cart, CartMutation, LineItem, LineItemView

logger = logging.getLogger(__name__)

# module storefront.cart.service
def _check_quantity(quantity: int, minimum: int) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < minimum:
        raise InvalidQuantity()
    return quantity

def _check_stock(product_id: str, quantity: int) -> Dict:
    product = catalog_repo.fetch_product(product_id)
    if not product:
        raise ProductNotFound()
    if int(product.get("inventory") or 0) < quantity:
        raise OutOfStock()
    return product

def _to_view(row: Dict, quantity: int) -> LineItemView:
    store = row.get("stores") or {}
    category = row.get("categories") or {}
    subcategory = row.get("subcategories") or {}
    return LineItemView(
        id=str(row.get("id")),
        name=row.get("name") or "",
        images=row.get("images") or [],
        category=category.get("name"),
        subcategory=subcategory.get("name"),
        price=str(row.get("price") or "0"),
        inventory=int(row.get("inventory") or 0),
        store_id=str(row["store_id"]) if row.get("store_id") else None,
        store_name=store.get("name"),
        store_stripe_account_id=store.get("stripe_account_id"),
        quantity=quantity,
    )

def _view_sort_key(row: Dict):
    # boutiques connectées à Stripe d'abord, puis produits les plus anciens d'abord
    connected = bool((row.get("stores") or {}).get("stripe_account_id"))
    return (not connected, str(row.get("created_at") or ""))

def _load_cart(cart_id: Optional[str]) -> Optional[Cart]:
    if not repository.is_valid_token(cart_id):
        return None
    return repository.fetch_cart(cart_id)

# --- Lectures ---
def get_cart_items(cart_id: Optional[str]) -> List[LineItem]:
    """Items bruts persistés; [] si jeton/panier absent ou lecture impossible."""
    try:
        cart = _load_cart(cart_id)
    except StorefrontError:
        return []
    return list(cart.items) if cart else []

def get_cart(cart_id: Optional[str], store_id: Optional[str] = None) -> List[LineItemView]:
    """
    Lignes du panier jointes au produit vivant (nom, images, prix, stock, boutique).
    - Ne lève jamais: [] si jeton absent, panier absent ou lecture en échec.
    - Les produits supprimés disparaissent silencieusement de la vue.
    - store_id: restreint aux produits d'une boutique (checkout par boutique).
    """
    if not cart_id:
        return []
    try:
        cart = _load_cart(cart_id)
        if not cart or not cart.items:
            return []
        quantities = {it.product_id: it.quantity for it in cart.items}
        rows = catalog_repo.fetch_products_by_ids(list(quantities.keys()), store_id=store_id)
    except StorefrontError:
        logger.warning("cart.get_cart failed cart_id=%s store_id=%s", cart_id, store_id)
        return []
    rows = sorted((r for r in rows if str(r.get("id")) in quantities), key=_view_sort_key)
    return [_to_view(r, quantities[str(r.get("id"))]) for r in rows]

def get_unique_store_ids(cart_id: Optional[str]) -> List[str]:
    """Boutiques distinctes des produits du panier (ordre de première apparition)."""
    views = get_cart(cart_id)
    seen: List[str] = []
    for view in views:
        if view.store_id and view.store_id not in seen:
            seen.append(view.store_id)
    return seen

# --- Mutations ---
def _create_cart(items: List[LineItem]) -> CartMutation:
    cart = repository.insert_cart(items)
    logger.info("cart.created cart_id=%s items=%s", cart.id, len(items))
    cache.revalidate_path("/")
    return CartMutation(cart_id=cart.id, items=cart.items)

def _save_items(cart: Cart, items: List[LineItem]) -> CartMutation:
    """
    Persiste la liste complète. Une liste vide supprime le panier et invalide le jeton.
    """
    if not items:
        repository.delete_cart(cart.id)
        logger.info("cart.deleted_empty cart_id=%s", cart.id)
        cache.revalidate_path("/")
        return CartMutation(cart_id=None, items=[])
    updated = repository.update_items(cart, items)
    cache.revalidate_path("/")
    return CartMutation(cart_id=updated.id, items=updated.items)

def add_item(cart_id: Optional[str], product_id: str, quantity: int) -> CartMutation:
    """
    Ajoute `quantity` unités d'un produit.
    - Vérifie l'existence du produit et inventory >= quantity (ProductNotFound / OutOfStock),
      avant toute écriture.
    - Pas de jeton, ou jeton périmé: crée un nouveau panier (nouveau jeton).
    - Panier fermé: supprimé puis remplacé par un panier neuf contenant uniquement cet item.
    - Produit déjà présent: quantités additionnées (jamais de doublon de ligne).
    """
    _check_quantity(quantity, 1)
    product_id = str(product_id or "").strip()
    _check_stock(product_id, quantity)
    item = LineItem(product_id=product_id, quantity=quantity)

    cart = _load_cart(cart_id)
    if cart is None:
        if cart_id:
            logger.info("cart.stale_token cart_id=%s, recreating", cart_id)
        return _create_cart([item])

    if cart.closed:
        logger.info("cart.closed cart_id=%s, replacing with a new cart", cart.id)
        repository.delete_cart(cart.id)
        return _create_cart([item])

    items = [it.model_copy() for it in cart.items]
    existing = next((it for it in items if it.product_id == product_id), None)
    if existing:
        existing.quantity += quantity
    else:
        items.append(item)
    return _save_items(cart, items)

def set_item_quantity(cart_id: Optional[str], product_id: str, quantity: int) -> CartMutation:
    """
    Fixe la quantité d'une ligne: 0 supprime la ligne, >0 remplace la quantité stockée.
    - CartNotFound si pas de jeton ou panier absent ou fermé; ItemNotFound si la ligne n'existe pas.
    - OutOfStock si le produit existe encore et n'a pas assez de stock.
    """
    _check_quantity(quantity, 0)
    cart = _load_cart(cart_id)
    if cart is None or cart.closed:
        raise CartNotFound()
    product_id = str(product_id or "").strip()
    if cart.find_item(product_id) is None:
        raise ItemNotFound()

    if quantity == 0:
        items = [it for it in cart.items if it.product_id != product_id]
        return _save_items(cart, items)

    product = catalog_repo.fetch_product(product_id)
    if product and int(product.get("inventory") or 0) < quantity:
        raise OutOfStock()
    items = [
        LineItem(product_id=it.product_id, quantity=quantity) if it.product_id == product_id else it
        for it in cart.items
    ]
    return _save_items(cart, items)

def remove_items(cart_id: Optional[str], product_ids: Iterable[str]) -> CartMutation:
    """
    Retire plusieurs produits. Idempotent: jeton absent, panier absent, panier fermé ou items
    déjà absents -> aucune écriture, retourne l'état courant.
    """
    ids = {str(p).strip() for p in product_ids or [] if p}
    cart = _load_cart(cart_id)
    if cart is None or cart.closed:
        return CartMutation(cart_id=None, items=[])
    remaining = [it for it in cart.items if it.product_id not in ids]
    if len(remaining) == len(cart.items):
        return CartMutation(cart_id=cart.id, items=cart.items)
    return _save_items(cart, remaining)

def remove_item(cart_id: Optional[str], product_id: str) -> CartMutation:
    return remove_items(cart_id, [product_id])

def clear_cart(cart_id: Optional[str]) -> CartMutation:
    """Supprime le panier et invalide le jeton; CartNotFound si aucun jeton."""
    if not cart_id:
        raise CartNotFound()
    repository.delete_cart(cart_id)
    logger.info("cart.cleared cart_id=%s", cart_id)
    cache.revalidate_path("/")
    return CartMutation(cart_id=None, items=[])
