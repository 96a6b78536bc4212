"""
Accès en lecture seule au catalogue (tables products, stores, categories, subcategories).
- Ce module ne fait aucune écriture: les produits, boutiques et catégories appartiennent au catalogue.
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

import storefront.infra.supabase_client as supabase_client
from storefront.errors import StorageError

logger = logging.getLogger(__name__)

PRODUCT_VIEW_COLUMNS = (
    "id, name, images, price, inventory, store_id, created_at, "
    "stores(name, stripe_account_id), categories(name), subcategories(name)"
)

# module storefront.catalog.repository
def fetch_product(product_id: str) -> Optional[Dict[str, Any]]:
    """
    Produit par id (id, name, price, inventory, store_id).
    - Retourne None si le produit n'existe pas.
    - Lève StorageError si la lecture échoue (le contrôle de stock ne peut pas être ignoré).
    """
    if not product_id:
        return None
    try:
        res = (
            supabase_client.get_supabase()
            .table("products")
            .select("id, name, price, inventory, store_id")
            .eq("id", str(product_id))
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("catalog.repository.fetch_product failed product_id=%s", product_id)
        raise StorageError()
    rows = res.data or []
    return rows[0] if rows else None

def fetch_products_by_ids(ids: Iterable[str], store_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Produits joints (boutique, catégorie, sous-catégorie) pour hydrater le panier.
    - Filtre optionnel par boutique.
    - Retourne [] si ids vide; lève StorageError en cas d'erreur.
    """
    id_list = [str(i) for i in ids if i]
    if not id_list:
        return []
    try:
        query = (
            supabase_client.get_supabase()
            .table("products")
            .select(PRODUCT_VIEW_COLUMNS)
            .in_("id", id_list)
        )
        if store_id:
            query = query.eq("store_id", str(store_id))
        res = query.execute()
        return res.data or []
    except Exception:
        logger.exception("catalog.repository.fetch_products_by_ids failed ids=%s store_id=%s", id_list, store_id)
        raise StorageError()

def fetch_store(store_id: str) -> Optional[Dict[str, Any]]:
    """Boutique par id (id, name, user_id, stripe_account_id); None si absente."""
    try:
        res = (
            supabase_client.get_supabase()
            .table("stores")
            .select("id, name, user_id, stripe_account_id")
            .eq("id", str(store_id))
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("catalog.repository.fetch_store failed store_id=%s", store_id)
        raise StorageError()
    rows = res.data or []
    return rows[0] if rows else None

def fetch_featured_products(limit: int = 8) -> List[Dict[str, Any]]:
    """Produits mis en avant (les plus récents parmi les actifs); [] en cas d'erreur."""
    try:
        res = (
            supabase_client.get_supabase()
            .table("products")
            .select(PRODUCT_VIEW_COLUMNS)
            .eq("status", "active")
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("catalog.repository.fetch_featured_products failed")
        return []

def fetch_categories() -> List[Dict[str, Any]]:
    try:
        res = supabase_client.get_supabase().table("categories").select("id, name, slug").order("name").execute()
        return res.data or []
    except Exception:
        logger.exception("catalog.repository.fetch_categories failed")
        return []

def fetch_products(
    *,
    order_column: str,
    descending: bool,
    offset: int,
    limit: int,
    category_slugs: Optional[List[str]] = None,
    subcategory_ids: Optional[List[str]] = None,
    min_price: Optional[str] = None,
    max_price: Optional[str] = None,
    store_ids: Optional[List[str]] = None,
) -> Tuple[List[Dict[str, Any]], int]:
    """
    Page de produits actifs filtrés/triés.
    Retour: (lignes, total) où total est le nombre exact de produits correspondants.
    """
    columns = PRODUCT_VIEW_COLUMNS
    if category_slugs:
        # jointure interne pour pouvoir filtrer sur categories.slug
        columns = columns.replace("categories(name)", "categories!inner(name, slug)")
    try:
        query = (
            supabase_client.get_supabase()
            .table("products")
            .select(columns, count="exact")
            .eq("status", "active")
        )
        if category_slugs:
            query = query.in_("categories.slug", category_slugs)
        if subcategory_ids:
            query = query.in_("subcategory_id", subcategory_ids)
        if min_price is not None:
            query = query.gte("price", min_price)
        if max_price is not None:
            query = query.lte("price", max_price)
        if store_ids:
            query = query.in_("store_id", store_ids)
        res = (
            query.order(order_column, desc=descending)
            .range(offset, offset + limit - 1)
            .execute()
        )
    except Exception:
        logger.exception("catalog.repository.fetch_products failed")
        raise StorageError()
    rows = res.data or []
    total = res.count if res.count is not None else len(rows)
    return rows, total
