"""
Cas d'usage 'catalog': listing paginé des produits et lectures mises en cache.
- get_products: lecture directe (jamais de cache), tri via table de correspondance.
- get_featured_products / get_categories: cache Redis étiqueté (TTL CACHE_TTL_SECONDS).
"""
import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from storefront.errors import InvalidSortKey, StorageError
from storefront.utils import cache
from storefront.utils.money import to_decimal
from . import repository as catalog_repo

logger = logging.getLogger(__name__)

FEATURED_TAG = "featured-products"
CATEGORIES_TAG = "categories"
FEATURED_LIMIT = 8
DEFAULT_SORT = "createdAt.desc"
DEFAULT_PER_PAGE = 10
MAX_PER_PAGE = 100

# clé publique -> colonne products
SORT_COLUMNS = {
    "createdAt": "created_at",
    "price": "price",
    "name": "name",
    "rating": "rating",
}
SORT_DIRECTIONS = {"asc": False, "desc": True}

# module storefront.catalog.service
def parse_sort(sort: Optional[str]) -> Tuple[str, bool]:
    """'<clé>.<asc|desc>' -> (colonne, descending); InvalidSortKey si clé ou sens inconnu."""
    field, _, direction = (sort or DEFAULT_SORT).partition(".")
    column = SORT_COLUMNS.get(field)
    if column is None or direction not in SORT_DIRECTIONS:
        raise InvalidSortKey()
    return column, SORT_DIRECTIONS[direction]

def _split_ids(value: Optional[str]) -> List[str]:
    return [v.strip() for v in (value or "").split(".") if v.strip()]

def parse_price_range(value: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """'min-max' (bornes optionnelles) -> (min, max) en chaînes décimales; bornes illisibles ignorées."""
    if not value:
        return None, None
    low, _, high = value.partition("-")
    bounds = []
    for raw in (low, high):
        amount = to_decimal(raw.strip()) if raw.strip() else None
        bounds.append(str(amount) if amount is not None else None)
    return bounds[0], bounds[1]

def get_products(
    *,
    page: int = 1,
    per_page: int = DEFAULT_PER_PAGE,
    sort: Optional[str] = None,
    categories: Optional[str] = None,
    subcategories: Optional[str] = None,
    price_range: Optional[str] = None,
    store_ids: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Page de produits actifs.
    - Filtres: slugs de catégories, ids de sous-catégories et ids de boutiques séparés par des points,
      price_range 'min-max'.
    - Tri: voir SORT_COLUMNS (défaut createdAt.desc).
    - Lecture en échec: {"data": [], "page_count": 0} (journalisé).
    """
    column, descending = parse_sort(sort)
    per_page = max(1, min(int(per_page or DEFAULT_PER_PAGE), MAX_PER_PAGE))
    page = max(1, int(page or 1))
    min_price, max_price = parse_price_range(price_range)
    try:
        rows, total = catalog_repo.fetch_products(
            order_column=column,
            descending=descending,
            offset=(page - 1) * per_page,
            limit=per_page,
            category_slugs=_split_ids(categories) or None,
            subcategory_ids=_split_ids(subcategories) or None,
            min_price=min_price,
            max_price=max_price,
            store_ids=_split_ids(store_ids) or None,
        )
    except StorageError:
        logger.warning("catalog.get_products failed sort=%s page=%s", sort, page)
        return {"data": [], "page_count": 0}
    for row in rows:
        row["category"] = (row.pop("categories", None) or {}).get("name")
    return {"data": rows, "page_count": math.ceil(total / per_page) if total else 0}

def get_featured_products() -> List[Dict[str, Any]]:
    return cache.cached(
        FEATURED_TAG,
        lambda: catalog_repo.fetch_featured_products(FEATURED_LIMIT),
        tags=(FEATURED_TAG, cache.path_tag("/")),
    )

def get_categories() -> List[Dict[str, Any]]:
    return cache.cached(CATEGORIES_TAG, catalog_repo.fetch_categories, tags=(CATEGORIES_TAG,))

def revalidate_featured_products() -> int:
    """À appeler après une modification du catalogue (produit créé, stock, boutique connectée)."""
    return cache.revalidate_tag(FEATURED_TAG)
