from typing import Optional

from fastapi import APIRouter, Query

from . import service as catalog_service

router = APIRouter(prefix="/api/v1", tags=["Catalog API"])

# module storefront.catalog.views
@router.get("/products")
def list_products(
    page: int = Query(1, ge=1),
    per_page: int = Query(catalog_service.DEFAULT_PER_PAGE, ge=1, le=catalog_service.MAX_PER_PAGE),
    sort: Optional[str] = None,
    categories: Optional[str] = None,
    subcategories: Optional[str] = None,
    price_range: Optional[str] = None,
    store_ids: Optional[str] = None,
):
    """
    Listing public des produits actifs.
    - sort: 'createdAt|price|name|rating' + '.asc|.desc' (422 sinon).
    - Filtres multi-valeurs séparés par des points (ex: categories=skateboards.clothing).
    """
    result = catalog_service.get_products(
        page=page,
        per_page=per_page,
        sort=sort,
        categories=categories,
        subcategories=subcategories,
        price_range=price_range,
        store_ids=store_ids,
    )
    return {"data": result["data"], "page_count": result["page_count"], "error": None}

@router.get("/products/featured")
def list_featured_products():
    return {"data": catalog_service.get_featured_products(), "error": None}

@router.get("/categories")
def list_categories():
    return {"data": catalog_service.get_categories(), "error": None}
