"""
Endpoints API du panier.
- Le jeton panier est résolu depuis le cookie puis passé explicitement au service.
- Les mutations reposent / expirent le cookie selon CartMutation.cart_id.
- Réponses: {"data": ..., "error": null}; les erreurs métier passent par le handler StorefrontError.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from storefront.app_setup.exceptions import error_response
from storefront.errors import CartNotFound
from storefront.utils.cart_cookie import get_cart_token, sync_cart_cookie, clear_cart_cookie
from . import service as cart_service
from .models import CartItemInput, CartItemsDeleteInput, CartMutation, CartQuantityInput

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/cart", tags=["Cart API"])

# module storefront.cart.views
def _mutation_response(request: Request, mutation: CartMutation) -> JSONResponse:
    resp = JSONResponse({
        "data": [it.model_dump() for it in mutation.items],
        "error": None,
    })
    sync_cart_cookie(resp, get_cart_token(request), mutation.cart_id)
    return resp

@router.get("")
def read_cart(request: Request, store_id: Optional[str] = None):
    """
    Lignes du panier courant jointes au catalogue vivant.
    - Jamais d'erreur: {"data": []} si aucun panier.
    """
    items = cart_service.get_cart(get_cart_token(request), store_id=store_id)
    return {"data": [it.model_dump() for it in items], "error": None}

@router.get("/stores")
def read_cart_stores(request: Request):
    """Identifiants des boutiques présentes dans le panier (un checkout par boutique)."""
    return {"data": cart_service.get_unique_store_ids(get_cart_token(request)), "error": None}

@router.post("/items")
def add_cart_item(request: Request, body: CartItemInput):
    """
    Ajoute un produit au panier (crée le panier si besoin, fusionne les quantités).
    - Erreurs: 404 produit introuvable, 409 rupture de stock.
    """
    mutation = cart_service.add_item(get_cart_token(request), body.product_id, body.quantity)
    return _mutation_response(request, mutation)

@router.patch("/items/{product_id}")
def update_cart_item(request: Request, product_id: str, body: CartQuantityInput):
    """
    Fixe la quantité d'une ligne (0 = suppression).
    - Panier introuvable: expire le cookie et renvoie 404.
    """
    try:
        mutation = cart_service.set_item_quantity(get_cart_token(request), product_id, body.quantity)
    except CartNotFound as exc:
        resp = error_response(exc)
        if get_cart_token(request):
            clear_cart_cookie(resp)
        return resp
    return _mutation_response(request, mutation)

@router.delete("/items/{product_id}")
def delete_cart_item(request: Request, product_id: str):
    """Retire un produit; idempotent (produit absent = no-op)."""
    mutation = cart_service.remove_item(get_cart_token(request), product_id)
    return _mutation_response(request, mutation)

@router.post("/items/delete")
def delete_cart_items(request: Request, body: CartItemsDeleteInput):
    """Retire plusieurs produits en une écriture; idempotent."""
    mutation = cart_service.remove_items(get_cart_token(request), body.product_ids)
    return _mutation_response(request, mutation)

@router.delete("")
def delete_cart(request: Request):
    """Vide le panier: supprime la ligne et expire le cookie."""
    mutation = cart_service.clear_cart(get_cart_token(request))
    return _mutation_response(request, mutation)
