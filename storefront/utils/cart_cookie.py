from typing import Optional
from fastapi import Request
from fastapi.responses import Response

from storefront.config import CART_COOKIE_NAME, CART_COOKIE_MAX_AGE, COOKIE_SECURE

# module storefront.utils.cart_cookie
def get_cart_token(request: Request) -> Optional[str]:
    """Jeton panier porté par le cookie (None si absent ou vide)."""
    return (request.cookies.get(CART_COOKIE_NAME) or "").strip() or None

def set_cart_cookie(response: Response, cart_id: str) -> None:
    response.set_cookie(
        key=CART_COOKIE_NAME,
        value=cart_id,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="Lax",
        max_age=CART_COOKIE_MAX_AGE,
        path="/",
    )

def clear_cart_cookie(response: Response) -> None:
    response.delete_cookie(CART_COOKIE_NAME, path="/")

def sync_cart_cookie(response: Response, incoming: Optional[str], outgoing: Optional[str]) -> None:
    """
    Aligne le cookie sur le jeton renvoyé par le service:
    - nouveau jeton -> pose le cookie (30 jours)
    - jeton invalidé (None) alors que le client en avait un -> expire le cookie
    """
    if outgoing and outgoing != incoming:
        set_cart_cookie(response, outgoing)
    elif not outgoing and incoming:
        clear_cart_cookie(response)
