"""
Endpoints API des paiements.
- /api/v1/payments: PaymentIntent du panier, confirmation au retour, webhook Stripe.
- /api/v1/stores: paiements et onboarding Stripe Connect d'une boutique (propriétaire authentifié).
- /api/v1/billing: gestion de l'abonnement vendeur.
"""
import logging
from typing import Any, Dict, Optional

import stripe
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from storefront.config import BASE_URL
from storefront.utils.cart_cookie import get_cart_token, sync_cart_cookie
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import require_user
from . import service as payments_service
from . import stripe_client
from .models import ConfirmPaymentInput, CreateIntentInput, ManagePlanInput

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])
stores_router = APIRouter(prefix="/api/v1/stores", tags=["Stores API"])
billing_router = APIRouter(prefix="/api/v1/billing", tags=["Billing API"])

# module storefront.payments.views
def _base_url(request: Request) -> str:
    return BASE_URL or str(request.base_url).rstrip("/")

@router.post("/intents", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_payment_intent(request: Request, body: CreateIntentInput):
    """
    Crée ou met à jour le PaymentIntent du panier courant pour une boutique.
    - Entrée JSON: {"store_id": "<uuid>"}; le panier est celui du cookie.
    - Retour: {"data": {payment_intent_id, client_secret, amount, fee, created}, "error": null}
    - Erreurs: 404 panier, 409 boutique non connectée, 422 montant invalide, 502 Stripe.
    """
    handle = payments_service.create_or_update_intent(get_cart_token(request), body.store_id)
    return {"data": handle.model_dump(), "error": None}

@router.post("/confirm")
def confirm_payment(request: Request, body: ConfirmPaymentInput):
    """
    Confirmation après redirection du fournisseur.
    - Vérifie statut 'succeeded' et correspondance (jeton panier OU code postal).
    - Solde la partie payée du panier; le cookie suit le panier résultant.
    - Erreurs: 402 paiement non abouti, 403 correspondance refusée.
    """
    token = get_cart_token(request)
    result = payments_service.confirm_checkout(
        body.store_id, body.payment_intent_id, token, body.delivery_postal_code
    )
    intent = result["payment_intent"]
    resp = JSONResponse({
        "data": {
            "payment_intent_id": intent.get("id"),
            "status": intent.get("status"),
            "amount": intent.get("amount"),
        },
        "error": None,
    })
    if token and result["settled_cart_id"] == token:
        sync_cart_cookie(resp, token, result["cart"].cart_id)
    return resp

@router.post("/webhook", include_in_schema=False)
async def webhook_stripe(request: Request):
    """
    Webhook Stripe (événements PaymentIntent des comptes connectés).
    - Signature: stripe_client.parse_event (Stripe-Signature + STRIPE_WEBHOOK_SECRET)
    - Réponses: {"status": "ok"} ou {"status": "ignored"}
    - Erreurs: 400 si signature/payload invalide
    """
    try:
        event = await stripe_client.parse_event(request)
    except (ValueError, stripe.SignatureVerificationError):
        logger.warning("payments.webhook invalid signature")
        raise HTTPException(status_code=400, detail="Invalid Stripe webhook payload")
    return JSONResponse(payments_service.handle_webhook_event(event))

@stores_router.get("/{store_id}/payments")
def list_store_payments(
    store_id: str,
    limit: int = Query(10, ge=1, le=100),
    starting_after: Optional[str] = None,
    user: Dict[str, Any] = Depends(require_user),
):
    """Derniers paiements du compte Stripe de la boutique (propriétaire uniquement)."""
    payments_service.ensure_store_owner(store_id, user.get("id"))
    page = payments_service.list_payment_intents(store_id, limit=limit, starting_after=starting_after)
    return {"data": page.model_dump(), "error": None}

@stores_router.get("/{store_id}/stripe")
def read_store_stripe_status(store_id: str, user: Dict[str, Any] = Depends(require_user)):
    """État de connexion Stripe (synchronise details_submitted au retour d'onboarding)."""
    payments_service.ensure_store_owner(store_id, user.get("id"))
    status = payments_service.get_stripe_account(store_id)
    return {"data": {"is_connected": status.is_connected}, "error": None}

@stores_router.post("/{store_id}/stripe/connect")
def connect_store_stripe(
    request: Request,
    store_id: str,
    restart: bool = False,
    user: Dict[str, Any] = Depends(require_user),
):
    """
    Lien d'onboarding Stripe Connect.
    - restart=true: supprime le compte en attente et repart d'un compte neuf.
    - Erreurs: 403 non propriétaire, 409 déjà connectée.
    """
    url = payments_service.create_account_link(store_id, user.get("id"), _base_url(request), restart=restart)
    return {"data": {"url": url}, "error": None}

@billing_router.post("/plan")
def manage_plan(request: Request, body: ManagePlanInput, user: Dict[str, Any] = Depends(require_user)):
    """URL du portail de facturation (abonné au plan courant) ou d'une session Checkout d'abonnement."""
    url = payments_service.manage_plan(
        user=user,
        stripe_price_id=body.stripe_price_id,
        stripe_customer_id=body.stripe_customer_id,
        is_subscribed=body.is_subscribed,
        is_current_plan=body.is_current_plan,
        base_url=_base_url(request),
    )
    return {"data": {"url": url}, "error": None}
