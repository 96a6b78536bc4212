"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.

Règles d'appel:
- Délai réseau borné (STRIPE_TIMEOUT_SECONDS) et retries automatiques du SDK désactivés.
- Seules les lectures (retrieve/list) sont rejouées, et uniquement sur erreur réseau (tenacity).
- Les créations portent une clé d'idempotence quand l'appelant en fournit une.
- Toute stripe.StripeError est journalisée puis convertie en ProviderError (message générique).
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import stripe
from fastapi import Request
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from storefront.config import STRIPE_SECRET_KEY, STRIPE_TIMEOUT_SECONDS, STRIPE_WEBHOOK_SECRET
from storefront.errors import ProviderError

logger = logging.getLogger(__name__)

_configured = False

# module storefront.payments.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l’emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY si disponible.
    - Installe une seule fois le client HTTP avec timeout et coupe les retries implicites.
    """
    global _configured
    if STRIPE_SECRET_KEY:
        stripe.api_key = STRIPE_SECRET_KEY
    if not _configured:
        stripe.max_network_retries = 0
        stripe.default_http_client = stripe.RequestsClient(timeout=STRIPE_TIMEOUT_SECONDS)
        _configured = True
    return stripe

def as_dict(obj: Any) -> Dict[str, Any]:
    """Objet Stripe (ou dict de test) -> dict récursif."""
    if obj is None:
        return {}
    if isinstance(obj, dict) and not hasattr(obj, "to_dict"):
        return obj
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(obj)

@contextmanager
def provider_errors(action: str, **context):
    """Journalise une erreur Stripe avec son contexte et la relève en ProviderError."""
    try:
        yield
    except stripe.StripeError as e:
        logger.exception("stripe.%s failed %s: %s", action, context, getattr(e, "user_message", None) or e)
        raise ProviderError()

# Lectures idempotentes uniquement
lookup_retry = retry(
    reraise=True,
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
    retry=retry_if_exception_type(stripe.APIConnectionError),
)

@lookup_retry
def _retrieve_account(account_id: str):
    return stripe.Account.retrieve(account_id)

def retrieve_account(account_id: str) -> Dict[str, Any]:
    require_stripe()
    with provider_errors("account.retrieve", account=account_id):
        return as_dict(_retrieve_account(account_id))

def create_account(*, country: str, store_id: str, user_id: str) -> Dict[str, Any]:
    """Compte Connect 'standard' pour une boutique (onboarding via AccountLink)."""
    require_stripe()
    with provider_errors("account.create", store_id=store_id):
        account = stripe.Account.create(
            type="standard",
            country=country,
            business_type="individual",
            capabilities={
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            metadata={"storeId": store_id, "userId": user_id},
        )
    return as_dict(account)

def delete_account(account_id: str) -> None:
    require_stripe()
    with provider_errors("account.delete", account=account_id):
        stripe.Account.delete(account_id)

def create_account_link(*, account_id: str, refresh_url: str, return_url: str) -> Dict[str, Any]:
    require_stripe()
    with provider_errors("account_link.create", account=account_id):
        link = stripe.AccountLink.create(
            account=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
            type="account_onboarding",
        )
    return as_dict(link)

def create_payment_intent(
    *,
    stripe_account: str,
    amount: int,
    fee: int,
    currency: str,
    metadata: Dict[str, str],
    idempotency_key: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Crée un PaymentIntent sur le compte connecté de la boutique, commission plateforme incluse.
    Jamais rejoué automatiquement (risque de double débit).
    """
    require_stripe()
    with provider_errors("payment_intent.create", account=stripe_account, cart=metadata.get("cartId")):
        intent = stripe.PaymentIntent.create(
            amount=amount,
            application_fee_amount=fee,
            currency=currency,
            metadata=metadata,
            automatic_payment_methods={"enabled": True},
            stripe_account=stripe_account,
            idempotency_key=idempotency_key,
        )
    return as_dict(intent)

def update_payment_intent(
    intent_id: str,
    *,
    stripe_account: str,
    amount: int,
    fee: int,
    metadata: Dict[str, str],
) -> Dict[str, Any]:
    require_stripe()
    with provider_errors("payment_intent.update", account=stripe_account, intent=intent_id):
        intent = stripe.PaymentIntent.modify(
            intent_id,
            amount=amount,
            application_fee_amount=fee,
            metadata=metadata,
            stripe_account=stripe_account,
        )
    return as_dict(intent)

@lookup_retry
def _retrieve_payment_intent(intent_id: str, stripe_account: str):
    return stripe.PaymentIntent.retrieve(intent_id, stripe_account=stripe_account)

def retrieve_payment_intent(intent_id: str, *, stripe_account: str) -> Dict[str, Any]:
    require_stripe()
    with provider_errors("payment_intent.retrieve", account=stripe_account, intent=intent_id):
        return as_dict(_retrieve_payment_intent(intent_id, stripe_account))

@lookup_retry
def _list_payment_intents(stripe_account: str, params: Dict[str, Any]):
    return stripe.PaymentIntent.list(stripe_account=stripe_account, **params)

def list_payment_intents(*, stripe_account: str, limit: int = 10, starting_after: Optional[str] = None) -> Dict[str, Any]:
    require_stripe()
    params: Dict[str, Any] = {"limit": limit}
    if starting_after:
        params["starting_after"] = starting_after
    with provider_errors("payment_intent.list", account=stripe_account):
        return as_dict(_list_payment_intents(stripe_account, params))

def create_subscription_session(
    *,
    price_id: str,
    customer_email: Optional[str],
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, str],
) -> Dict[str, Any]:
    """Session Checkout en mode abonnement (plan vendeur)."""
    require_stripe()
    with provider_errors("checkout.session.create", price=price_id):
        session = stripe.checkout.Session.create(
            success_url=success_url,
            cancel_url=cancel_url,
            payment_method_types=["card"],
            mode="subscription",
            billing_address_collection="auto",
            customer_email=customer_email,
            line_items=[{"price": price_id, "quantity": 1}],
            metadata=metadata,
        )
    return as_dict(session)

def create_billing_portal_session(*, customer_id: str, return_url: str) -> Dict[str, Any]:
    require_stripe()
    with provider_errors("billing_portal.session.create", customer=customer_id):
        session = stripe.billing_portal.Session.create(customer=customer_id, return_url=return_url)
    return as_dict(session)

async def parse_event(request: Request) -> Dict[str, Any]:
    """
    Parse et valide un événement Stripe signé (webhook).
    - Lit le body brut + en-tête Stripe-Signature
    - Lève ValueError ou stripe.SignatureVerificationError si la signature est invalide
    """
    require_stripe()
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature") or request.headers.get("Stripe-Signature")
    event = stripe.Webhook.construct_event(payload, sig_header, STRIPE_WEBHOOK_SECRET or "")
    return as_dict(event)

def list_data(page: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [as_dict(item) for item in (page.get("data") or [])]
