"""
Cas d'usage 'payments': orchestre le panier, le calcul de montant et Stripe.

Cycle d'un panier côté paiement:
  NoIntent -> requires_payment_method -> processing -> succeeded | canceled
- Un seul PaymentIntent actif par panier: mis à jour sur place tant qu'il attend
  un moyen de paiement, recréé sinon.
- Les montants sont toujours recalculés depuis les prix catalogue vivants.
- Aucune écriture locale n'a lieu si l'appel Stripe échoue.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from storefront.cart import repository as cart_repository
from storefront.cart import service as cart_service
from storefront.cart.models import CartMutation
from storefront.catalog import repository as catalog_repo
from storefront.config import STRIPE_ACCOUNT_COUNTRY, STRIPE_CURRENCY
from storefront.errors import (
    CartNotFound,
    InvalidAmount,
    Mismatch,
    NotSucceeded,
    ProviderError,
    StoreAlreadyConnected,
    StoreNotConnected,
    StoreNotFound,
    StorefrontError,
    Unauthorized,
)
from storefront.utils.money import MINOR_UNITS_PER_MAJOR, format_price, to_minor_units
from . import metadata as meta
from . import repository
from . import stripe_client
from .amount import calculate_order_amount, checkout_items
from .models import IntentHandle, PaymentIntentPage, PaymentIntentSummary, StripeAccountStatus

logger = logging.getLogger(__name__)

REUSABLE_INTENT_STATUS = "requires_payment_method"

# module storefront.payments.service
def _timestamp_iso(ts: Optional[int]) -> Optional[str]:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat() if ts else None

def get_stripe_account(store_id: str, retrieve_account: bool = True) -> StripeAccountStatus:
    """
    État Stripe Connect d'une boutique.
    - retrieve_account=False: lecture locale seule (connecté = details_submitted).
    - retrieve_account=True: interroge Stripe et synchronise details_submitted,
      stripe_account_created_at et stores.stripe_account_id quand l'onboarding est terminé.
    - Ne lève jamais: retourne un état "non connecté" en cas d'échec.
    """
    not_connected = StripeAccountStatus()
    try:
        store = catalog_repo.fetch_store(store_id)
        if not store:
            logger.warning("payments.get_stripe_account store not found store_id=%s", store_id)
            return not_connected
        payment = repository.fetch_store_payment(store_id)
        if not payment or not payment.get("stripe_account_id"):
            return not_connected
        if not retrieve_account:
            return StripeAccountStatus(is_connected=bool(payment.get("details_submitted")), payment=payment)

        account = stripe_client.retrieve_account(payment["stripe_account_id"])
        submitted = bool(account.get("details_submitted"))
        if submitted and not payment.get("details_submitted"):
            repository.upsert_store_payment(store_id, {
                "stripe_account_id": account.get("id") or payment["stripe_account_id"],
                "details_submitted": True,
                "stripe_account_created_at": _timestamp_iso(account.get("created")),
            })
            repository.update_store_stripe_account(store_id, account.get("id") or payment["stripe_account_id"])
            payment = {**payment, "details_submitted": True}
            logger.info("payments.store_connected store_id=%s account=%s", store_id, account.get("id"))
        return StripeAccountStatus(
            is_connected=bool(payment.get("details_submitted")),
            account=account if submitted else None,
            payment=payment,
        )
    except StorefrontError:
        logger.warning("payments.get_stripe_account failed store_id=%s", store_id)
        return not_connected

def _connected_account_id(store_id: str) -> str:
    status = get_stripe_account(store_id, retrieve_account=False)
    if not status.is_connected or not status.payment or not status.payment.get("stripe_account_id"):
        raise StoreNotConnected()
    return status.payment["stripe_account_id"]

def _intent_idempotency_key(cart, store_id: str, total: int) -> str:
    return f"pi-{cart.id}-{store_id}-v{cart.version}-{cart.payment_intent_id or 'new'}-{total}"

def create_or_update_intent(cart_id: Optional[str], store_id: str) -> IntentHandle:
    """
    Crée ou met à jour le PaymentIntent du panier pour une boutique.
    - StoreNotConnected si la boutique n'a pas de compte Stripe finalisé.
    - CartNotFound si le panier est absent ou fermé.
    - InvalidAmount si le panier ne contient rien de payable pour cette boutique.
    - Intent existant en requires_payment_method: montant, commission et metadata mis à jour sur place.
    - Sinon: nouvel intent (clé d'idempotence) puis id + client_secret enregistrés sur le panier.
    """
    account_id = _connected_account_id(store_id)

    cart = cart_repository.fetch_cart(cart_id) if cart_id else None
    if cart is None or cart.closed:
        raise CartNotFound()

    items = checkout_items(cart_service.get_cart(cart.id, store_id=store_id))
    try:
        minor_items = [{"price": to_minor_units(it["price"]), "quantity": it["quantity"]} for it in items]
    except ValueError:
        logger.error("payments.invalid_catalog_price cart_id=%s store_id=%s", cart.id, store_id)
        raise InvalidAmount()
    amount = calculate_order_amount(minor_items)
    metadata = meta.make_metadata(cart.id, items)

    if cart.payment_intent_id:
        try:
            current = stripe_client.retrieve_payment_intent(cart.payment_intent_id, stripe_account=account_id)
        except ProviderError:
            # intent d'une autre boutique ou supprimé: on en crée un nouveau
            current = {}
        if current.get("status") == REUSABLE_INTENT_STATUS:
            updated = stripe_client.update_payment_intent(
                cart.payment_intent_id,
                stripe_account=account_id,
                amount=amount.total,
                fee=amount.fee,
                metadata=meta.with_stale_keys_cleared(current, metadata),
            )
            logger.info("payments.intent_updated cart_id=%s intent=%s amount=%s", cart.id, cart.payment_intent_id, amount.total)
            return IntentHandle(
                payment_intent_id=cart.payment_intent_id,
                client_secret=updated.get("client_secret") or cart.client_secret,
                amount=amount.total,
                fee=amount.fee,
                created=False,
            )

    intent = stripe_client.create_payment_intent(
        stripe_account=account_id,
        amount=amount.total,
        fee=amount.fee,
        currency=STRIPE_CURRENCY,
        metadata=metadata,
        idempotency_key=_intent_idempotency_key(cart, store_id, amount.total),
    )
    if intent.get("status") == REUSABLE_INTENT_STATUS:
        cart_repository.set_payment_intent(cart.id, intent.get("id"), intent.get("client_secret"))
    logger.info("payments.intent_created cart_id=%s intent=%s amount=%s fee=%s", cart.id, intent.get("id"), amount.total, amount.fee)
    return IntentHandle(
        payment_intent_id=intent.get("id"),
        client_secret=intent.get("client_secret"),
        amount=amount.total,
        fee=amount.fee,
        created=True,
    )

def verify_intent(
    store_id: str,
    intent_id: str,
    expected_cart_token: Optional[str],
    expected_postal_code: Optional[str],
) -> Dict[str, Any]:
    """
    Vérifie un paiement au retour du fournisseur.
    - NotSucceeded si le statut n'est pas 'succeeded'.
    - Mismatch sauf si le cartId en metadata égale le jeton de l'appelant
      OU si le code postal de livraison (espaces retirés) correspond.
    Retour: le PaymentIntent (dict).
    """
    account_id = _connected_account_id(store_id)
    intent = stripe_client.retrieve_payment_intent(intent_id, stripe_account=account_id)

    if intent.get("status") != "succeeded":
        raise NotSucceeded()

    token_ok = bool(expected_cart_token) and meta.extract_cart_id(intent) == expected_cart_token
    postal = meta.normalize_postal_code(expected_postal_code)
    postal_ok = bool(postal) and meta.extract_postal_code(intent) == postal
    if not (token_ok or postal_ok):
        logger.warning("payments.verify_mismatch intent=%s store_id=%s", intent_id, store_id)
        raise Mismatch()
    return intent

def settle_paid_items(cart_id: Optional[str], product_ids: Iterable[str], intent_id: Optional[str] = None) -> CartMutation:
    """
    Solde la partie payée d'un panier. Idempotent: webhook et confirmation
    peuvent arriver dans n'importe quel ordre.
    - Aucun produit payé encore dans le panier: aucune écriture, état courant retourné.
    - Reste des produits non payés: retire les produits payés, détache l'intent
      (s'il s'agit de celui payé), panier ouvert.
    - Plus rien dans le panier: ferme le panier (jeton invalidé côté client).
    """
    cart = cart_repository.fetch_cart(cart_id) if cart_id else None
    if cart is None or cart.closed:
        return CartMutation(cart_id=None, items=[])
    paid = {str(p) for p in product_ids if p}
    if not any(it.product_id in paid for it in cart.items):
        logger.info("payments.cart_already_settled cart_id=%s intent=%s", cart.id, intent_id)
        return CartMutation(cart_id=cart.id, items=cart.items)
    remaining = [it for it in cart.items if it.product_id not in paid]
    if not remaining:
        cart_repository.close_cart(cart.id)
        logger.info("payments.cart_closed cart_id=%s", cart.id)
        return CartMutation(cart_id=None, items=[])
    mutation = cart_service.remove_items(cart.id, paid)
    if intent_id is None or cart.payment_intent_id == intent_id:
        cart_repository.set_payment_intent(cart.id, None, None)
    logger.info("payments.cart_partially_settled cart_id=%s remaining=%s", cart.id, len(remaining))
    return mutation

def confirm_checkout(
    store_id: str,
    intent_id: str,
    cart_token: Optional[str],
    delivery_postal_code: Optional[str],
) -> Dict[str, Any]:
    """
    Confirmation après redirection: vérifie l'intent puis solde le panier.
    - Le panier soldé est celui référencé par l'intent (le cookie a pu être perdu en route).
    - Les produits soldés sont ceux facturés par l'intent (metadata), pas le panier vivant.
    """
    intent = verify_intent(store_id, intent_id, cart_token, delivery_postal_code)
    cart_id = meta.extract_cart_id(intent) or cart_token
    mutation = settle_paid_items(cart_id, meta.extract_product_ids(intent), intent.get("id") or intent_id)
    return {"payment_intent": intent, "cart": mutation, "settled_cart_id": cart_id}

def handle_webhook_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Webhook Stripe (événements Connect des PaymentIntents).
    - payment_intent.succeeded: solde le panier référencé (produits de la metadata).
    - payment_intent.canceled: détache l'intent du panier pour permettre un nouvel essai.
    - Autres types: ignorés.
    """
    event_type = (event or {}).get("type")
    intent = ((event or {}).get("data") or {}).get("object") or {}
    cart_id = meta.extract_cart_id(intent)

    if event_type == "payment_intent.succeeded" and cart_id:
        settle_paid_items(cart_id, meta.extract_product_ids(intent), intent.get("id"))
        logger.info("payments.webhook succeeded intent=%s cart_id=%s", intent.get("id"), cart_id)
        return {"status": "ok"}

    if event_type == "payment_intent.canceled" and cart_id:
        cart = cart_repository.fetch_cart(cart_id)
        if cart and cart.payment_intent_id == intent.get("id"):
            cart_repository.set_payment_intent(cart.id, None, None)
        logger.info("payments.webhook canceled intent=%s cart_id=%s", intent.get("id"), cart_id)
        return {"status": "ok"}

    return {"status": "ignored"}

def list_payment_intents(store_id: str, limit: int = 10, starting_after: Optional[str] = None) -> PaymentIntentPage:
    """Paiements du compte connecté d'une boutique (tableau de bord vendeur)."""
    account_id = _connected_account_id(store_id)
    page = stripe_client.list_payment_intents(stripe_account=account_id, limit=limit, starting_after=starting_after)
    return PaymentIntentPage(
        payment_intents=[
            PaymentIntentSummary(
                id=item.get("id"),
                amount=int(item.get("amount") or 0),
                amount_display=format_price(
                    Decimal(int(item.get("amount") or 0)) / MINOR_UNITS_PER_MAJOR,
                    item.get("currency") or STRIPE_CURRENCY,
                ),
                created=int(item.get("created") or 0),
                cart_id=meta.extract_cart_id(item),
            )
            for item in stripe_client.list_data(page)
        ],
        has_more=bool(page.get("has_more")),
    )

def ensure_store_owner(store_id: str, user_id: Optional[str]) -> Dict[str, Any]:
    """Retourne la boutique si user_id en est propriétaire; StoreNotFound / Unauthorized sinon."""
    store = catalog_repo.fetch_store(store_id)
    if not store:
        raise StoreNotFound()
    if not user_id or str(store.get("user_id")) != str(user_id):
        raise Unauthorized()
    return store

def create_account_link(store_id: str, user_id: Optional[str], base_url: str, restart: bool = False) -> str:
    """
    Lien d'onboarding Stripe Connect pour une boutique.
    - Propriétaire uniquement (Unauthorized), refuse une boutique déjà connectée.
    - Compte en attente réutilisé; restart=True le supprime et repart d'un compte neuf.
    Retour: URL de l'AccountLink.
    """
    ensure_store_owner(store_id, user_id)
    status = get_stripe_account(store_id, retrieve_account=False)
    if status.is_connected:
        raise StoreAlreadyConnected()

    account_id = (status.payment or {}).get("stripe_account_id")
    if account_id and restart:
        stripe_client.delete_account(account_id)
        logger.info("payments.account_deleted store_id=%s account=%s", store_id, account_id)
        account_id = None
    if not account_id:
        account = stripe_client.create_account(country=STRIPE_ACCOUNT_COUNTRY, store_id=store_id, user_id=str(user_id))
        account_id = account.get("id")
        repository.upsert_store_payment(store_id, {"stripe_account_id": account_id, "details_submitted": False})

    store_url = f"{base_url.rstrip('/')}/store/{store_id}"
    link = stripe_client.create_account_link(account_id=account_id, refresh_url=store_url, return_url=store_url)
    if not link.get("url"):
        logger.error("payments.account_link without url store_id=%s", store_id)
        raise ProviderError()
    return link["url"]

def manage_plan(
    *,
    user: Dict[str, Any],
    stripe_price_id: str,
    stripe_customer_id: Optional[str],
    is_subscribed: bool,
    is_current_plan: bool,
    base_url: str,
) -> str:
    """
    URL de gestion d'abonnement vendeur.
    - Déjà abonné au plan courant: portail de facturation Stripe.
    - Sinon: session Checkout en mode abonnement.
    """
    billing_url = f"{base_url.rstrip('/')}/dashboard/billing"
    if is_subscribed and stripe_customer_id and is_current_plan:
        session = stripe_client.create_billing_portal_session(customer_id=stripe_customer_id, return_url=billing_url)
        return session.get("url") or billing_url

    session = stripe_client.create_subscription_session(
        price_id=stripe_price_id,
        customer_email=user.get("email"),
        success_url=billing_url,
        cancel_url=billing_url,
        metadata={"userId": str(user.get("id") or "")},
    )
    return session.get("url") or billing_url
