"""
Module 'payments' (feature-first): point d'entrée public.
Réunit calcul de montant, metadata Stripe, client Stripe, repository BD et orchestrateur.
"""

from .amount import OrderAmount, calculate_order_amount, checkout_items
from .metadata import make_metadata, extract_cart_id, extract_items, extract_product_ids, extract_postal_code
from .stripe_client import require_stripe, parse_event
from .service import (
    get_stripe_account,
    create_or_update_intent,
    verify_intent,
    confirm_checkout,
    handle_webhook_event,
    list_payment_intents,
    create_account_link,
    manage_plan,
)

__all__ = [
    "OrderAmount",
    "calculate_order_amount",
    "checkout_items",
    "make_metadata",
    "extract_cart_id",
    "extract_items",
    "extract_product_ids",
    "extract_postal_code",
    "require_stripe",
    "parse_event",
    "get_stripe_account",
    "create_or_update_intent",
    "verify_intent",
    "confirm_checkout",
    "handle_webhook_event",
    "list_payment_intents",
    "create_account_link",
    "manage_plan",
]
