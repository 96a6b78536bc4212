"""
Accès aux données pour la feature 'payments'.
- Table 'payments': compte Stripe Connect d'une boutique (stripe_account_id, details_submitted).
- Table 'stores': synchro du stripe_account_id une fois l'onboarding terminé.
"""
from typing import Any, Dict, Optional
import logging

import storefront.infra.supabase_client as supabase_client
from storefront.errors import StorageError

logger = logging.getLogger(__name__)

# module storefront.payments.repository
def fetch_store_payment(store_id: str) -> Optional[Dict[str, Any]]:
    """Enregistrement 'payments' d'une boutique (stripe_account_id, details_submitted)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("payments")
            .select("store_id, stripe_account_id, details_submitted, stripe_account_created_at")
            .eq("store_id", str(store_id))
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("payments.repository.fetch_store_payment failed store_id=%s", store_id)
        raise StorageError()
    rows = res.data or []
    return rows[0] if rows else None

def upsert_store_payment(store_id: str, values: Dict[str, Any]) -> None:
    """Crée ou met à jour l'enregistrement 'payments' d'une boutique."""
    try:
        (
            supabase_client.get_service_supabase()
            .table("payments")
            .upsert({"store_id": str(store_id), **values}, on_conflict="store_id")
            .execute()
        )
    except Exception:
        logger.exception("payments.repository.upsert_store_payment failed store_id=%s", store_id)
        raise StorageError()

def update_store_stripe_account(store_id: str, stripe_account_id: str) -> None:
    try:
        (
            supabase_client.get_service_supabase()
            .table("stores")
            .update({"stripe_account_id": stripe_account_id})
            .eq("id", str(store_id))
            .execute()
        )
    except Exception:
        logger.exception("payments.repository.update_store_stripe_account failed store_id=%s", store_id)
        raise StorageError()

