from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class StripeAccountStatus(BaseModel):
    """État de connexion Stripe d'une boutique (jamais d'exception côté lecture)."""
    is_connected: bool = False
    account: Optional[Dict[str, Any]] = None
    payment: Optional[Dict[str, Any]] = None


class IntentHandle(BaseModel):
    payment_intent_id: str
    client_secret: Optional[str] = None
    amount: int
    fee: int
    created: bool


class PaymentIntentSummary(BaseModel):
    id: str
    amount: int
    amount_display: str
    created: int
    cart_id: Optional[str] = None


class PaymentIntentPage(BaseModel):
    payment_intents: List[PaymentIntentSummary] = Field(default_factory=list)
    has_more: bool = False


# Corps de requêtes HTTP
class CreateIntentInput(BaseModel):
    store_id: str = Field(min_length=1)


class ConfirmPaymentInput(BaseModel):
    store_id: str = Field(min_length=1)
    payment_intent_id: str = Field(min_length=1)
    delivery_postal_code: Optional[str] = None


class ManagePlanInput(BaseModel):
    stripe_price_id: str = Field(min_length=1)
    stripe_customer_id: Optional[str] = None
    is_subscribed: bool = False
    is_current_plan: bool = False
