"""
Calcul du montant de commande (logique pure, pas de Stripe, pas de DB).
"""
from decimal import Decimal
from typing import Any, Dict, Iterable, NamedTuple, Optional

from storefront.config import PLATFORM_FEE_RATE
from storefront.errors import InvalidAmount
from storefront.utils.money import compute_fee, round_minor_units, to_decimal


class OrderAmount(NamedTuple):
    total: int
    fee: int


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)

# module storefront.payments.amount
def calculate_order_amount(items: Iterable[Any], rate: Optional[Decimal] = None) -> OrderAmount:
    """
    Total et commission plateforme d'une commande, en unités mineures entières.
    - items: [{price, quantity}, ...] avec price en unités mineures (fraction possible).
    - total = somme exacte des price * quantity, arrondie UNE fois (half-even) à la fin.
    - fee = floor(total * rate), rate = PLATFORM_FEE_RATE par défaut.
    - InvalidAmount si un prix/une quantité est négatif ou non fini, si une quantité
      n'est pas entière, ou si total <= 0.
    """
    rate = PLATFORM_FEE_RATE if rate is None else rate
    exact = Decimal(0)
    for item in items or []:
        price = to_decimal(_field(item, "price"))
        quantity = to_decimal(_field(item, "quantity"))
        if price is None or quantity is None or price < 0 or quantity < 0:
            raise InvalidAmount()
        if quantity != quantity.to_integral_value():
            raise InvalidAmount()
        exact += price * quantity

    total = round_minor_units(exact)
    if total <= 0:
        raise InvalidAmount()
    return OrderAmount(total=total, fee=compute_fee(total, rate))

def checkout_items(views: Iterable[Any]) -> list[Dict[str, Any]]:
    """
    Lignes de checkout à partir des lignes panier vivantes (LineItemView):
    {product_id, price (unités majeures, str), quantity}.
    """
    return [
        {"product_id": v.id, "price": str(v.price), "quantity": int(v.quantity)}
        for v in views
    ]
