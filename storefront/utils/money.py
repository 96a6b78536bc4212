"""
Helpers montants: conversions unités majeures/mineures, commission et formatage.
- Toute l'arithmétique passe par Decimal (pas de float) pour éviter les dérives d'arrondi.
"""
from decimal import Decimal, InvalidOperation, ROUND_FLOOR, ROUND_HALF_EVEN
from typing import Any, Optional

# module storefront.utils.money
MINOR_UNITS_PER_MAJOR = Decimal(100)

CURRENCY_SYMBOLS = {
    "usd": "$",
    "eur": "€",
    "gbp": "£",
}

def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Convertit une valeur (str|int|float|Decimal) en Decimal.
    - Passe par str() pour les float afin de conserver la valeur lue (0.1 -> Decimal("0.1")).
    - Retourne None si la valeur n'est pas numérique ou non finie (nan, inf).
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not dec.is_finite():
        return None
    return dec

def to_minor_units(price: Any) -> Decimal:
    """
    Prix catalogue (unités majeures, ex "10.50") -> unités mineures exactes (Decimal("1050")).
    Aucun arrondi ici: l'arrondi se fait une seule fois sur le total de commande.
    Lève ValueError si le prix n'est pas un nombre fini.
    """
    dec = to_decimal(price)
    if dec is None:
        raise ValueError(f"Prix invalide: {price!r}")
    return dec * MINOR_UNITS_PER_MAJOR

def round_minor_units(amount: Decimal) -> int:
    """Arrondi bancaire (half-even) vers un entier d'unités mineures."""
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_EVEN))

def compute_fee(total: int, rate: Decimal) -> int:
    """Commission plateforme: floor(total * rate) en unités mineures."""
    return int((Decimal(total) * rate).to_integral_value(rounding=ROUND_FLOOR))

def format_price(price: Any, currency: str = "usd") -> str:
    """
    Formate un prix en unités majeures pour l'affichage ("$1,234.50").
    - Devise inconnue: suffixe avec le code ISO ("1,234.50 CHF").
    """
    dec = to_decimal(price) or Decimal(0)
    amount = f"{dec.quantize(Decimal('0.01'), rounding=ROUND_HALF_EVEN):,.2f}"
    symbol = CURRENCY_SYMBOLS.get((currency or "").lower())
    if symbol:
        return f"-{symbol}{amount[1:]}" if amount.startswith("-") else f"{symbol}{amount}"
    return f"{amount} {(currency or '').upper()}"
