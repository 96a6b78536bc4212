"""
Types du panier, validés à la frontière de persistance (lecture et écriture).
- LineItem: (product_id, quantity>=1), la suppression = absence de la ligne.
- Cart: ligne de la table 'carts' (items JSON typés + version pour la concurrence optimiste).
- LineItemView: ligne du panier jointe au produit vivant (prix lu au moment de la lecture).
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LineItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId", min_length=1)
    quantity: int = Field(ge=1)

    @field_validator("product_id", mode="before")
    @classmethod
    def _stringify_id(cls, v):
        return str(v).strip() if v is not None else v

    def to_row(self) -> dict:
        """Forme stockée dans carts.items (clés camelCase, compatibles front)."""
        return {"productId": self.product_id, "quantity": self.quantity}


class Cart(BaseModel):
    id: str
    items: List[LineItem] = Field(default_factory=list)
    closed: bool = False
    payment_intent_id: Optional[str] = None
    client_secret: Optional[str] = None
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v):
        return str(v) if v is not None else v

    @field_validator("items", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        return v or []

    def find_item(self, product_id: str) -> Optional[LineItem]:
        return next((it for it in self.items if it.product_id == product_id), None)


class LineItemView(BaseModel):
    id: str
    name: str
    images: list = Field(default_factory=list)
    category: Optional[str] = None
    subcategory: Optional[str] = None
    price: str
    inventory: int = 0
    store_id: Optional[str] = None
    store_name: Optional[str] = None
    store_stripe_account_id: Optional[str] = None
    quantity: int


class CartMutation(BaseModel):
    """
    Résultat d'une mutation:
    - cart_id: jeton à (re)poser dans le cookie; None si le panier a été supprimé.
    - items: liste persistée après mutation.
    """
    cart_id: Optional[str] = None
    items: List[LineItem] = Field(default_factory=list)


# Corps de requêtes HTTP
class CartItemInput(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)


class CartQuantityInput(BaseModel):
    quantity: int = Field(ge=0)


class CartItemsDeleteInput(BaseModel):
    product_ids: List[str] = Field(default_factory=list)
