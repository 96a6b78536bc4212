"""
Taxonomie des erreurs métier du storefront.

Chaque erreur porte:
- message: texte affichable à l'utilisateur (jamais de détail interne)
- code: identifiant stable pour le front
- status_code: statut HTTP utilisé par le handler FastAPI (app_setup.exceptions)

Les services lèvent ces erreurs; la frontière HTTP les convertit en
résultat {"data": null, "error": <message>, "code": <code>}.
"""


class StorefrontError(Exception):
    code = "error"
    status_code = 400
    default_message = "Une erreur est survenue, veuillez réessayer."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# --- NotFound ---
class NotFound(StorefrontError):
    code = "not_found"
    status_code = 404
    default_message = "Ressource introuvable."

class CartNotFound(NotFound):
    code = "cart_not_found"
    default_message = "Cart not found, please try again."

class ProductNotFound(NotFound):
    code = "product_not_found"
    default_message = "Product not found, please try again."

class ItemNotFound(NotFound):
    code = "item_not_found"
    default_message = "CartItem not found, please try again."

class StoreNotFound(NotFound):
    code = "store_not_found"
    default_message = "Store not found."


# --- Validation ---
class OutOfStock(StorefrontError):
    code = "out_of_stock"
    status_code = 409
    default_message = "Product is out of stock, please try again later."

class InvalidQuantity(StorefrontError):
    code = "invalid_quantity"
    status_code = 422
    default_message = "Quantity must be a positive integer."

class InvalidAmount(StorefrontError):
    code = "invalid_amount"
    status_code = 422
    default_message = "Invalid order amount."

class InvalidSortKey(StorefrontError):
    code = "invalid_sort"
    status_code = 422
    default_message = "Unknown sort key."


# --- Paiement ---
class StoreNotConnected(StorefrontError):
    code = "store_not_connected"
    status_code = 409
    default_message = "Store not connected to Stripe."

class StoreAlreadyConnected(StorefrontError):
    code = "store_already_connected"
    status_code = 409
    default_message = "Store already connected to Stripe."

class NotSucceeded(StorefrontError):
    code = "payment_not_succeeded"
    status_code = 402
    default_message = "Payment intent not succeeded."

class Mismatch(StorefrontError):
    code = "payment_mismatch"
    status_code = 403
    default_message = "CartId or delivery postal code does not match."

class ProviderError(StorefrontError):
    code = "provider_error"
    status_code = 502
    default_message = "Le service de paiement est indisponible, veuillez réessayer."


# --- Accès / stockage ---
class Unauthorized(StorefrontError):
    code = "unauthorized"
    status_code = 403
    default_message = "Unauthorized access to store."

class CartConflict(StorefrontError):
    code = "cart_conflict"
    status_code = 409
    default_message = "Cart was modified by another request, please try again."

class StorageError(StorefrontError):
    code = "storage_error"
    status_code = 503
    default_message = "Service temporairement indisponible, veuillez réessayer."
