# storefront.config
from pathlib import Path
from decimal import Decimal
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du storefront.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe, Redis)
- Expose les constantes métier du checkout (devise, commission plateforme)
- Expose les paramètres du cookie panier (nom, durée de vie, drapeau secure)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

# Supabase: URL et clés (anon pour les lectures catalogue, service pour les écritures panier)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Stripe: clés, secret webhook, devise et délai réseau
STRIPE_PUBLIC_KEY = _clean_env(os.getenv("STRIPE_PUBLIC_KEY") or "")
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")
STRIPE_CURRENCY = _clean_env(os.getenv("STRIPE_CURRENCY") or "usd").lower()
STRIPE_TIMEOUT_SECONDS = int(os.getenv("STRIPE_TIMEOUT_SECONDS", "20"))
STRIPE_ACCOUNT_COUNTRY = _clean_env(os.getenv("STRIPE_ACCOUNT_COUNTRY") or "US")

# Commission plateforme (0.1 = 10 % du total, arrondie à l'unité mineure inférieure)
PLATFORM_FEE_RATE = Decimal(_clean_env(os.getenv("PLATFORM_FEE_RATE") or "0.1"))

# Cookie panier: identifiant opaque du panier côté client
CART_COOKIE_NAME = _clean_env(os.getenv("CART_COOKIE_NAME") or "cartId")
CART_COOKIE_MAX_AGE = int(os.getenv("CART_COOKIE_MAX_AGE", str(60 * 60 * 24 * 30)))
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]

# Cache des lectures tolérantes (produits mis en avant, catégories)
CACHE_REDIS_URL = _clean_env(os.getenv("CACHE_REDIS_URL") or "redis://127.0.0.1:6379/1")
CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "3600"))

BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:8000")
