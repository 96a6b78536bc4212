"""
Cache Redis des lectures tolérantes à la fraîcheur (produits mis en avant, catégories).
- Chaque entrée est étiquetée (tags); revalidate_tag / revalidate_path invalident toutes
  les entrées d'une étiquette.
- Les lectures qui doivent refléter l'état exact (stock, panier, montants) ne passent JAMAIS ici.
- Le cache n'est pas critique: une panne Redis est journalisée et la lecture va directement en base.
"""
import json
import logging
from typing import Any, Callable, Iterable, Optional

import redis

from storefront.config import CACHE_REDIS_URL, CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)

KEY_PREFIX = "cache:"
TAG_PREFIX = "cache:tag:"

_client: Optional[redis.Redis] = None

# module storefront.utils.cache
def get_cache_client() -> redis.Redis:
    global _client
    if _client is None:
        _client = redis.from_url(CACHE_REDIS_URL, encoding="utf-8", decode_responses=True)
    return _client

def path_tag(path: str) -> str:
    return f"path:{path}"

def cached(key: str, loader: Callable[[], Any], *, tags: Iterable[str] = (), ttl: int = CACHE_TTL_SECONDS) -> Any:
    """
    Retourne la valeur en cache pour `key`, sinon appelle loader() et la stocke (JSON, TTL).
    - tags: étiquettes d'invalidation associées à l'entrée.
    """
    full_key = KEY_PREFIX + key
    try:
        raw = get_cache_client().get(full_key)
        if raw is not None:
            return json.loads(raw)
    except redis.RedisError as e:
        logger.warning("cache.get failed key=%s: %s", key, e)
        return loader()

    value = loader()
    try:
        pipe = get_cache_client().pipeline()
        pipe.set(full_key, json.dumps(value, default=str), ex=ttl)
        for tag in tags:
            pipe.sadd(TAG_PREFIX + tag, full_key)
            pipe.expire(TAG_PREFIX + tag, ttl)
        pipe.execute()
    except redis.RedisError as e:
        logger.warning("cache.set failed key=%s: %s", key, e)
    return value

def revalidate_tag(tag: str) -> int:
    """Supprime toutes les entrées portant l'étiquette; retourne le nombre de clés supprimées."""
    tag_key = TAG_PREFIX + tag
    try:
        client = get_cache_client()
        keys = list(client.smembers(tag_key) or [])
        removed = client.delete(*keys) if keys else 0
        client.delete(tag_key)
        if removed:
            logger.info("cache.revalidate tag=%s removed=%s", tag, removed)
        return int(removed or 0)
    except redis.RedisError as e:
        logger.warning("cache.revalidate failed tag=%s: %s", tag, e)
        return 0

def revalidate_path(path: str = "/") -> int:
    """Signal d'invalidation des vues dépendantes d'un chemin (ex: "/" après une mutation panier)."""
    return revalidate_tag(path_tag(path))
