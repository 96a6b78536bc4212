from urllib.parse import urlparse
from typing import Any, Dict
import redis

import storefront.infra.supabase_client as supabase_client
from storefront.config import SUPABASE_URL
from storefront.utils import cache

# module storefront.health.service
def _check_table(client, name: str) -> Dict[str, Any]:
    try:
        res = client.table(name).select("id").limit(1).execute()
        return {"ok": True, "rows": len(res.data or [])}
    except Exception as e:
        return {"ok": False, "error": str(e)}

def health_supabase_info() -> Dict[str, Any]:
    """
    Diagnostic Supabase: hôte configuré et accès en lecture aux tables du storefront.
    - carts via le client service (écritures panier), catalogue via le client anon.
    """
    parsed = urlparse(SUPABASE_URL) if SUPABASE_URL else None
    info: Dict[str, Any] = {
        "hostname": parsed.hostname if parsed else None,
        "connect_ok": False,
        "error": None,
        "tables": {},
    }
    try:
        anon = supabase_client.get_supabase()
        for t in ["products", "stores", "payments"]:
            info["tables"][t] = _check_table(anon, t)
        info["tables"]["carts"] = _check_table(supabase_client.get_service_supabase(), "carts")
        info["connect_ok"] = True
    except Exception as e:
        info["error"] = str(e)
    return info

def health_cache_info() -> Dict[str, Any]:
    try:
        return {"ok": bool(cache.get_cache_client().ping())}
    except redis.RedisError as e:
        return {"ok": False, "error": str(e)}
