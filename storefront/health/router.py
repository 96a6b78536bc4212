from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from storefront.health.service import health_cache_info, health_supabase_info
from storefront.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root():
    return {"ok": True}

@router.get("/supabase")
def health_supabase():
    return JSONResponse(health_supabase_info())

@router.get("/cache")
def health_cache():
    return JSONResponse(health_cache_info())

@router.get("/rate-limit")
def health_rate_limit(request: Request):
    return JSONResponse(rate_limit_health_info(request))
