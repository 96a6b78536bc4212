"""
Gestionnaires d’exceptions utilisés par la factory.
- StorefrontError (erreurs métier typées): résultat {"data": null, "error": <message>, "code": <code>}.
- HTTPException: JSON FastAPI standard {"detail": ...}.
- Aucune trace interne n'est renvoyée au client; les erreurs inattendues sont journalisées.
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from storefront.errors import StorefrontError

logger = logging.getLogger(__name__)

def error_response(exc: StorefrontError) -> JSONResponse:
    """Convertit une erreur métier en réponse résultat (réutilisable par les vues)."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"data": None, "error": exc.message, "code": exc.code},
    )

def register_exception_handlers(app: FastAPI) -> None:
    """
    Enregistre les handlers:
    - StorefrontError -> résultat typé (le front affiche `error`).
    - HTTPException -> {"detail": ...} (auth, rate limit, payload invalide).
    """
    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        logger.info("storefront.error path=%s code=%s", request.url.path, exc.code)
        return error_response(exc)

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))
