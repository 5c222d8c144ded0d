# ===================================
# app/main.py
# ===================================
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from app.core.config import settings
from app.core.database import init_db, check_db_connection
from app.core.exceptions import ConflictError, StockAlertError
from app.core.logging import configure_logging
from app.core.scheduler import init_scheduler, shutdown_scheduler

# Import des routes
from app.api.v1 import signalements, rotations, inventaires

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Gestionnaire de cycle de vie de l'application"""
    logger.info("Démarrage de l'application", extra={
        "version": settings.app_version, "environment": settings.environment,
    })

    if not check_db_connection():
        logger.error("Impossible de se connecter à la base de données")
        raise RuntimeError("Database connection failed")

    init_db()

    if settings.scheduler_enabled:
        init_scheduler()

    logger.info("Application démarrée")

    yield

    logger.info("Arrêt de l'application")
    shutdown_scheduler()


def error_response(status_code: int, message, error_type: str, details=None) -> JSONResponse:
    error = {
        "code": status_code,
        "message": message,
        "type": error_type
    }
    if details is not None:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def create_app() -> FastAPI:
    """Factory pour créer l'application FastAPI"""

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        lifespan=lifespan
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes API v1
    app.include_router(signalements.router, prefix=f"{settings.api_prefix}/signalements", tags=["Signalements"])
    app.include_router(rotations.router, prefix=f"{settings.api_prefix}/rotations", tags=["Rotations"])
    app.include_router(inventaires.router, prefix=f"{settings.api_prefix}/inventaires", tags=["Inventaires"])

    # Route de santé
    @app.get("/health")
    async def health_check():
        """Vérification de la santé de l'API"""
        db_status = "ok" if check_db_connection() else "error"

        return {
            "status": "ok" if db_status == "ok" else "error",
            "version": settings.app_version,
            "environment": settings.environment,
            "database": db_status,
            "scheduler": "ok" if settings.scheduler_enabled else "disabled"
        }

    # Route racine
    @app.get("/")
    async def root():
        return {
            "message": f"Bienvenue sur {settings.app_name}",
            "version": settings.app_version,
            "docs": "/docs",
            "health": "/health"
        }

    # Gestion globale des erreurs
    @app.exception_handler(StockAlertError)
    async def domain_exception_handler(request: Request, exc: StockAlertError):
        logger.info("Erreur métier", extra={
            "path": request.url.path, "error_type": exc.error_type, "error": exc.message,
        })
        details = exc.details if isinstance(exc, ConflictError) else None
        return error_response(exc.status_code, exc.message, exc.error_type, details)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return error_response(exc.status_code, exc.detail, "http_error")

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Erreur non gérée: {exc}", exc_info=True)
        return error_response(500, "Erreur interne du serveur", "internal_error")

    return app


# Créer l'instance de l'application
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.log_level.lower()
    )
