from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from datetime import timedelta
from typing import Callable, Optional
import logging

from portal.api.deps import error_response
from portal.api.routes import auth, contact, password, signup
from portal.config import Settings, settings as default_settings
from portal.core.errors import (
    BackendError,
    FormValidationError,
    PortalError,
    WizardNotFoundError,
    WizardStateError,
)
from portal.core.signup import WizardStore
from portal.db.supabase import SupabaseClient

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    backend_factory: Optional[Callable[..., object]] = None,
    wizards: Optional[WizardStore] = None,
) -> FastAPI:
    """
    Construire l'application.

    backend_factory(settings, access_token=..., refresh_token=...) fournit
    l'adaptateur du service distant pour chaque requête; SupabaseClient par défaut.
    """
    settings = settings or default_settings
    logging.basicConfig(level=settings.LOG_LEVEL.upper())

    app = FastAPI(
        title=settings.APP_NAME,
        description="Authentification, inscription et contact du portail",
        version="0.1.0"
    )
    app.state.settings = settings
    app.state.backend_factory = backend_factory or SupabaseClient
    app.state.wizards = wizards or WizardStore(ttl=timedelta(minutes=settings.SIGNUP_WIZARD_TTL_MINUTES))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError):
        if isinstance(exc, FormValidationError):
            return error_response(422, exc.message, exc.errors)
        if isinstance(exc, WizardNotFoundError):
            return error_response(404, exc.message)
        if isinstance(exc, WizardStateError):
            return error_response(409, exc.message)
        if isinstance(exc, BackendError) and exc.status == 503:
            return error_response(503, exc.message)
        logger.error(f"Erreur non traitée sur {request.url.path}: {exc.message}")
        return error_response(400, exc.message)

    app.include_router(auth.router)
    app.include_router(signup.router)
    app.include_router(contact.router)
    app.include_router(password.router)

    @app.get("/")
    def root():
        return {"status": f"{settings.APP_NAME} backend running"}

    @app.get("/health")
    def health():
        return {"status": "healthy", "environment": settings.ENVIRONMENT}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level=default_settings.LOG_LEVEL.lower())
