from typing import Any, Dict, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from portal.config import Settings
from portal.core.signup import WizardStore
from portal.core.states import FlowState, Failed, Idle, InvalidLink, Success
from portal.models.session import AuthSession


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_backend(request: Request):
    """Adaptateur Supabase propre à la requête, avec les jetons des cookies"""
    settings: Settings = request.app.state.settings
    factory = request.app.state.backend_factory
    return factory(
        settings,
        access_token=request.cookies.get(settings.ACCESS_TOKEN_COOKIE),
        refresh_token=request.cookies.get(settings.REFRESH_TOKEN_COOKIE),
    )


def get_wizards(request: Request) -> WizardStore:
    return request.app.state.wizards


def set_session_cookies(response: Response, settings: Settings, session: AuthSession) -> None:
    for name, value in (
        (settings.ACCESS_TOKEN_COOKIE, session.access_token),
        (settings.REFRESH_TOKEN_COOKIE, session.refresh_token),
    ):
        response.set_cookie(
            name,
            value,
            httponly=True,
            secure=settings.SESSION_COOKIE_SECURE,
            samesite="lax",
        )


def clear_session_cookies(response: Response, settings: Settings) -> None:
    response.delete_cookie(settings.ACCESS_TOKEN_COOKIE)
    response.delete_cookie(settings.REFRESH_TOKEN_COOKIE)


def error_response(status_code: int, message: str, errors: Optional[Dict[str, str]] = None) -> JSONResponse:
    content: Dict[str, Any] = {"success": False, "error": message}
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content)


def state_response(state: FlowState, extra: Optional[Dict[str, Any]] = None) -> JSONResponse:
    """Réponse JSON d'un état de flux, code HTTP selon l'état"""
    content: Dict[str, Any] = state.as_dict()
    if extra:
        content.update(extra)
    headers: Dict[str, str] = {}

    if isinstance(state, Success):
        status_code = 200
        content["success"] = True
        if state.redirect_to and state.redirect_after is not None:
            headers["Refresh"] = f"{state.redirect_after}; url={state.redirect_to}"
    elif isinstance(state, Idle) and state.field_error:
        status_code = 422
        content["success"] = False
    elif isinstance(state, (Failed, InvalidLink)):
        status_code = 400
        content["success"] = False
    else:
        status_code = 200
        content["success"] = True

    return JSONResponse(status_code=status_code, content=content, headers=headers)
