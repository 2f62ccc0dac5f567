from fastapi import APIRouter, Depends, Response
from typing import Optional
import logging

from portal.api.deps import (
    clear_session_cookies,
    error_response,
    get_backend,
    get_settings,
    set_session_cookies,
    state_response,
)
from portal.config import Settings
from portal.core.errors import BackendError, ProfileLookupError
from portal.core.login import LoginFlow
from portal.core.resolver import Redirect, Resolution, SessionResolver
from portal.schemas.auth import (
    LoginRequest,
    PasswordRecoveryRequest,
    ResolutionResponse,
    TokenExchangeRequest,
)

router = APIRouter(tags=["Authentification"])
logger = logging.getLogger(__name__)

WAITING_PROFILE_COLUMNS = "id, nome, sobrenome, email, role, signature"


def _resolution_body(resolution: Resolution) -> ResolutionResponse:
    if isinstance(resolution, Redirect):
        return ResolutionResponse(success=True, redirect_to=resolution.route)
    return ResolutionResponse(success=resolution.error is None, error=resolution.error)


@router.get("/login")
async def login_page(
    success: Optional[str] = None,
    backend=Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    """
    Montage de la page de connexion: si une session existe déjà,
    indiquer où rediriger l'utilisateur.
    """
    resolution = await LoginFlow(backend, settings).check_existing_session()
    body = _resolution_body(resolution).model_dump()
    body["signup_success"] = success == "signup"
    return body


@router.post("/login")
async def login(
    data: LoginRequest,
    response: Response,
    backend=Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    flow = LoginFlow(backend, settings)
    try:
        result = await flow.submit(data.email, data.password)
    except BackendError as e:
        return error_response(401, e.message)
    except ProfileLookupError as e:
        denied = error_response(403, e.message)
        clear_session_cookies(denied, settings)
        return denied

    set_session_cookies(response, settings, result.session)
    return {"success": True, "redirect_to": result.redirect.route}


@router.get("/login/google")
async def login_with_google(
    backend=Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    url = await LoginFlow(backend, settings).begin_google(settings.LOGIN_ROUTE)
    return {"url": url}


@router.post("/login/recuperar-senha")
async def request_password_reset(
    data: PasswordRecoveryRequest,
    backend=Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    state = await LoginFlow(backend, settings).request_password_reset(data.email)
    return state_response(state)


@router.post("/auth/sessao")
async def exchange_session(
    data: TokenExchangeRequest,
    response: Response,
    backend=Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    """Retour OAuth: restaurer la session puis résoudre la destination"""
    session, resolution = await LoginFlow(backend, settings).exchange_tokens(
        data.access_token, data.refresh_token
    )
    set_session_cookies(response, settings, session)
    return _resolution_body(resolution)


@router.post("/logout")
async def logout(
    response: Response,
    backend=Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    await LoginFlow(backend, settings).sign_out()
    clear_session_cookies(response, settings)
    return {"success": True, "redirect_to": "/"}


@router.get("/aguardando-aprovacao")
async def waiting_approval(
    backend=Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    """Revérifier le statut d'un élève en attente d'approbation"""
    session = await backend.get_session()
    if session is None:
        return {"success": False, "redirect_to": settings.LOGIN_ROUTE, "approved": False}

    resolver = SessionResolver(backend, settings)
    try:
        profile = await resolver.load_profile(session.user_id, WAITING_PROFILE_COLUMNS)
    except ProfileLookupError as e:
        return error_response(400, e.message)

    route = resolver.approval_destination(profile)
    return {
        "success": True,
        "redirect_to": route,
        "approved": route == settings.DASHBOARD_ROUTE,
        "user": {
            "name": profile.first_name or "Aluno",
            "email": session.email or profile.email,
        },
    }
