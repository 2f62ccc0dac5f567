from fastapi import APIRouter, Depends
import logging

from portal.api.deps import get_backend, get_settings, state_response
from portal.config import Settings
from portal.core.password_reset import (
    PasswordResetFlow,
    RecoveryCredential,
    recovery_token_policy,
    session_policy,
)
from portal.schemas.auth import (
    PasswordUpdateRequest,
    RecoveryPasswordUpdateRequest,
    RecoveryTokenRequest,
)

router = APIRouter(tags=["Mot de passe"])
logger = logging.getLogger(__name__)


# ==================== /redefinir-senha (session) ====================

@router.get("/redefinir-senha")
async def check_reset_session(
    backend=Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    flow = PasswordResetFlow(backend, session_policy(settings))
    return state_response(await flow.load())


@router.post("/redefinir-senha")
async def update_password_with_session(
    data: PasswordUpdateRequest,
    backend=Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    flow = PasswordResetFlow(backend, session_policy(settings))
    state = await flow.submit(data.password, data.confirm_password)
    return state_response(state)


# ==================== /reset-password (jeton) ====================

@router.post("/reset-password/validar")
async def check_recovery_token(
    data: RecoveryTokenRequest,
    backend=Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    flow = PasswordResetFlow(backend, recovery_token_policy(settings))
    credential = RecoveryCredential(data.access_token, data.refresh_token, data.type)
    return state_response(await flow.load(credential))


@router.post("/reset-password")
async def update_password_with_token(
    data: RecoveryPasswordUpdateRequest,
    backend=Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    flow = PasswordResetFlow(backend, recovery_token_policy(settings))
    credential = RecoveryCredential(data.access_token, data.refresh_token, data.type)
    state = await flow.submit(data.password, data.confirm_password, credential)
    return state_response(state)
