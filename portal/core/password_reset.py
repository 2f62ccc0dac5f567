"""
Redéfinition du mot de passe.

Deux points d'entrée partagent la même machine à états
``idle -> validating -> submitting -> success | error`` (plus l'état terminal
``invalid-link``); ils ne diffèrent que par leur ResetPolicy.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from portal.config import Settings
from portal.core.errors import BackendError
from portal.core.states import FlowState, Failed, Idle, InvalidLink, Submitting, Success, Validating
from portal.core.validation import validate_reset_password

logger = logging.getLogger(__name__)

PASSWORD_MISMATCH = "As senhas não coincidem."
UPDATE_ERROR = "Erro ao redefinir senha. Tente novamente."


class CredentialKind(str, Enum):
    SESSION = "session"
    RECOVERY_TOKEN = "recovery-token"


@dataclass(frozen=True)
class ResetPolicy:
    entry_route: str
    credential: CredentialKind
    require_letter_and_digit: bool
    invalid_link_message: str
    redirect_to: str = "/login"
    redirect_after: int = 3


@dataclass(frozen=True)
class RecoveryCredential:
    """Jetons présents dans le fragment du lien envoyé par email"""
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    type: Optional[str] = None

    @property
    def is_recovery(self) -> bool:
        return bool(self.access_token) and self.type == "recovery"


def session_policy(settings: Settings) -> ResetPolicy:
    return ResetPolicy(
        entry_route=settings.PASSWORD_RESET_ROUTE,
        credential=CredentialKind.SESSION,
        require_letter_and_digit=False,
        invalid_link_message=(
            "Link de recuperação inválido ou expirado. Solicite uma nova redefinição de senha."
        ),
        redirect_to=settings.LOGIN_ROUTE,
        redirect_after=settings.RESET_REDIRECT_DELAY,
    )


def recovery_token_policy(settings: Settings) -> ResetPolicy:
    return ResetPolicy(
        entry_route="/reset-password",
        credential=CredentialKind.RECOVERY_TOKEN,
        require_letter_and_digit=True,
        invalid_link_message="Link de recuperação inválido ou expirado.",
        redirect_to=settings.LOGIN_ROUTE,
        redirect_after=settings.RESET_REDIRECT_DELAY,
    )


class PasswordResetFlow:
    def __init__(self, backend, policy: ResetPolicy):
        self.backend = backend
        self.policy = policy
        self.state: FlowState = Idle()
        self._loaded = False

    async def load(self, credential: Optional[RecoveryCredential] = None) -> FlowState:
        """Vérifier la session ou le jeton de récupération avant d'accepter un mot de passe"""
        self.state = Validating()
        self._loaded = True

        if self.policy.credential is CredentialKind.SESSION:
            valid = await self.backend.get_session() is not None
        else:
            valid = credential is not None and credential.is_recovery
            if valid:
                try:
                    await self.backend.set_session(credential.access_token, credential.refresh_token or "")
                except BackendError as e:
                    logger.warning(f"[Auth] Jeton de récupération refusé: {e.message}")
                    valid = False

        self.state = Idle() if valid else InvalidLink(message=self.policy.invalid_link_message)
        return self.state

    async def submit(self, password: str, confirmation: str,
                     credential: Optional[RecoveryCredential] = None) -> FlowState:
        if not self._loaded:
            await self.load(credential)
        if isinstance(self.state, (InvalidLink, Submitting, Success)):
            return self.state

        problem = validate_reset_password(password, self.policy.require_letter_and_digit)
        if problem is None and password != confirmation:
            problem = PASSWORD_MISMATCH
        if problem:
            self.state = Idle(field_error=problem)
            return self.state

        self.state = Submitting()
        try:
            await self.backend.update_password(password)
        except BackendError as e:
            logger.error(f"Erro ao redefinir senha: {e.message}")
            self.state = Failed(message=e.message or UPDATE_ERROR)
            return self.state

        logger.info(f"[Auth] Senha redefinida via {self.policy.entry_route}")
        self.state = Success(redirect_to=self.policy.redirect_to, redirect_after=self.policy.redirect_after)
        return self.state
