import logging
from dataclasses import dataclass
from typing import Tuple

from portal.config import Settings
from portal.core.errors import BackendError, FormValidationError, ProfileLookupError
from portal.core.resolver import Redirect, Resolution, SessionResolver, Stay, UNKNOWN_ROLE_ERROR
from portal.core.states import FlowState, Failed, Success
from portal.core.validation import validate_login
from portal.models.session import AuthSession

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "E-mail ou senha incorretos."
EMAIL_NOT_FOUND = "E-mail não encontrado. Verifique o endereço digitado."
RESET_EMAIL_ERROR = "Não foi possível enviar o link de redefinição. Tente novamente."


@dataclass(frozen=True)
class LoginResult:
    session: AuthSession
    redirect: Redirect


class LoginFlow:
    """Connexion, échange de jetons OAuth et demande de récupération"""

    def __init__(self, backend, settings: Settings):
        self.backend = backend
        self.settings = settings
        self.resolver = SessionResolver(backend, settings)

    async def check_existing_session(self) -> Resolution:
        resolution = await self.resolver.resolve()
        if isinstance(resolution, Redirect):
            logger.info("[Auth] Usuário já possui sessão ativa, redirecionando")
        return resolution

    async def submit(self, email: str, password: str) -> LoginResult:
        errors = validate_login(email, password)
        if errors:
            raise FormValidationError(errors)

        logger.info(f"[Auth] Iniciando tentativa de login para: {email}")
        try:
            session = await self.backend.sign_in(email, password)
        except BackendError as e:
            raise BackendError(e.message or INVALID_CREDENTIALS, status=e.status) from e

        try:
            profile = await self.resolver.load_profile(session.user_id)
        except ProfileLookupError:
            # Pas d'accès ambigu: on ferme la session
            await self._force_sign_out()
            raise

        route = self.resolver.destination(profile)
        if route is None:
            logger.warning(f"[Auth] Role desconhecida ou não definida: {profile.role}")
            await self._force_sign_out()
            raise ProfileLookupError(UNKNOWN_ROLE_ERROR)

        logger.info(f"[Auth] Login bem-sucedido, redirecionando para {route}")
        return LoginResult(session=session, redirect=Redirect(route))

    async def exchange_tokens(self, access_token: str, refresh_token: str) -> Tuple[AuthSession, Resolution]:
        """Retour de redirection OAuth: la résolution passe par l'événement SIGNED_IN"""
        self.resolver.attach()
        try:
            session = await self.backend.set_session(access_token, refresh_token)
            resolution = await self.resolver.settle()
        finally:
            self.resolver.close()
        return session, resolution or Stay()

    async def begin_google(self, redirect_route: str) -> str:
        logger.info("[Auth] Iniciando login com Google...")
        return await self.backend.begin_oauth("google", self.settings.site_link(redirect_route))

    async def request_password_reset(self, email: str) -> FlowState:
        """Vérifier l'email puis envoyer le lien vers /redefinir-senha"""
        email = email.strip()
        logger.info(f"[Auth] Iniciando recuperação de senha para: {email}")
        try:
            exists = await self.backend.check_user_exists(email)
            if not exists:
                logger.warning(f"[Auth] E-mail não encontrado no sistema: {email}")
                return Failed(message=EMAIL_NOT_FOUND)

            await self.backend.send_password_reset_email(
                email, self.settings.site_link(self.settings.PASSWORD_RESET_ROUTE)
            )
        except BackendError as e:
            logger.error(f"[Auth] Erro na recuperação de senha: {e.message}")
            return Failed(message=RESET_EMAIL_ERROR)

        logger.info(f"[Auth] Link de redefinição enviado para: {email}")
        return Success()

    async def sign_out(self) -> None:
        await self.backend.sign_out()

    async def _force_sign_out(self) -> None:
        try:
            await self.backend.sign_out()
        except BackendError as e:
            logger.error(f"[Auth] Falha ao encerrar sessão: {e.message}")
