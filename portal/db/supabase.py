from supabase import create_client, Client
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from portal.config import Settings
from portal.core.errors import BackendError
from portal.models.session import AuthSession, AuthUser

logger = logging.getLogger(__name__)

AuthListener = Callable[[str, Optional[AuthSession]], None]

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"


def _as_backend_error(exc: Exception) -> BackendError:
    """Convertir une exception du client Supabase en BackendError"""
    if isinstance(exc, BackendError):
        return exc
    message = getattr(exc, "message", None) or str(exc)
    status = getattr(exc, "status", None)
    if not isinstance(status, int):
        status = None
    return BackendError(message, status=status)


def _to_session(session: Any) -> Optional[AuthSession]:
    if session is None or session.user is None:
        return None
    return AuthSession(
        user_id=session.user.id,
        email=session.user.email,
        access_token=session.access_token,
        refresh_token=session.refresh_token,
    )


class SupabaseClient:
    """
    Client Supabase pour l'authentification et les tables du portail.

    Une instance par requête HTTP: la session de l'utilisateur est restaurée
    à partir des jetons fournis (cookies) au premier besoin.
    """

    def __init__(
        self,
        settings: Settings,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ):
        self.settings = settings
        self._pending_tokens = (access_token, refresh_token) if access_token and refresh_token else None
        self._listeners: List[AuthListener] = []

        if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
            logger.warning("Configuration Supabase manquante")
            self.client = None
            return

        try:
            self.client: Optional[Client] = create_client(
                settings.SUPABASE_URL,
                settings.SUPABASE_KEY
            )
        except Exception as e:
            logger.error(f"Erreur d'initialisation Supabase: {str(e)}")
            self.client = None

    def _require_client(self) -> Client:
        if not self.client:
            raise BackendError("Serviço de autenticação indisponível.", status=503)
        return self.client

    # ==================== ÉVÉNEMENTS D'AUTH ====================

    def on_auth_event(self, callback: AuthListener) -> Callable[[], None]:
        """Enregistrer un listener; retourne la fonction de désinscription"""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, event: str, session: Optional[AuthSession]) -> None:
        logger.info(f"[Auth] Evento de autenticação: {event}")
        for listener in list(self._listeners):
            listener(event, session)

    # ==================== AUTH ====================

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Connexion par email et mot de passe"""
        client = self._require_client()
        try:
            response = await asyncio.to_thread(client.auth.sign_in_with_password, {
                "email": email,
                "password": password
            })
        except Exception as e:
            logger.error(f"Erreur connexion: {str(e)}")
            raise _as_backend_error(e) from e

        session = _to_session(response.session)
        if session is None:
            raise BackendError("E-mail ou senha incorretos.", status=400)

        self._pending_tokens = None
        self._emit(SIGNED_IN, session)
        return session

    async def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> AuthUser:
        """Créer un utilisateur via Supabase Auth"""
        client = self._require_client()
        try:
            response = await asyncio.to_thread(client.auth.sign_up, {
                "email": email,
                "password": password,
                "options": {
                    "data": metadata or {}
                }
            })
        except Exception as e:
            logger.error(f"Erreur création utilisateur: {str(e)}")
            raise _as_backend_error(e) from e

        if not response.user:
            raise BackendError("Erro ao criar usuário.")
        return AuthUser(id=response.user.id, email=response.user.email)

    async def sign_out(self) -> None:
        client = self._require_client()
        if self._pending_tokens:
            # La session des cookies doit être active pour être révoquée
            await self.get_session()
        try:
            await asyncio.to_thread(client.auth.sign_out)
        except Exception as e:
            logger.error(f"Erreur déconnexion: {str(e)}")
            raise _as_backend_error(e) from e
        finally:
            self._pending_tokens = None
        self._emit(SIGNED_OUT, None)

    async def get_session(self) -> Optional[AuthSession]:
        """Session courante, restaurée depuis les jetons si nécessaire"""
        if not self.client:
            return None

        if self._pending_tokens:
            access_token, refresh_token = self._pending_tokens
            self._pending_tokens = None
            try:
                response = await asyncio.to_thread(self.client.auth.set_session, access_token, refresh_token)
                return _to_session(response.session)
            except Exception as e:
                # Jetons expirés ou révoqués: pas de session
                logger.warning(f"Restauration de session impossible: {str(e)}")
                return None

        try:
            return _to_session(await asyncio.to_thread(self.client.auth.get_session))
        except Exception as e:
            logger.error(f"Erreur lecture session: {str(e)}")
            return None

    async def set_session(self, access_token: str, refresh_token: str) -> AuthSession:
        """Échanger les jetons reçus (OAuth, lien de récupération) contre une session"""
        client = self._require_client()
        try:
            response = await asyncio.to_thread(client.auth.set_session, access_token, refresh_token)
        except Exception as e:
            logger.error(f"Erreur échange de jetons: {str(e)}")
            raise _as_backend_error(e) from e

        session = _to_session(response.session)
        if session is None:
            raise BackendError("Sessão inválida ou expirada.", status=401)

        self._pending_tokens = None
        self._emit(SIGNED_IN, session)
        return session

    async def begin_oauth(self, provider: str, redirect_to: str) -> str:
        """Démarrer un login OAuth; retourne l'URL du fournisseur"""
        client = self._require_client()
        try:
            response = await asyncio.to_thread(client.auth.sign_in_with_oauth, {
                "provider": provider,
                "options": {
                    "redirect_to": redirect_to,
                    "query_params": {
                        "access_type": "offline",
                        "prompt": "select_account",
                    },
                },
            })
        except Exception as e:
            logger.error(f"Erreur OAuth {provider}: {str(e)}")
            raise _as_backend_error(e) from e
        return response.url

    async def send_password_reset_email(self, email: str, redirect_to: str) -> None:
        client = self._require_client()
        try:
            await asyncio.to_thread(client.auth.reset_password_for_email, email, {"redirect_to": redirect_to})
        except Exception as e:
            logger.error(f"Erreur envoi email de récupération: {str(e)}")
            raise _as_backend_error(e) from e

    async def update_password(self, new_password: str) -> None:
        client = self._require_client()
        try:
            await asyncio.to_thread(client.auth.update_user, {"password": new_password})
        except Exception as e:
            logger.error(f"Erreur mise à jour mot de passe: {str(e)}")
            raise _as_backend_error(e) from e

    async def check_user_exists(self, email: str) -> bool:
        """RPC check_user_exists (ignore le RLS)"""
        client = self._require_client()
        try:
            query = client.rpc(self.settings.USER_EXISTS_RPC, {"email_to_check": email})
            response = await asyncio.to_thread(query.execute)
        except Exception as e:
            logger.error(f"Erreur RPC {self.settings.USER_EXISTS_RPC}: {str(e)}")
            raise _as_backend_error(e) from e
        return bool(response.data)

    # ==================== TABLES ====================

    async def select_one(self, table: str, columns: str, **filters: Any) -> Optional[Dict[str, Any]]:
        """Une ligne filtrée par égalité, ou None"""
        client = self._require_client()
        try:
            query = client.table(table).select(columns)
            for column, value in filters.items():
                query = query.eq(column, value)
            response = await asyncio.to_thread(query.maybe_single().execute)
        except Exception as e:
            logger.error(f"Erreur lecture {table}: {str(e)}")
            raise _as_backend_error(e) from e

        if response is None or not response.data:
            return None
        return response.data

    async def insert(self, table: str, row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        client = self._require_client()
        try:
            response = await asyncio.to_thread(client.table(table).insert(row).execute)
        except Exception as e:
            logger.error(f"Erreur insertion {table}: {str(e)}")
            raise _as_backend_error(e) from e
        return response.data[0] if response.data else None

    async def update(self, table: str, values: Dict[str, Any], **filters: Any) -> None:
        client = self._require_client()
        try:
            query = client.table(table).update(values)
            for column, value in filters.items():
                query = query.eq(column, value)
            await asyncio.to_thread(query.execute)
        except Exception as e:
            logger.error(f"Erreur mise à jour {table}: {str(e)}")
            raise _as_backend_error(e) from e

    async def upsert(self, table: str, row: Dict[str, Any], on_conflict: str) -> None:
        """Insérer ou mettre à jour selon la colonne unique on_conflict"""
        client = self._require_client()
        try:
            await asyncio.to_thread(client.table(table).upsert(row, on_conflict=on_conflict).execute)
        except Exception as e:
            logger.error(f"Erreur upsert {table}: {str(e)}")
            raise _as_backend_error(e) from e
