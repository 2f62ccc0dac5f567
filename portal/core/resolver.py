"""
Résolution de la destination après authentification.

Le profil (tbf_controle_user) est relu à chaque appel: la résolution peut être
relancée autant de fois que nécessaire pour la même session, au montage de la
page comme à chaque événement SIGNED_IN. La dernière résolution terminée
l'emporte.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Set, Union

from portal.config import Settings
from portal.core.errors import BackendError, ProfileLookupError
from portal.db.supabase import SIGNED_IN
from portal.models.profile import ProfileRecord, Role
from portal.models.session import AuthSession

logger = logging.getLogger(__name__)

PROFILE_LOAD_ERROR = "Erro ao carregar seu perfil. Por favor, tente novamente."
UNKNOWN_ROLE_ERROR = "Seu usuário não possui uma função (role) definida no sistema."


@dataclass(frozen=True)
class Redirect:
    route: str


@dataclass(frozen=True)
class Stay:
    error: Optional[str] = None


Resolution = Union[Redirect, Stay]


class SessionResolver:
    def __init__(self, backend, settings: Settings):
        self.backend = backend
        self.settings = settings
        self.latest: Optional[Resolution] = None
        self._tasks: Set["asyncio.Task[Resolution]"] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._closed = False

    async def load_profile(self, user_id: str, columns: str = "id, role, signature") -> ProfileRecord:
        logger.info(f"[Database] Buscando perfil para ID: {user_id}")
        try:
            row = await self.backend.select_one(self.settings.PROFILE_TABLE, columns, id=user_id)
        except BackendError as e:
            logger.error(f"[Database] Erro ao buscar dados do usuário: {e.message}")
            raise ProfileLookupError(PROFILE_LOAD_ERROR) from e

        if row is None:
            logger.error(f"[Database] Perfil inexistente para ID: {user_id}")
            raise ProfileLookupError(PROFILE_LOAD_ERROR)
        return ProfileRecord.from_row(row)

    def destination(self, profile: ProfileRecord) -> Optional[str]:
        """Route cible selon role + signature; None si la role est inconnue"""
        if profile.role == Role.STUDENT.value:
            if profile.is_active_student:
                return self.settings.DASHBOARD_ROUTE
            return self.settings.PENDING_APPROVAL_ROUTE
        if profile.role in (Role.ADMIN.value, Role.INSTRUCTOR.value):
            return self.settings.INITIAL_SETUP_ROUTE
        return None

    def approval_destination(self, profile: ProfileRecord) -> Optional[str]:
        """Page d'attente: tout profil autre qu'élève part vers la configuration initiale"""
        if profile.role != Role.STUDENT.value:
            return self.settings.INITIAL_SETUP_ROUTE
        if profile.is_active_student:
            return self.settings.DASHBOARD_ROUTE
        return None

    async def resolve(self, session: Optional[AuthSession] = None) -> Resolution:
        if session is None:
            session = await self.backend.get_session()

        if session is None:
            result: Resolution = Stay()
        else:
            try:
                profile = await self.load_profile(session.user_id)
            except ProfileLookupError as e:
                result = Stay(error=e.message)
            else:
                route = self.destination(profile)
                if route is None:
                    logger.warning(f"[Auth] Role desconhecida ou não definida: {profile.role}")
                    result = Stay(error=UNKNOWN_ROLE_ERROR)
                else:
                    result = Redirect(route)

        if not self._closed:
            self.latest = result
        return result

    # ==================== ÉVÉNEMENTS ====================

    def attach(self) -> None:
        if self._unsubscribe is None and not self._closed:
            self._unsubscribe = self.backend.on_auth_event(self._handle_auth_event)

    def _handle_auth_event(self, event: str, session: Optional[AuthSession]) -> None:
        if self._closed or event != SIGNED_IN or session is None:
            return
        task = asyncio.get_running_loop().create_task(self.resolve(session))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def settle(self) -> Optional[Resolution]:
        """Attendre les résolutions déclenchées par des événements"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
        return self.latest

    def close(self) -> None:
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._tasks):
            task.cancel()
