"""
Assistant d'inscription en deux étapes.

1. Identifiants (nom, email, mot de passe, conditions d'utilisation).
2. Choix du type d'utilisateur: élève (inscription immédiate) ou
   responsable (saisie des emails des élèves, puis inscription).

L'inscription enchaîne: vérification RPC de l'email, création du compte
Auth, upsert du profil sur ``id``, upsert newsletter (non critique). Tout
échec interrompt la suite et laisse l'assistant ouvert pour une nouvelle
tentative; rien n'est annulé côté distant.
"""

import logging
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import ClassVar, Dict, List, Optional, Sequence, Tuple

from portal.config import Settings
from portal.core.errors import (
    BackendError,
    EmailAlreadyRegisteredError,
    FormValidationError,
    WizardNotFoundError,
    WizardStateError,
)
from portal.core.newsletter import NewsletterService
from portal.core.states import FlowState
from portal.core.validation import is_simple_email, validate_signup_credentials
from portal.models.profile import ActivationStatus, ProfileRecord, Role

logger = logging.getLogger(__name__)

EMAIL_TAKEN = "Este e-mail já está cadastrado. Tente fazer login ou recuperar sua senha."
SIGNUP_ERROR = "Ocorreu um erro ao realizar o cadastro."
EMAIL_DELIVERY_FAILURE = "Error sending confirmation email"
EMAIL_DELIVERY_MESSAGE = (
    "Erro ao enviar e-mail de confirmação. Isso geralmente acontece quando o limite de "
    "e-mails do serviço de autenticação é atingido ou o SMTP não está configurado. "
    "Tente novamente mais tarde ou entre em contato com o suporte."
)
DEPENDENT_REQUIRED = "Informe pelo menos um e-mail de aluno válido."


@dataclass(frozen=True)
class CollectingCredentials(FlowState):
    name: ClassVar[str] = "collecting-credentials"


@dataclass(frozen=True)
class ChoosingRole(FlowState):
    name: ClassVar[str] = "choosing-role"


@dataclass(frozen=True)
class CollectingDependents(FlowState):
    name: ClassVar[str] = "collecting-dependents"


@dataclass(frozen=True)
class Registering(FlowState):
    name: ClassVar[str] = "submitting"
    role: str = ""


@dataclass(frozen=True)
class Done(FlowState):
    name: ClassVar[str] = "done"
    redirect_to: str = ""


@dataclass(frozen=True)
class WizardFailed(FlowState):
    name: ClassVar[str] = "error"
    message: str = ""
    resume: str = ChoosingRole.name


@dataclass(frozen=True)
class SignUpCredentials:
    first_name: str
    last_name: str
    email: str
    password: str = field(repr=False)


def signup_error_message(error: Exception) -> str:
    """Message affiché après un échec; cas particulier pour l'envoi d'email"""
    message = getattr(error, "message", "") or str(error)
    status = getattr(error, "status", None)
    if message == EMAIL_DELIVERY_FAILURE or status == 422:
        return EMAIL_DELIVERY_MESSAGE
    return message or SIGNUP_ERROR


class SignUpWizard:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.state: FlowState = CollectingCredentials()
        self.credentials: Optional[SignUpCredentials] = None
        self.dependent_fields: List[str] = [""]

    @property
    def active_step(self) -> str:
        """Étape courante; après un échec, l'étape à reprendre"""
        if isinstance(self.state, WizardFailed):
            return self.state.resume
        return self.state.name

    def _require(self, *steps: str) -> None:
        if self.active_step not in steps:
            raise WizardStateError(
                f"Ação indisponível na etapa atual ({self.state.name})."
            )

    # ==================== ÉTAPE 1 ====================

    def submit_credentials(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        confirmation: str,
        accept_terms: bool,
    ) -> FlowState:
        self._require(CollectingCredentials.name)
        errors = validate_signup_credentials(password, confirmation, accept_terms)
        if not first_name.strip():
            errors["first_name"] = "Informe seu nome."
        if not last_name.strip():
            errors["last_name"] = "Informe seu sobrenome."
        if not email.strip():
            errors["email"] = "Informe seu e-mail."
        elif not is_simple_email(email.strip()):
            errors["email"] = "Por favor, insira um e-mail válido (ex: nome@email.com)."
        if errors:
            raise FormValidationError(errors)

        self.credentials = SignUpCredentials(
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            email=email.strip(),
            password=password,
        )
        self.state = ChoosingRole()
        return self.state

    def cancel(self) -> FlowState:
        """Fermer la fenêtre de choix et revenir aux identifiants"""
        if isinstance(self.state, (Registering, Done)):
            raise WizardStateError(f"Ação indisponível na etapa atual ({self.state.name}).")
        self.dependent_fields = [""]
        self.state = CollectingCredentials()
        return self.state

    # ==================== ÉTAPE 2 ====================

    async def choose_role(self, backend, role: str) -> FlowState:
        self._require(ChoosingRole.name)
        if role == Role.STUDENT.value:
            return await self._register(backend, Role.STUDENT, "")
        if role == Role.GUARDIAN.value:
            self.state = CollectingDependents()
            return self.state
        raise FormValidationError({"role": "Escolha entre aluno ou responsável."})

    def add_dependent_field(self) -> List[str]:
        self._require(CollectingDependents.name)
        self.dependent_fields.append("")
        return list(self.dependent_fields)

    def remove_dependent_field(self, index: int) -> List[str]:
        self._require(CollectingDependents.name)
        if len(self.dependent_fields) > 1:
            self._field_at(index)
            del self.dependent_fields[index]
        return list(self.dependent_fields)

    def update_dependent_field(self, index: int, value: str) -> List[str]:
        self._require(CollectingDependents.name)
        self._field_at(index)
        self.dependent_fields[index] = value
        return list(self.dependent_fields)

    def _field_at(self, index: int) -> str:
        if not 0 <= index < len(self.dependent_fields):
            raise FormValidationError({"index": "Campo de e-mail inexistente."})
        return self.dependent_fields[index]

    def filled_dependent_emails(self) -> List[str]:
        return [value for value in self.dependent_fields if value.strip()]

    async def submit_dependents(self, backend, emails: Optional[Sequence[str]] = None) -> FlowState:
        self._require(CollectingDependents.name)
        if emails is not None:
            self.dependent_fields = list(emails) or [""]

        filled = self.filled_dependent_emails()
        for value in filled:
            if not is_simple_email(value):
                raise FormValidationError({"dependents": f"E-mail inválido: {value}"})
        if not filled:
            raise FormValidationError({"dependents": DEPENDENT_REQUIRED})

        return await self._register(backend, Role.GUARDIAN, ", ".join(filled))

    # ==================== INSCRIPTION ====================

    async def _register(self, backend, role: Role, dependent_emails: str) -> FlowState:
        resume = self.active_step
        credentials = self.credentials
        if credentials is None:
            raise WizardStateError("Dados de cadastro ausentes.")

        self.state = Registering(role=role.value)
        logger.info(f"[SignUp] Iniciando processo de cadastro para: {credentials.email} com role: {role.value}")

        try:
            exists = await backend.check_user_exists(credentials.email)
            if exists:
                logger.warning(f"[SignUp] E-mail já cadastrado no sistema: {credentials.email}")
                raise EmailAlreadyRegisteredError(EMAIL_TAKEN)

            user = await backend.sign_up(
                credentials.email,
                credentials.password,
                {"first_name": credentials.first_name, "last_name": credentials.last_name},
            )
            logger.info(f"[Auth] Usuário criado com ID: {user.id}")

            # TODO: supprimer le compte Auth orphelin si l'upsert du profil n'aboutit jamais
            profile = ProfileRecord(
                id=user.id,
                first_name=credentials.first_name,
                last_name=credentials.last_name,
                email=credentials.email,
                signature=ActivationStatus.INACTIVE.value,
                role=role.value,
                dependent_emails=dependent_emails if role is Role.GUARDIAN else "",
                guardian_email="",
            )
            await backend.upsert(self.settings.PROFILE_TABLE, profile.to_row(), on_conflict="id")
        except (BackendError, EmailAlreadyRegisteredError) as e:
            logger.error(f"[SignUp] Erro durante o cadastro: {e.message}")
            self.state = WizardFailed(message=signup_error_message(e), resume=resume)
            return self.state

        await NewsletterService(backend, self.settings).ensure_subscribed(credentials.email)

        logger.info(f"[SignUp] Cadastro finalizado com sucesso para {credentials.email} como {role.value}")
        self.state = Done(redirect_to=f"{self.settings.LOGIN_ROUTE}?success=signup")
        return self.state

    def snapshot(self) -> Dict[str, object]:
        data = self.state.as_dict()
        data["step"] = self.active_step
        if self.active_step == CollectingDependents.name:
            data["dependent_fields"] = list(self.dependent_fields)
        return data


@dataclass
class _WizardRecord:
    wizard: SignUpWizard
    expires_at: datetime


class WizardStore:
    """Assistants d'inscription ouverts, indexés par un jeton opaque"""

    def __init__(self, *, ttl: timedelta = timedelta(minutes=30)) -> None:
        self._ttl = ttl
        self._wizards: Dict[str, _WizardRecord] = {}
        self._lock = threading.Lock()

    def create(self, wizard: SignUpWizard) -> str:
        token = secrets.token_urlsafe(24)
        now = self._now()
        with self._lock:
            self._purge(now)
            self._wizards[token] = _WizardRecord(wizard=wizard, expires_at=now + self._ttl)
        return token

    def get(self, token: str) -> SignUpWizard:
        now = self._now()
        with self._lock:
            record = self._wizards.get(token)
            if record is None or record.expires_at <= now:
                self._wizards.pop(token, None)
                raise WizardNotFoundError("Cadastro expirado. Preencha o formulário novamente.")
            record.expires_at = now + self._ttl
            return record.wizard

    def discard(self, token: str) -> None:
        with self._lock:
            self._wizards.pop(token, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._wizards)

    def _purge(self, now: datetime) -> None:
        expired: Tuple[str, ...] = tuple(
            token for token, record in self._wizards.items() if record.expires_at <= now
        )
        for token in expired:
            del self._wizards[token]

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)
