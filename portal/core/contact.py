import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from altcha import ChallengeOptions, create_challenge, verify_solution

from portal.config import Settings
from portal.core.errors import BackendError, FormValidationError, PortalError
from portal.core.newsletter import NewsletterService
from portal.core.states import FlowState, Failed, Success
from portal.core.validation import validate_contact
from portal.models.contact import ContactMessage

logger = logging.getLogger(__name__)

CAPTCHA_VERIFIED = "verified"
CAPTCHA_REQUIRED = "Por favor, resolva o captcha antes de enviar."
CAPTCHA_DISABLED = "Captcha do servidor não configurado."
CONTACT_SEND_ERROR = "Erro ao enviar sua mensagem. Tente novamente."


class CaptchaRequiredError(FormValidationError):
    def __init__(self):
        super().__init__({"captcha": CAPTCHA_REQUIRED}, message=CAPTCHA_REQUIRED)


def new_captcha_challenge(settings: Settings) -> Dict[str, Any]:
    """Défi ALTCHA signé, servi au widget (attribut challengeurl)"""
    if not settings.ALTCHA_HMAC_KEY:
        raise PortalError(CAPTCHA_DISABLED)

    challenge = create_challenge(ChallengeOptions(
        hmac_key=settings.ALTCHA_HMAC_KEY,
        max_number=settings.ALTCHA_MAX_NUMBER,
        expires=datetime.now(timezone.utc) + timedelta(minutes=settings.ALTCHA_CHALLENGE_MINUTES),
    ))
    return {
        "algorithm": challenge.algorithm,
        "challenge": challenge.challenge,
        "maxnumber": challenge.max_number,
        "salt": challenge.salt,
        "signature": challenge.signature,
    }


def is_captcha_solved(settings: Settings, captcha_state: str, captcha_payload: Optional[str]) -> bool:
    """
    Avec ALTCHA_HMAC_KEY, la preuve de travail envoyée par le widget est
    vérifiée ici; sinon seul l'état du widget est contrôlé.
    """
    if not settings.ALTCHA_HMAC_KEY:
        return captcha_state == CAPTCHA_VERIFIED
    if not captcha_payload:
        return False

    verified, error = verify_solution(captcha_payload, settings.ALTCHA_HMAC_KEY, True)
    if not verified:
        logger.warning(f"[Contato] Captcha recusado: {error}")
    return verified



class ContactForm:
    def __init__(self, backend, settings: Settings):
        self.backend = backend
        self.settings = settings
        self.newsletter = NewsletterService(backend, settings)

    async def submit(
        self,
        name: str,
        email: str,
        phone: str,
        message: str,
        captcha_state: str,
        captcha_payload: Optional[str] = None,
    ) -> FlowState:
        """
        Valider puis enregistrer un message de contact.

        Le succès dépend uniquement de l'insertion du message; l'abonnement
        newsletter qui suit ne peut pas le faire échouer.
        """
        errors = validate_contact(name, email, phone)
        if errors:
            raise FormValidationError(errors)

        if not is_captcha_solved(self.settings, captcha_state, captcha_payload):
            raise CaptchaRequiredError()

        contact = ContactMessage(name=name, email=email, phone=phone, body=message)
        try:
            await self.backend.insert(self.settings.CONTACT_TABLE, contact.to_row())
        except BackendError as e:
            logger.error(f"[Contato] Erro ao enviar formulário: {e.message}")
            return Failed(message=CONTACT_SEND_ERROR)

        await self.newsletter.subscribe(email)
        logger.info("[Contato] Mensagem registrada")
        return Success()
