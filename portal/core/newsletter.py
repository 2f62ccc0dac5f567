import logging

from portal.config import Settings
from portal.core.errors import BackendError
from portal.models.contact import NewsletterSubscription

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class NewsletterService:
    """
    Abonnements tbf_rss. Effet secondaire non critique: les échecs sont
    journalisés et ne remontent jamais à l'appelant.
    """

    def __init__(self, backend, settings: Settings):
        self.backend = backend
        self.table = settings.NEWSLETTER_TABLE

    async def subscribe(self, email: str) -> bool:
        """Chercher par email puis insérer ou réactiver"""
        email = normalize_email(email)
        try:
            existing = await self.backend.select_one(self.table, "email", email=email)
            if existing is None:
                await self.backend.insert(self.table, NewsletterSubscription(email=email).to_row())
            else:
                await self.backend.update(self.table, {"habilitado": True}, email=email)
        except BackendError as e:
            logger.error(f"[Database] Erro ao atualizar newsletter: {e.message}")
            return False
        return True

    async def ensure_subscribed(self, email: str) -> bool:
        """Upsert direct sur la colonne email"""
        email = normalize_email(email)
        try:
            await self.backend.upsert(
                self.table, NewsletterSubscription(email=email).to_row(), on_conflict="email"
            )
        except BackendError as e:
            logger.warning(f"[Database] Erro ao inserir na tbf_rss (não crítico): {e.message}")
            return False
        logger.info("[Database] E-mail registrado na tbf_rss com sucesso.")
        return True
