from typing import Any, Dict

from pydantic import BaseModel, Field


class ContactMessage(BaseModel):
    """Message du formulaire de contact (tbf_mensagens), jamais relu par le portail"""

    name: str = Field(..., alias="nome")
    email: str
    phone: str = Field(default="", alias="celular")
    body: str = Field(default="", alias="mensagem")
    responded: str = Field(default="N", alias="respondido")

    model_config = {"populate_by_name": True}

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class NewsletterSubscription(BaseModel):
    """Abonnement newsletter (tbf_rss), clé unique: email"""

    email: str
    enabled: bool = Field(default=True, alias="habilitado")

    model_config = {"populate_by_name": True}

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
