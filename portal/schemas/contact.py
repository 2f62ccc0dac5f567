from pydantic import BaseModel, Field
from typing import Optional

class ContactRequest(BaseModel):
    """Formulaire de contact"""
    name: str = Field(default="", description="Nom complet")
    email: str = Field(default="", description="Email")
    phone: str = Field(default="", description="Téléphone (optionnel)")
    message: str = Field(default="", description="Message")
    captcha_state: str = Field(
        default="unverified",
        description="État rapporté par le widget ALTCHA"
    )
    captcha_payload: Optional[str] = Field(
        default=None,
        description="Solution ALTCHA (base64), vérifiée si ALTCHA_HMAC_KEY est défini"
    )

class PhoneFormatResponse(BaseModel):
    formatted: str = Field(..., description="Téléphone au format (99) 99999-9999")
