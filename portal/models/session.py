from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AuthUser:
    """Identité créée par le service d'authentification"""
    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class AuthSession:
    """Session active, lue mais jamais modifiée par le portail"""
    user_id: str
    email: Optional[str]
    access_token: str = ""
    refresh_token: str = ""
