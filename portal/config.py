from pydantic_settings import BaseSettings
from typing import List
from dotenv import load_dotenv
import os

load_dotenv()

class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Portal Diogo Spera"
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    SITE_URL: str = os.getenv("SITE_URL", "http://localhost:5173")

    # Supabase
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_KEY: str = os.getenv("SUPABASE_KEY", "")

    # Tables et RPC
    PROFILE_TABLE: str = os.getenv("PROFILE_TABLE", "tbf_controle_user")
    CONTACT_TABLE: str = os.getenv("CONTACT_TABLE", "tbf_mensagens")
    NEWSLETTER_TABLE: str = os.getenv("NEWSLETTER_TABLE", "tbf_rss")
    USER_EXISTS_RPC: str = os.getenv("USER_EXISTS_RPC", "check_user_exists")

    # Routes de redirection du front
    LOGIN_ROUTE: str = "/login"
    DASHBOARD_ROUTE: str = "/aluno/dashboard"
    PENDING_APPROVAL_ROUTE: str = "/aguardando-aprovacao"
    INITIAL_SETUP_ROUTE: str = "/setup-inicial"
    PASSWORD_RESET_ROUTE: str = "/redefinir-senha"

    # Flux
    RESET_REDIRECT_DELAY: int = int(os.getenv("RESET_REDIRECT_DELAY", "3"))  # secondes
    SIGNUP_WIZARD_TTL_MINUTES: int = int(os.getenv("SIGNUP_WIZARD_TTL_MINUTES", "30"))

    # Cookies de session
    ACCESS_TOKEN_COOKIE: str = "sb-access-token"
    REFRESH_TOKEN_COOKIE: str = "sb-refresh-token"
    SESSION_COOKIE_SECURE: bool = os.getenv("SESSION_COOKIE_SECURE", "False").lower() == "true"

    # Captcha ALTCHA: sans clé, seul l'état rapporté par le widget est contrôlé
    ALTCHA_HMAC_KEY: str = os.getenv("ALTCHA_HMAC_KEY", "")
    ALTCHA_MAX_NUMBER: int = int(os.getenv("ALTCHA_MAX_NUMBER", "50000"))
    ALTCHA_CHALLENGE_MINUTES: int = int(os.getenv("ALTCHA_CHALLENGE_MINUTES", "10"))

    # CORS (liste séparée par des virgules)
    ALLOWED_ORIGINS: str = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000")

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    def site_link(self, route: str) -> str:
        """URL absolue du front pour une route donnée"""
        return f"{self.SITE_URL.rstrip('/')}{route}"

settings = Settings()
