"""
Runtime configuration.

All values come from environment variables (optionally loaded from a .env
file). Settings are read once and cached; tests call
``get_settings.cache_clear()`` after patching the environment.
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_LOGIN_URL = "https://SEU-DOMINIO-DA-AREA.com/login"
DEFAULT_SENDER_NAME = "Painel - PrecisionX"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name, "").strip().lower()
    if not value:
        return default
    return value in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    webhook_secret: str = ""
    identity_provider: str = "firebase"
    firebase_service_account_key: Optional[str] = None
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    mail_user: Optional[str] = None
    mail_pass: Optional[str] = None
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465
    mail_sender_name: str = DEFAULT_SENDER_NAME
    login_url: str = DEFAULT_LOGIN_URL
    upstream_timeout_seconds: float = 10.0
    expose_error_details: bool = False
    cors_allow_origin: str = "*"

    def missing_credentials(self) -> List[str]:
        """
        Return the names of required variables that are not set.

        Which identity-provider variables are required depends on
        IDENTITY_PROVIDER (an unknown provider is reported by the startup
        check, not here); the mailer login is always required.
        """
        missing: List[str] = []
        if self.identity_provider == "supabase":
            if not self.supabase_url:
                missing.append("SUPABASE_URL")
            if not self.supabase_service_key:
                missing.append("SUPABASE_SERVICE_KEY")
        elif self.identity_provider == "firebase" and not self.firebase_service_account_key:
            missing.append("FIREBASE_SERVICE_ACCOUNT_KEY")
        if not self.mail_user:
            missing.append("MAIL_USER")
        if not self.mail_pass:
            missing.append("MAIL_PASS")
        return missing


@lru_cache
def get_settings() -> Settings:
    return Settings(
        webhook_secret=os.getenv("CAKTO_SECRET", ""),
        identity_provider=os.getenv("IDENTITY_PROVIDER", "firebase").lower().strip(),
        firebase_service_account_key=os.getenv("FIREBASE_SERVICE_ACCOUNT_KEY") or None,
        supabase_url=os.getenv("SUPABASE_URL") or None,
        supabase_service_key=os.getenv("SUPABASE_SERVICE_KEY") or None,
        mail_user=os.getenv("MAIL_USER") or None,
        mail_pass=os.getenv("MAIL_PASS") or None,
        smtp_host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
        smtp_port=int(os.getenv("SMTP_PORT", "465")),
        mail_sender_name=os.getenv("MAIL_SENDER_NAME", DEFAULT_SENDER_NAME),
        login_url=os.getenv("ACCESS_LOGIN_URL", DEFAULT_LOGIN_URL),
        upstream_timeout_seconds=float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "10")),
        expose_error_details=_env_bool("EXPOSE_ERROR_DETAILS"),
        cors_allow_origin=os.getenv("CORS_ALLOW_ORIGIN", "*"),
    )
