"""
Long-lived external clients.

The identity provider and the SMTP mailer are built once per process from
Settings and handed to the webhook router through FastAPI dependencies, so
tests can swap them with ``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Callable

from app.config import get_settings
from app.services.identity_provider import build_identity_provider
from app.services.mailer import SmtpMailer


@lru_cache
def get_identity_provider():
    return build_identity_provider(get_settings())


def identity_provider_loader() -> Callable[[], object]:
    """
    Dependency handing the router the provider getter rather than the provider.

    The provider is only built on the POST path, so a bad IDENTITY_PROVIDER
    cannot break the preflight or the healthcheck.
    """
    return get_identity_provider


@lru_cache
def get_mailer() -> SmtpMailer:
    settings = get_settings()
    return SmtpMailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.mail_user,
        password=settings.mail_pass,
        timeout=settings.upstream_timeout_seconds,
    )
