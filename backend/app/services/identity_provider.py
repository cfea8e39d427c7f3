"""
Identity provider service.

Finds or creates the buyer's account in the external identity provider.
Two backends are supported and selected with the IDENTITY_PROVIDER env var:

  - firebase  (default) — Firebase Auth via firebase-admin, authenticated
                with the JSON service account in FIREBASE_SERVICE_ACCOUNT_KEY
  - supabase  — Supabase Auth via the service-role client
                (SUPABASE_URL + SUPABASE_SERVICE_KEY)

Lookups distinguish "no such user" (returns None) from every other failure
(raises IdentityProviderError). Only a miss leads to account creation; a
permission or network error must never be mistaken for a new customer.

Adding a new backend:
  1. Write a class with find_account_by_email() and create_account().
  2. Register its factory in _PROVIDER_FACTORIES.
  3. Set IDENTITY_PROVIDER=<name> in the environment.
"""

import json
import logging
import secrets
from dataclasses import dataclass
from typing import Callable, Optional

from app.config import Settings

logger = logging.getLogger(__name__)

_FIREBASE_APP_NAME = "cakto-webhook"


class IdentityProviderError(Exception):
    """The identity provider failed for a reason other than 'user not found'."""


class IdentityProviderConfigError(IdentityProviderError):
    """The identity provider credentials are missing or unreadable."""


class AccountAlreadyExistsError(IdentityProviderError):
    """Account creation lost a race: the email was registered meanwhile."""


@dataclass(frozen=True)
class AccountRecord:
    uid: str
    email: str
    created: bool = False


def generate_password() -> str:
    """Random throwaway password; the buyer sets a real one on first login."""
    return secrets.token_urlsafe(18)


# ---------------------------------------------------------------------------
# Firebase backend
# ---------------------------------------------------------------------------

class FirebaseIdentityProvider:
    """Firebase Auth backend (firebase-admin)."""

    name = "firebase"

    def __init__(self, service_account_json: Optional[str], timeout: Optional[float] = None):
        self._service_account_json = service_account_json
        self._timeout = timeout
        self._app = None

    def _get_app(self):
        """Initialise the firebase-admin app once per process and reuse it."""
        if self._app is not None:
            return self._app

        import firebase_admin
        from firebase_admin import credentials

        try:
            self._app = firebase_admin.get_app(_FIREBASE_APP_NAME)
            return self._app
        except ValueError:
            pass

        if not self._service_account_json:
            raise IdentityProviderConfigError(
                "FIREBASE_SERVICE_ACCOUNT_KEY ausente nas variáveis de ambiente"
            )
        try:
            service_account = json.loads(self._service_account_json)
        except json.JSONDecodeError as e:
            raise IdentityProviderConfigError(
                f"FIREBASE_SERVICE_ACCOUNT_KEY is not valid JSON: {e}"
            ) from e

        options = {"httpTimeout": self._timeout} if self._timeout else None
        self._app = firebase_admin.initialize_app(
            credentials.Certificate(service_account),
            options=options,
            name=_FIREBASE_APP_NAME,
        )
        return self._app

    def find_account_by_email(self, email: str) -> Optional[AccountRecord]:
        from firebase_admin import auth, exceptions

        app = self._get_app()
        try:
            user = auth.get_user_by_email(email, app=app)
        except auth.UserNotFoundError:
            return None
        except exceptions.FirebaseError as e:
            raise IdentityProviderError(f"Firebase lookup failed: {e}") from e
        return AccountRecord(uid=user.uid, email=user.email or email)

    def create_account(self, email: str, password: str, display_name: str) -> AccountRecord:
        from firebase_admin import auth, exceptions

        app = self._get_app()
        try:
            user = auth.create_user(
                email=email,
                password=password,
                display_name=display_name,
                app=app,
            )
        except auth.EmailAlreadyExistsError as e:
            raise AccountAlreadyExistsError(str(e)) from e
        except exceptions.FirebaseError as e:
            raise IdentityProviderError(f"Firebase create_user failed: {e}") from e
        return AccountRecord(uid=user.uid, email=user.email or email, created=True)


# ---------------------------------------------------------------------------
# Supabase backend
# ---------------------------------------------------------------------------

class SupabaseIdentityProvider:
    """
    Supabase Auth backend.

    Lookups go through the public ``users`` view (a thin SELECT over
    auth.users) because auth.users is not exposed through PostgREST.
    Creation uses the GoTrue admin API with the service-role key.
    """

    name = "supabase"

    def __init__(self, url: Optional[str], service_key: Optional[str]):
        self._url = url
        self._service_key = service_key
        self._client = None

    def _get_client(self):
        if self._client is not None:
            return self._client
        if not self._url or not self._service_key:
            raise IdentityProviderConfigError(
                "SUPABASE_URL and SUPABASE_SERVICE_KEY must be set in environment variables"
            )
        from supabase import create_client

        self._client = create_client(self._url, self._service_key)
        return self._client

    def find_account_by_email(self, email: str) -> Optional[AccountRecord]:
        client = self._get_client()
        try:
            result = (
                client.table("users")
                .select("id, email")
                .eq("email", email)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise IdentityProviderError(f"Supabase lookup failed: {e}") from e

        if not result.data:
            return None
        row = result.data[0]
        return AccountRecord(uid=row["id"], email=row.get("email") or email)

    def create_account(self, email: str, password: str, display_name: str) -> AccountRecord:
        client = self._get_client()
        try:
            response = client.auth.admin.create_user(
                {
                    "email": email,
                    "password": password,
                    "email_confirm": True,
                    "user_metadata": {"full_name": display_name},
                }
            )
        except Exception as e:
            if getattr(e, "code", None) == "email_exists":
                raise AccountAlreadyExistsError(str(e)) from e
            raise IdentityProviderError(f"Supabase create_user failed: {e}") from e

        if not response or not response.user:
            raise IdentityProviderError("Supabase create_user returned no user")
        return AccountRecord(uid=response.user.id, email=email, created=True)


# ---------------------------------------------------------------------------
# Registry and helpers
# ---------------------------------------------------------------------------

_PROVIDER_FACTORIES: dict[str, Callable[[Settings], object]] = {
    "firebase": lambda s: FirebaseIdentityProvider(
        s.firebase_service_account_key, timeout=s.upstream_timeout_seconds
    ),
    "supabase": lambda s: SupabaseIdentityProvider(s.supabase_url, s.supabase_service_key),
}


def supported_identity_providers() -> list[str]:
    return sorted(_PROVIDER_FACTORIES)


def build_identity_provider(settings: Settings):
    """
    Build the backend named by settings.identity_provider.

    Raises ValueError for unknown provider names.
    """
    factory = _PROVIDER_FACTORIES.get(settings.identity_provider)
    if factory is None:
        raise ValueError(
            f"Unknown identity provider {settings.identity_provider!r}. "
            f"Supported providers: {supported_identity_providers()}"
        )
    return factory(settings)


def resolve_account(provider, email: str, display_name: str) -> AccountRecord:
    """
    Return the existing account for ``email`` or create one.

    Existing accounts are reused untouched. If a concurrent delivery creates
    the same account between our lookup and our create, the second lookup
    picks it up.
    """
    existing = provider.find_account_by_email(email)
    if existing is not None:
        logger.info(f"Usuário já existia: {existing.uid}")
        return existing

    try:
        created = provider.create_account(email, generate_password(), display_name)
    except AccountAlreadyExistsError:
        existing = provider.find_account_by_email(email)
        if existing is None:
            raise
        logger.info(f"Usuário criado em paralelo, reutilizando: {existing.uid}")
        return existing

    logger.info(f"Usuário criado: {created.uid}")
    return created
