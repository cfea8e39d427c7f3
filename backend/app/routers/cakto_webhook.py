"""
Cakto purchase webhook router.

Receives Cakto event notifications, and for every approved purchase makes
sure the buyer has an account in the identity provider and emails them the
access instructions.

Endpoint:
  OPTIONS /api/cakto-webhook  — CORS preflight
  GET     /api/cakto-webhook  — healthcheck
  POST    /api/cakto-webhook  — Cakto event (auth: ``secret`` field in the body)

Any other method gets a JSON 405: common verbs reach the handler, and the
rest are turned into the same body by the 405 exception handler in app.main.

POST decision sequence (each step ends the request when it matches):
  1. body is not JSON                      -> 400
  2. ``secret`` differs from CAKTO_SECRET  -> 401
  3. ``event`` is not purchase_approved    -> 200, ignored
  4. ``data`` has the wrong shape          -> 400
  5. no customer e-mail                    -> 400
  6. find-or-create account, send e-mail   -> 200
  7. anything raised in step 6             -> 500
"""

import asyncio
import json
import logging
import secrets
from typing import Any, Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.clients import get_mailer, identity_provider_loader
from app.config import Settings, get_settings
from app.models.cakto_webhook import PURCHASE_APPROVED, CaktoWebhookPayload, PurchaseDetails
from app.services.access_email import build_access_email
from app.services.identity_provider import resolve_account
from app.services.mailer import SmtpMailer, format_sender

logger = logging.getLogger(__name__)

router = APIRouter()

# Registered so that unsupported verbs reach the handler's 405 branch.
_ROUTED_METHODS = ["OPTIONS", "GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"]

HEALTHCHECK_MESSAGE = "Webhook ativo e pronto para receber POST da Cakto 🚀"
SUCCESS_MESSAGE = "Usuário processado e e-mail enviado."
INTERNAL_ERROR_MESSAGE = "Falha interna ao processar webhook."
OPAQUE_ERROR_DETAILS = "Consulte os logs do servidor."


class UpstreamTimeoutError(Exception):
    """An external call did not finish within UPSTREAM_TIMEOUT_SECONDS."""


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _respond(status_code: int, body: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body)


def method_not_allowed_response() -> JSONResponse:
    return _respond(405, {"ok": False, "error": "Método não permitido"})


def _secret_matches(received: Any, expected: str) -> bool:
    """
    Exact comparison of the body's ``secret`` with CAKTO_SECRET.

    An unset CAKTO_SECRET never matches.
    """
    if not expected:
        logger.warning(
            "CAKTO_SECRET não configurado: todas as requisições POST serão rejeitadas"
        )
        return False
    if not isinstance(received, str):
        return False
    return secrets.compare_digest(received.encode(), expected.encode())


async def _call_upstream(timeout: float, func: Callable, *args) -> Any:
    """Run a blocking client call in a worker thread with a deadline."""
    try:
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
    except asyncio.TimeoutError as e:
        name = getattr(func, "__name__", repr(func))
        raise UpstreamTimeoutError(f"{name} excedeu {timeout}s") from e


def _internal_error(exc: Exception, settings: Settings) -> JSONResponse:
    details = str(exc) if settings.expose_error_details else OPAQUE_ERROR_DETAILS
    return _respond(
        500,
        {"ok": False, "error": INTERNAL_ERROR_MESSAGE, "details": details},
    )


async def _process_purchase(
    details: PurchaseDetails,
    settings: Settings,
    load_identity_provider: Callable[[], Any],
    mailer: SmtpMailer,
) -> JSONResponse:
    timeout = settings.upstream_timeout_seconds
    identity_provider = load_identity_provider()

    account = await _call_upstream(
        timeout, resolve_account, identity_provider, details.email, details.name
    )

    email = build_access_email(
        details,
        sender=format_sender(settings.mail_sender_name, settings.mail_user or ""),
        login_url=settings.login_url,
    )
    await _call_upstream(timeout, mailer.send, email)

    return _respond(
        200,
        {
            "ok": True,
            "message": SUCCESS_MESSAGE,
            "email": details.email,
            "uid": account.uid,
            "productName": details.product_name,
        },
    )


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------

@router.api_route("", methods=_ROUTED_METHODS)
async def cakto_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    load_identity_provider=Depends(identity_provider_loader),
    mailer: SmtpMailer = Depends(get_mailer),
):
    method = request.method.upper()

    if method == "OPTIONS":
        return _respond(200, {"ok": True, "preflight": True})

    if method == "GET":
        return _respond(200, {"ok": True, "message": HEALTHCHECK_MESSAGE})

    if method != "POST":
        return method_not_allowed_response()

    raw = await request.body()
    try:
        body = json.loads(raw) if raw.strip() else {}
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Corpo da requisição não é JSON válido")
        return _respond(400, {"ok": False, "error": "JSON inválido"})
    if not isinstance(body, dict):
        body = {}

    secret = body.get("secret")
    if not _secret_matches(secret, settings.webhook_secret):
        logger.warning(f"Segredo inválido recebido: {secret!r}")
        return _respond(401, {"ok": False, "error": "Unauthorized"})

    event = body.get("event")
    if event != PURCHASE_APPROVED:
        logger.info(f"Evento ignorado: {event!r}")
        return _respond(
            200,
            {
                "ok": True,
                "ignored": True,
                "reason": f"Evento não é {PURCHASE_APPROVED}",
                "eventRecebido": event,
            },
        )

    try:
        payload = CaktoWebhookPayload.model_validate(body)
    except ValidationError as ve:
        logger.error(f"Payload com formato inválido: {ve.errors()}")
        return _respond(400, {"ok": False, "error": "Payload inválido"})

    details = PurchaseDetails.from_data(payload.data)
    if not details.email:
        logger.error(f"Nenhum e-mail no payload: {body.get('data')}")
        return _respond(400, {"ok": False, "error": "Email ausente no payload"})

    try:
        return await _process_purchase(details, settings, load_identity_provider, mailer)
    except Exception as exc:
        logger.exception(f"ERRO NO WEBHOOK: {exc}")
        return _internal_error(exc, settings)
