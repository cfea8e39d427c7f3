"""
PrecisionX Access Webhook
FastAPI application that turns Cakto purchase notifications into panel accounts
and access emails.
"""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings
from app.routers import cakto_webhook
from app.services.identity_provider import supported_identity_providers

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

CORS_ALLOW_METHODS = ", ".join(("POST", "OPTIONS", "GET"))
CORS_ALLOW_HEADERS = "Content-Type"

app = FastAPI(
    title="PrecisionX Access Webhook",
    description="Creates panel accounts and sends access emails for approved Cakto purchases",
    version="0.1.0",
)


@app.middleware("http")
async def add_cors_headers(request: Request, call_next):
    """
    Stamp the CORS headers on every response, errors included.

    Cakto posts from its own servers, so origins are not negotiated: the
    allowed origin is a fixed value (``*`` unless CORS_ALLOW_ORIGIN is set).
    """
    response = await call_next(request)
    response.headers["Access-Control-Allow-Origin"] = get_settings().cors_allow_origin
    response.headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS
    response.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
    return response


@app.exception_handler(StarletteHTTPException)
async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException):
    """Give verbs the router never registered the webhook's JSON 405 body."""
    if exc.status_code == 405:
        return cakto_webhook.method_not_allowed_response()
    return await http_exception_handler(request, exc)


# Include routers
app.include_router(cakto_webhook.router, prefix="/api/cakto-webhook", tags=["cakto"])


@app.on_event("startup")
async def check_configuration() -> None:
    """
    Log missing credentials once at startup.

    The service still starts: the first request that needs a missing
    credential fails with a 500 and the same message in the logs.
    """
    settings = get_settings()
    if settings.identity_provider not in supported_identity_providers():
        logger.critical(
            f"IDENTITY_PROVIDER desconhecido: {settings.identity_provider!r} "
            f"(suportados: {', '.join(supported_identity_providers())})"
        )
    for name in settings.missing_credentials():
        logger.critical(f"{name} ausente nas variáveis de ambiente!")
    if not settings.webhook_secret:
        logger.critical("CAKTO_SECRET ausente: todo POST será rejeitado com 401")

    host_port = os.getenv("HOST_PORT", "8000")
    logger.info(
        "Webhook running at: http://localhost:%s/api/cakto-webhook (identity provider: %s)",
        host_port,
        settings.identity_provider,
    )


@app.get("/health")
async def health():
    return {"status": "ok"}
