import json
import logging
import os
from pathlib import Path

import stripe
import structlog
from dotenv import load_dotenv
from fastapi import FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from storefront import webhooks
from storefront.database import Base, engine, SessionLocal
from storefront.errors import StorefrontError, WebhookAuthenticationFailed
from storefront.routes import router
from storefront.stripe_service import verify_webhook

# .env at the project root, whatever the working directory
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")

# Configure structlog
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    ),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
)

logger = structlog.get_logger()

app = FastAPI(title="Storefront Order Service")

app.include_router(router)

Base.metadata.create_all(bind=engine)


def _error_body(kind: str, message: str) -> dict:
    return {"success": False, "error": kind, "message": message}


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, kind=exc.kind, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.kind, exc.message))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg', 'invalid input')}" if field else "Invalid request"
    return JSONResponse(status_code=400, content=_error_body("ValidationError", message))


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("database_error", path=request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=503,
        content=_error_body("DependencyFailure", "Service temporarily unavailable"),
    )


@app.exception_handler(stripe.StripeError)
async def stripe_error_handler(request: Request, exc: stripe.StripeError):
    logger.error("payment_processor_error", path=request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=502,
        content=_error_body("DependencyFailure", "Payment processor unavailable"),
    )


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/payments/webhook")
async def stripe_webhook(request: Request, stripe_signature: str = Header(None)):
    payload = await request.body()

    try:
        verify_webhook(payload, stripe_signature)
    except ValueError:
        raise WebhookAuthenticationFailed("Invalid payload")
    except stripe.SignatureVerificationError:
        logger.warning("webhook_signature_rejected")
        raise WebhookAuthenticationFailed("Invalid signature")

    try:
        event = json.loads(payload)
    except ValueError:
        event = None
    if not isinstance(event, dict):
        # authenticated, so a retry would carry the same body
        logger.warning("webhook_payload_unreadable")
        return {"received": True}

    db = SessionLocal()
    try:
        webhooks.reconcile(db, event)
    finally:
        db.close()

    return {"received": True}
