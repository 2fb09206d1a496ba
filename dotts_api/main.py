import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dotts_api.api.routes import billing, health
from dotts_api.core.config import BillingSettings, get_settings
from dotts_api.core.errors import BillingError
from dotts_api.core.logging_config import sanitize_log_data, setup_logging
from dotts_api.db.migrate import run_migrations

logger = logging.getLogger(__name__)


def check_configuration(settings: BillingSettings) -> None:
    """Warn at startup about missing Stripe configuration; requests that need it fail with 500."""
    if not settings.stripe_secret_key:
        logger.warning("STRIPE_SECRET_KEY not configured - checkout and portal disabled")
    if not settings.stripe_webhook_secret:
        logger.warning("STRIPE_WEBHOOK_SECRET not configured - webhooks will be rejected")
    for plan, price_id in settings.prices.items():
        if not settings.price_for_plan(plan):
            logger.warning(f"No Stripe price configured for plan={plan} (got {price_id!r})")


async def billing_error_handler(request: Request, exc: BillingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.error}: {exc.detail}")
    headers = {"Retry-After": "30"} if exc.retryable else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "detail": exc.detail},
        headers=headers,
    )


def create_app(settings: Optional[BillingSettings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level, settings.log_dir)
        logger.info(f"Starting Dotts billing API: {sanitize_log_data({'database_url': settings.database_url, 'frontend_origin': settings.frontend_origin})}")
        check_configuration(settings)
        if settings.run_migrations:
            run_migrations(settings)
        yield

    # ============================================
    # ✅ FASTAPI APP INIT
    # ============================================

    app = FastAPI(title="Dotts Billing API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    app.add_exception_handler(BillingError, billing_error_handler)

    # ============================================
    # ✅ REGISTER ALL ROUTERS
    # ============================================

    app.include_router(health.router)
    app.include_router(billing.router)

    return app


app = create_app()
