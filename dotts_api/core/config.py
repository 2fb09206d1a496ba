"""
Configuration for the Dotts billing API.

Values come from the environment. Route handlers and services receive a
BillingSettings instance through dependencies instead of reading os.environ.
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Optional, Tuple

# Local front-end origins that are always allowed by CORS
DEV_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

PLANS = ("monthly", "annual")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _float_env(name: str, default: float) -> float:
    raw = _clean(os.getenv(name))
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    raw = _clean(os.getenv(name))
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class BillingSettings:
    # ✅ Database
    database_url: str = "sqlite:///./dotts.db"
    db_timeout_seconds: float = 5.0

    # ✅ Stripe
    stripe_secret_key: Optional[str] = None
    stripe_publishable_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_price_monthly: Optional[str] = None
    stripe_price_annual: Optional[str] = None
    stripe_timeout_seconds: float = 10.0
    stripe_max_network_retries: int = 2

    # ✅ Front-end
    frontend_origin: str = "https://www.mydotts.com"
    cors_origins: Tuple[str, ...] = ()

    # ✅ Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    run_migrations: bool = False

    @classmethod
    def from_env(cls) -> "BillingSettings":
        frontend_origin = (_clean(os.getenv("FRONTEND_ORIGIN")) or cls.frontend_origin).rstrip("/")
        extra_origins = [
            origin.strip().rstrip("/")
            for origin in (os.getenv("CORS_ORIGINS") or "").split(",")
            if origin.strip()
        ]
        origins: List[str] = []
        for origin in DEV_ORIGINS + [frontend_origin] + extra_origins:
            if origin not in origins:
                origins.append(origin)

        return cls(
            database_url=_clean(os.getenv("DATABASE_URL")) or cls.database_url,
            db_timeout_seconds=_float_env("DB_TIMEOUT_SECONDS", cls.db_timeout_seconds),
            stripe_secret_key=_clean(os.getenv("STRIPE_SECRET_KEY")),
            stripe_publishable_key=_clean(os.getenv("STRIPE_PUBLISHABLE_KEY")),
            stripe_webhook_secret=_clean(os.getenv("STRIPE_WEBHOOK_SECRET")),
            stripe_price_monthly=_clean(os.getenv("STRIPE_PRICE_MONTHLY")),
            stripe_price_annual=_clean(os.getenv("STRIPE_PRICE_ANNUAL")),
            stripe_timeout_seconds=_float_env("STRIPE_TIMEOUT_SECONDS", cls.stripe_timeout_seconds),
            stripe_max_network_retries=_int_env("STRIPE_MAX_NETWORK_RETRIES", cls.stripe_max_network_retries),
            frontend_origin=frontend_origin,
            cors_origins=tuple(origins),
            log_level=_clean(os.getenv("LOG_LEVEL")) or cls.log_level,
            log_dir=_clean(os.getenv("LOG_DIR")),
            run_migrations=os.getenv("RUN_MIGRATIONS", "0").strip() == "1",
        )

    @property
    def prices(self) -> Dict[str, Optional[str]]:
        """Plan selector to Stripe price id, as exposed to the front-end."""
        return {
            "monthly": self.stripe_price_monthly,
            "annual": self.stripe_price_annual,
        }

    def price_for_plan(self, plan: str) -> Optional[str]:
        price_id = self.prices.get(plan.lower())
        if not price_id or price_id.startswith("price_your_"):
            # Placeholder values from .env.example
            return None
        return price_id

    @property
    def checkout_success_url(self) -> str:
        return f"{self.frontend_origin}/plans?success=1"

    @property
    def checkout_cancel_url(self) -> str:
        return f"{self.frontend_origin}/plans?canceled=1"

    @property
    def portal_return_url(self) -> str:
        return f"{self.frontend_origin}/plans"


@lru_cache
def get_settings() -> BillingSettings:
    return BillingSettings.from_env()
