"""
FastAPI dependency providers.

Tests replace these through app.dependency_overrides.
"""
from functools import lru_cache

from fastapi import Depends

from dotts_api.core.config import BillingSettings, get_settings
from dotts_api.db.session import get_session_factory
from dotts_api.db.store import RecordStore
from dotts_api.services.billing_service import BillingService
from dotts_api.services.reconciler import SubscriptionReconciler
from dotts_api.services.stripe_gateway import StripeGateway


@lru_cache
def _gateway_for(settings: BillingSettings) -> StripeGateway:
    return StripeGateway(settings)


def get_store() -> RecordStore:
    return RecordStore(get_session_factory())


def get_gateway(settings: BillingSettings = Depends(get_settings)) -> StripeGateway:
    return _gateway_for(settings)


def get_billing_service(
    settings: BillingSettings = Depends(get_settings),
    store: RecordStore = Depends(get_store),
    gateway: StripeGateway = Depends(get_gateway),
) -> BillingService:
    return BillingService(settings, store, gateway)


def get_reconciler(store: RecordStore = Depends(get_store)) -> SubscriptionReconciler:
    return SubscriptionReconciler(store)
