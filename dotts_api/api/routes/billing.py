"""
Stripe billing endpoints: public config, checkout, customer portal, webhook.
"""
import logging

from fastapi import APIRouter, Depends, Header, Request
from starlette.concurrency import run_in_threadpool

from dotts_api.api.dependencies import (
    get_billing_service,
    get_gateway,
    get_reconciler,
)
from dotts_api.core.config import BillingSettings, get_settings
from dotts_api.core.errors import MalformedEventError
from dotts_api.schemas.billing import (
    ERROR_RESPONSES,
    CreateCheckoutSessionRequest,
    CreatePortalSessionRequest,
    PricesResponse,
    SessionUrlResponse,
    StripeConfigResponse,
    WebhookAck,
)
from dotts_api.services.billing_service import BillingService
from dotts_api.services.events import decode_event
from dotts_api.services.reconciler import SubscriptionReconciler
from dotts_api.services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stripe", tags=["Billing"], responses=ERROR_RESPONSES)


@router.get("/config", response_model=StripeConfigResponse)
def stripe_config(settings: BillingSettings = Depends(get_settings)):
    """Publishable key and price ids the front-end shows on the plans page."""
    return StripeConfigResponse(
        publishableKey=settings.stripe_publishable_key,
        prices=PricesResponse(**settings.prices),
    )


@router.post("/create-checkout-session", response_model=SessionUrlResponse)
def create_checkout_session(
    body: CreateCheckoutSessionRequest,
    billing: BillingService = Depends(get_billing_service),
):
    url = billing.create_checkout_session(plan=body.plan, user_id=body.user_id, email=body.email)
    return SessionUrlResponse(url=url)


@router.post("/create-portal-session", response_model=SessionUrlResponse)
def create_portal_session(
    body: CreatePortalSessionRequest,
    billing: BillingService = Depends(get_billing_service),
):
    url = billing.create_portal_session(user_id=body.user_id, email=body.email)
    return SessionUrlResponse(url=url)


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    gateway: StripeGateway = Depends(get_gateway),
    reconciler: SubscriptionReconciler = Depends(get_reconciler),
):
    """
    Receive a Stripe event.

    Anything short of a verification failure or an unreachable store is
    acknowledged with 200; otherwise Stripe keeps redelivering the event.
    """
    # Signature covers the exact bytes; do not parse before verifying
    payload = await request.body()
    event_payload = gateway.verify_webhook(payload, stripe_signature)

    try:
        event = decode_event(event_payload)
    except MalformedEventError as e:
        logger.warning(f"Skipping malformed event id={event_payload.get('id')}: {e.detail}")
        return WebhookAck()

    # The worker thread finishes its store writes even if the client disconnects
    result = await run_in_threadpool(reconciler.apply, event)
    logger.info(f"Webhook processed: type={event_payload.get('type')}, outcome={result.outcome}, user_id={result.user_id}")
    return WebhookAck()
