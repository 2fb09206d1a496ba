"""
Stripe gateway for customers, checkout, billing portal, and webhook verification.

The API key is passed on every call from the injected settings rather than
set on the stripe module.
"""
import json
import logging
from typing import Any, Dict, Optional

import stripe

from dotts_api.core.config import BillingSettings
from dotts_api.core.errors import (
    ConfigurationError,
    ProviderError,
    ProviderUnavailableError,
    WebhookVerificationError,
)

logger = logging.getLogger(__name__)


def _raise_provider_error(action: str, e: stripe.StripeError):
    if isinstance(e, (stripe.APIConnectionError, stripe.RateLimitError)):
        logger.warning(f"Stripe unavailable while trying to {action}: {e}")
        raise ProviderUnavailableError(f"Stripe unavailable: {e.__class__.__name__}") from e
    logger.error(f"Stripe error while trying to {action}: {e}")
    raise ProviderError(f"Failed to {action}: {e.user_message or e.__class__.__name__}") from e


class StripeGateway:
    def __init__(self, settings: BillingSettings):
        self.settings = settings
        # Transport settings are process-wide in the stripe SDK
        stripe.default_http_client = stripe.RequestsClient(timeout=settings.stripe_timeout_seconds)
        stripe.max_network_retries = settings.stripe_max_network_retries

    @property
    def api_key(self) -> str:
        if not self.settings.stripe_secret_key:
            raise ConfigurationError("STRIPE_SECRET_KEY not configured")
        return self.settings.stripe_secret_key

    def create_customer(self, user_id: str, email: Optional[str] = None) -> str:
        """
        Create a Stripe customer for user_id.

        The idempotency key makes concurrent or retried creates for the same
        user return the same customer.
        """
        try:
            customer = stripe.Customer.create(
                email=email,
                metadata={"user_id": user_id},
                api_key=self.api_key,
                idempotency_key=f"customer-create-{user_id}",
            )
        except stripe.StripeError as e:
            _raise_provider_error("create customer", e)

        logger.info(f"Created Stripe customer: user_id={user_id}, customer_id={customer.id}")
        return customer.id

    def find_customer_id_by_email(self, email: str) -> Optional[str]:
        try:
            result = stripe.Customer.list(email=email, limit=1, api_key=self.api_key)
        except stripe.StripeError as e:
            _raise_provider_error("search customers", e)

        if not result.data:
            return None
        return result.data[0].id

    def create_checkout_session(
        self,
        price_id: str,
        plan: str,
        user_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        customer_email: Optional[str] = None,
    ) -> str:
        """
        Create a subscription Checkout session and return its URL.

        user_id travels as metadata on both the session and the subscription
        and comes back on the webhook events as the correlation token.
        """
        params: Dict[str, Any] = {
            "mode": "subscription",
            "line_items": [{"price": price_id, "quantity": 1}],
            "allow_promotion_codes": True,
            "success_url": self.settings.checkout_success_url,
            "cancel_url": self.settings.checkout_cancel_url,
        }
        if customer_id:
            params["customer"] = customer_id
        elif customer_email:
            params["customer_email"] = customer_email

        if user_id:
            metadata = {"userId": user_id, "user_id": user_id, "plan": plan}
            params["client_reference_id"] = user_id
            params["metadata"] = metadata
            params["subscription_data"] = {"metadata": {"user_id": user_id, "plan": plan}}
        else:
            params["metadata"] = {"plan": plan}

        try:
            session = stripe.checkout.Session.create(api_key=self.api_key, **params)
        except stripe.StripeError as e:
            _raise_provider_error("create checkout session", e)

        logger.info(f"Created checkout session: session_id={session.id}, user_id={user_id}, plan={plan}")
        return session.url

    def create_portal_session(self, customer_id: str) -> str:
        try:
            session = stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=self.settings.portal_return_url,
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            _raise_provider_error("create portal session", e)

        logger.info(f"Created billing portal session for customer_id={customer_id}")
        return session.url

    def verify_webhook(self, request_body: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify a Stripe webhook and return the event payload.

        Args:
            request_body: Raw request body bytes, exactly as received
            signature: Stripe-Signature header value

        Raises:
            ConfigurationError: STRIPE_WEBHOOK_SECRET is not set
            WebhookVerificationError: signature missing or invalid, or body is not JSON
        """
        if not self.settings.stripe_webhook_secret:
            raise ConfigurationError("STRIPE_WEBHOOK_SECRET not configured")
        if not signature:
            raise WebhookVerificationError("Missing Stripe-Signature header")

        try:
            stripe.Webhook.construct_event(
                request_body, signature, self.settings.stripe_webhook_secret
            )
            payload = json.loads(request_body)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise WebhookVerificationError(f"Invalid signature: {e}") from e
        except ValueError as e:
            logger.warning(f"Invalid webhook payload: {e}")
            raise WebhookVerificationError(f"Invalid webhook payload: {e}") from e

        if not isinstance(payload, dict):
            raise WebhookVerificationError("Invalid webhook payload: expected an object")

        logger.info(f"Verified webhook event: {payload.get('type')}, id={payload.get('id')}")
        return payload
