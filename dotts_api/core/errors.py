"""
Billing error taxonomy.

Every error carries the HTTP status and error code it is rendered with, and
whether the caller (or Stripe, for webhooks) should retry.
"""
from typing import Optional


class BillingError(Exception):
    """Base class for billing errors surfaced to API callers."""

    status_code = 500
    error = "billing_error"
    retryable = False

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.error)
        self.detail = detail


class ConfigurationError(BillingError):
    """A required secret or price mapping is not configured."""

    status_code = 500
    error = "billing_not_configured"


class MissingPriceError(BillingError):
    status_code = 400
    error = "missing_price_id"


class MissingIdentifierError(BillingError):
    status_code = 400
    error = "missing_identifier"


class CustomerNotFoundError(BillingError):
    status_code = 404
    error = "customer_not_found"


class UnknownUserError(BillingError):
    status_code = 404
    error = "user_not_found"


class WebhookVerificationError(BillingError):
    """Bad or missing Stripe-Signature, or an unreadable body."""

    status_code = 400
    error = "webhook_verification_failed"


class MalformedEventError(BillingError):
    """A recognized event is missing a field it needs to be applied."""

    status_code = 400
    error = "malformed_event"


class StoreUnavailableError(BillingError):
    status_code = 503
    error = "store_unavailable"
    retryable = True


class ProviderUnavailableError(BillingError):
    """Stripe could not be reached or is rate limiting us."""

    status_code = 503
    error = "provider_unavailable"
    retryable = True


class ProviderError(BillingError):
    status_code = 502
    error = "provider_error"
