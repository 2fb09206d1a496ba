"""
Billing service for checkout and customer portal sessions.

Owns the user -> Stripe customer resolution used by both flows.
"""
import logging
from typing import Optional

from dotts_api.core.config import PLANS, BillingSettings
from dotts_api.core.errors import (
    CustomerNotFoundError,
    MissingIdentifierError,
    MissingPriceError,
    ProviderError,
    UnknownUserError,
)
from dotts_api.db.store import RecordStore
from dotts_api.services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)


class BillingService:
    def __init__(self, settings: BillingSettings, store: RecordStore, gateway: StripeGateway):
        self.settings = settings
        self.store = store
        self.gateway = gateway

    def resolve_or_create_customer(self, user_id: str) -> str:
        """
        Return the Stripe customer linked to user_id, creating and linking one if needed.

        Safe to call concurrently for the same user: the Stripe create is
        idempotent per user and the link insert keeps the first writer's row,
        which every caller then returns.
        """
        customer_id = self.store.get_customer_id(user_id)
        if customer_id:
            return customer_id

        profile = self.store.get_profile(user_id)
        if not profile:
            raise UnknownUserError(f"No profile for user_id={user_id}")

        created_id = self.gateway.create_customer(user_id, profile.email)
        linked = self.store.link_customer(user_id, created_id)
        if not linked:
            raise ProviderError(f"Stripe returned customer_id={created_id}, which is linked to another user")
        return linked

    def create_checkout_session(
        self,
        plan: str = "monthly",
        user_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> str:
        """
        Create a subscription checkout for plan and return the redirect URL.

        Args:
            plan: Plan selector, 'monthly' or 'annual'
            user_id: Local user id; becomes the correlation token on the webhook
            email: Used as customer_email when no user id is given
        """
        plan = (plan or "monthly").lower()
        if plan not in PLANS:
            raise MissingPriceError(f"Unknown plan: {plan}. Must be one of {', '.join(PLANS)}")

        price_id = self.settings.price_for_plan(plan)
        if not price_id:
            raise MissingPriceError(f"No Stripe price configured for plan={plan}")

        if not user_id and not email:
            raise MissingIdentifierError("userId or email is required")

        if user_id:
            customer_id = self.resolve_or_create_customer(user_id)
            return self.gateway.create_checkout_session(
                price_id=price_id, plan=plan, user_id=user_id, customer_id=customer_id
            )

        logger.info(f"Creating checkout without user id for plan={plan}")
        return self.gateway.create_checkout_session(price_id=price_id, plan=plan, customer_email=email)

    def create_portal_session(self, user_id: Optional[str] = None, email: Optional[str] = None) -> str:
        if user_id:
            customer_id = self.resolve_or_create_customer(user_id)
        elif email:
            customer_id = self.gateway.find_customer_id_by_email(email)
            if not customer_id:
                raise CustomerNotFoundError("No Stripe customer for this email")
        else:
            raise MissingIdentifierError("userId or email is required")

        return self.gateway.create_portal_session(customer_id)
