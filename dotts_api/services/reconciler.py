"""
Subscription reconciler.

Applies verified billing events to the record store. Every effect is an upsert
keyed by user id, so redelivered events leave the same final state. Events are
applied in delivery order: a stale subscription update delivered after a newer
one overwrites it until the next event arrives.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from dotts_api.core.plan_tiers import KNOWN_STATUSES, PLAN_FREE, PLAN_PREMIUM, plan_tier_for_status
from dotts_api.db.store import RecordStore
from dotts_api.services.events import (
    BillingEvent,
    CheckoutCompleted,
    SubscriptionChanged,
    SubscriptionDeleted,
)

logger = logging.getLogger(__name__)

APPLIED = "applied"
IGNORED = "ignored"
UNMATCHED = "unmatched"


@dataclass(frozen=True)
class ApplyResult:
    outcome: str  # applied | ignored | unmatched
    kind: str
    user_id: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.outcome == APPLIED


class SubscriptionReconciler:
    def __init__(self, store: RecordStore):
        self.store = store

    def apply(self, event: BillingEvent) -> ApplyResult:
        """
        Apply one verified event.

        Raises:
            StoreUnavailableError: the record store could not be reached; the
                webhook must fail so Stripe redelivers the event
        """
        if isinstance(event, CheckoutCompleted):
            return self._apply_checkout_completed(event)
        if isinstance(event, SubscriptionChanged):
            return self._apply_subscription_changed(event)
        if isinstance(event, SubscriptionDeleted):
            return self._apply_subscription_deleted(event)

        logger.info(f"Ignoring unhandled event type={getattr(event, 'event_type', None)}, id={event.event_id}")
        return ApplyResult(outcome=IGNORED, kind=event.kind)

    def _apply_checkout_completed(self, event: CheckoutCompleted) -> ApplyResult:
        if not event.user_id:
            logger.warning(f"checkout_completed without correlation token: event_id={event.event_id}")
            return ApplyResult(outcome=UNMATCHED, kind=event.kind)

        if not self.store.get_profile(event.user_id):
            logger.warning(f"checkout_completed for unknown user_id={event.user_id}, event_id={event.event_id}")
            return ApplyResult(outcome=UNMATCHED, kind=event.kind, user_id=event.user_id)

        if self.store.link_customer(event.user_id, event.customer_id) is None:
            logger.warning(
                f"checkout_completed: customer_id={event.customer_id} belongs to another user, "
                f"not applying for user_id={event.user_id}, event_id={event.event_id}"
            )
            return ApplyResult(outcome=UNMATCHED, kind=event.kind, user_id=event.user_id)

        self.store.upsert_subscription(event.user_id, {
            "stripe_customer_id": event.customer_id,
            "stripe_subscription_id": event.subscription_id,
            "status": "active",
        })
        self.store.set_plan(event.user_id, PLAN_PREMIUM)

        logger.info(
            f"Checkout completed: user_id={event.user_id}, customer_id={event.customer_id}, "
            f"subscription_id={event.subscription_id}"
        )
        return ApplyResult(outcome=APPLIED, kind=event.kind, user_id=event.user_id)

    def _apply_subscription_changed(self, event: SubscriptionChanged) -> ApplyResult:
        user_id = self._resolve_user(event.customer_id, event.metadata_user_id)
        if not user_id:
            logger.warning(f"{event.kind}: no user linked to customer_id={event.customer_id}, event_id={event.event_id}")
            return ApplyResult(outcome=UNMATCHED, kind=event.kind)

        if event.status not in KNOWN_STATUSES:
            logger.warning(f"{event.kind}: unrecognized subscription status={event.status}, treating as unpaid")

        plan = plan_tier_for_status(event.status)
        self.store.upsert_subscription(user_id, {
            "stripe_customer_id": event.customer_id,
            "stripe_subscription_id": event.subscription_id,
            "price_id": event.price_id,
            "status": event.status,
            "current_period_end": event.current_period_end,
        })
        self.store.set_plan(user_id, plan)

        logger.info(
            f"Subscription {event.kind.split('_')[-1]}: user_id={user_id}, status={event.status}, "
            f"plan={plan}, subscription_id={event.subscription_id}"
        )
        return ApplyResult(outcome=APPLIED, kind=event.kind, user_id=user_id)

    def _apply_subscription_deleted(self, event: SubscriptionDeleted) -> ApplyResult:
        user_id = self._resolve_user(event.customer_id, event.metadata_user_id)
        if not user_id:
            logger.warning(f"{event.kind}: no user linked to customer_id={event.customer_id}, event_id={event.event_id}")
            return ApplyResult(outcome=UNMATCHED, kind=event.kind)

        # Keep the record for support history; only the status changes
        self.store.upsert_subscription(user_id, {
            "stripe_customer_id": event.customer_id,
            "stripe_subscription_id": event.subscription_id,
            "status": "canceled",
        })
        self.store.set_plan(user_id, PLAN_FREE)

        logger.info(f"User downgraded: user_id={user_id}, plan={PLAN_FREE}, subscription_id={event.subscription_id}")
        return ApplyResult(outcome=APPLIED, kind=event.kind, user_id=user_id)

    def _resolve_user(self, customer_id: str, metadata_user_id: Optional[str]) -> Optional[str]:
        """
        Find the local user for a Stripe customer.

        Falls back to the user_id stamped on the subscription at checkout when
        the customer link has not been written yet, and writes it.
        """
        user_id = self.store.find_user_by_customer(customer_id)
        if user_id:
            return user_id

        if metadata_user_id and self.store.get_profile(metadata_user_id):
            linked = self.store.link_customer(metadata_user_id, customer_id)
            if linked == customer_id:
                return metadata_user_id
            logger.warning(
                f"user_id={metadata_user_id} is linked to customer_id={linked}, "
                f"not {customer_id}; ignoring event"
            )
        return None
