"""
Billing events handled by the subscription reconciler.

Raw Stripe event payloads are decoded once, at the webhook boundary, into one
of the dataclasses below. Event types we do not handle decode to
UnrecognizedEvent so that new Stripe event types are never errors.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from dotts_api.core.errors import MalformedEventError

CHECKOUT_COMPLETED = "checkout_completed"
SUBSCRIPTION_CREATED = "subscription_created"
SUBSCRIPTION_UPDATED = "subscription_updated"
SUBSCRIPTION_DELETED = "subscription_deleted"

STRIPE_EVENT_KINDS = {
    "checkout.session.completed": CHECKOUT_COMPLETED,
    "customer.subscription.created": SUBSCRIPTION_CREATED,
    "customer.subscription.updated": SUBSCRIPTION_UPDATED,
    "customer.subscription.deleted": SUBSCRIPTION_DELETED,
}

# Metadata keys checked, in order, for the correlation token
USER_ID_METADATA_KEYS = ("userId", "user_id")


@dataclass(frozen=True)
class CheckoutCompleted:
    event_id: Optional[str]
    user_id: Optional[str]
    customer_id: str
    subscription_id: str
    kind: str = field(default=CHECKOUT_COMPLETED, init=False)


@dataclass(frozen=True)
class SubscriptionChanged:
    event_id: Optional[str]
    kind: str
    subscription_id: str
    customer_id: str
    status: str
    price_id: Optional[str] = None
    current_period_end: Optional[datetime] = None
    metadata_user_id: Optional[str] = None


@dataclass(frozen=True)
class SubscriptionDeleted:
    event_id: Optional[str]
    subscription_id: str
    customer_id: str
    metadata_user_id: Optional[str] = None
    kind: str = field(default=SUBSCRIPTION_DELETED, init=False)


@dataclass(frozen=True)
class UnrecognizedEvent:
    event_id: Optional[str]
    event_type: Optional[str]
    kind: str = field(default="unrecognized", init=False)


BillingEvent = Union[CheckoutCompleted, SubscriptionChanged, SubscriptionDeleted, UnrecognizedEvent]


def _str_or_none(value: Any) -> Optional[str]:
    """Stripe expands some ids into objects; accept either form."""
    if isinstance(value, dict):
        value = value.get("id")
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _user_id_from_metadata(metadata: Any) -> Optional[str]:
    if not isinstance(metadata, dict):
        return None
    for key in USER_ID_METADATA_KEYS:
        user_id = _str_or_none(metadata.get(key))
        if user_id:
            return user_id
    return None


def _first_item(obj: Dict[str, Any]) -> Dict[str, Any]:
    items = obj.get("items") or {}
    data = items.get("data") if isinstance(items, dict) else None
    if data and isinstance(data[0], dict):
        return data[0]
    return {}


def _timestamp(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _require(value: Optional[str], name: str, event_type: str) -> str:
    if not value:
        raise MalformedEventError(f"{event_type} event is missing {name}")
    return value


def decode_event(payload: Dict[str, Any]) -> BillingEvent:
    """
    Decode a verified Stripe event payload.

    Raises:
        MalformedEventError: a recognized event lacks a field it needs
    """
    if not isinstance(payload, dict):
        raise MalformedEventError("Event payload is not an object")

    event_id = _str_or_none(payload.get("id"))
    event_type = _str_or_none(payload.get("type"))
    kind = STRIPE_EVENT_KINDS.get(event_type or "")
    if kind is None:
        return UnrecognizedEvent(event_id=event_id, event_type=event_type)

    data = payload.get("data")
    obj = data.get("object") if isinstance(data, dict) else None
    if not isinstance(obj, dict):
        raise MalformedEventError(f"{event_type} event has no data.object")

    customer_id = _require(_str_or_none(obj.get("customer")), "customer", event_type)

    if kind == CHECKOUT_COMPLETED:
        user_id = _user_id_from_metadata(obj.get("metadata")) or _str_or_none(obj.get("client_reference_id"))
        return CheckoutCompleted(
            event_id=event_id,
            user_id=user_id,
            customer_id=customer_id,
            subscription_id=_require(_str_or_none(obj.get("subscription")), "subscription", event_type),
        )

    subscription_id = _require(_str_or_none(obj.get("id")), "id", event_type)
    metadata_user_id = _user_id_from_metadata(obj.get("metadata"))

    if kind == SUBSCRIPTION_DELETED:
        return SubscriptionDeleted(
            event_id=event_id,
            subscription_id=subscription_id,
            customer_id=customer_id,
            metadata_user_id=metadata_user_id,
        )

    item = _first_item(obj)
    price = item.get("price")
    # Newer API versions carry the billing period on the item, not the subscription
    period_end = obj.get("current_period_end") or item.get("current_period_end")

    return SubscriptionChanged(
        event_id=event_id,
        kind=kind,
        subscription_id=subscription_id,
        customer_id=customer_id,
        status=_require(_str_or_none(obj.get("status")), "status", event_type),
        price_id=_str_or_none(price),
        current_period_end=_timestamp(period_end),
        metadata_user_id=metadata_user_id,
    )
