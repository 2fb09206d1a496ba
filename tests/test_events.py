"""
Tests for decoding Stripe event payloads into billing events.
"""
from datetime import datetime, timezone

import pytest

from dotts_api.core.errors import MalformedEventError
from dotts_api.services.events import (
    SUBSCRIPTION_UPDATED,
    CheckoutCompleted,
    SubscriptionChanged,
    SubscriptionDeleted,
    UnrecognizedEvent,
    decode_event,
)
from stripe_fakes import stripe_event

SUBSCRIPTION = {
    "id": "sub_1",
    "object": "subscription",
    "customer": "cus_1",
    "status": "active",
    "current_period_end": 1795003200,
    "metadata": {"user_id": "user_42", "plan": "monthly"},
    "items": {
        "object": "list",
        "data": [{"id": "si_1", "price": {"id": "price_monthly_123", "object": "price"}}],
    },
}


def test_decode_checkout_completed_uses_metadata_user_id():
    event = decode_event(stripe_event("checkout.session.completed", {
        "id": "cs_test_1",
        "customer": "cus_1",
        "subscription": "sub_1",
        "metadata": {"userId": "user_42"},
    }))

    assert isinstance(event, CheckoutCompleted)
    assert event.kind == "checkout_completed"
    assert event.user_id == "user_42"
    assert event.customer_id == "cus_1"
    assert event.subscription_id == "sub_1"
    assert event.event_id == "evt_1"


def test_decode_checkout_completed_falls_back_to_client_reference_id():
    event = decode_event(stripe_event("checkout.session.completed", {
        "id": "cs_test_1",
        "customer": "cus_1",
        "subscription": "sub_1",
        "metadata": {},
        "client_reference_id": "user_9",
    }))

    assert event.user_id == "user_9"


def test_decode_checkout_completed_without_token():
    event = decode_event(stripe_event("checkout.session.completed", {
        "id": "cs_test_1",
        "customer": "cus_1",
        "subscription": "sub_1",
    }))

    assert event.user_id is None


def test_decode_subscription_updated():
    event = decode_event(stripe_event("customer.subscription.updated", SUBSCRIPTION))

    assert isinstance(event, SubscriptionChanged)
    assert event.kind == SUBSCRIPTION_UPDATED
    assert event.status == "active"
    assert event.price_id == "price_monthly_123"
    assert event.current_period_end == datetime.fromtimestamp(1795003200, tz=timezone.utc)
    assert event.metadata_user_id == "user_42"


def test_decode_period_end_from_subscription_item():
    """Newer API versions only put the period on the item."""
    obj = dict(SUBSCRIPTION)
    del obj["current_period_end"]
    obj["items"] = {"data": [{"price": {"id": "price_annual_456"}, "current_period_end": 1795003200}]}

    event = decode_event(stripe_event("customer.subscription.created", obj))

    assert event.kind == "subscription_created"
    assert event.price_id == "price_annual_456"
    assert event.current_period_end == datetime.fromtimestamp(1795003200, tz=timezone.utc)


def test_decode_subscription_without_items():
    obj = {"id": "sub_1", "customer": "cus_1", "status": "incomplete"}

    event = decode_event(stripe_event("customer.subscription.created", obj))

    assert event.price_id is None
    assert event.current_period_end is None


def test_decode_expanded_customer_object():
    obj = dict(SUBSCRIPTION, customer={"id": "cus_1", "object": "customer"})

    event = decode_event(stripe_event("customer.subscription.updated", obj))

    assert event.customer_id == "cus_1"


def test_decode_subscription_deleted():
    event = decode_event(stripe_event("customer.subscription.deleted", dict(SUBSCRIPTION, status="canceled")))

    assert isinstance(event, SubscriptionDeleted)
    assert event.subscription_id == "sub_1"
    assert event.customer_id == "cus_1"


@pytest.mark.parametrize("event_type", ["invoice.paid", "unknown.thing", None])
def test_decode_unrecognized_types(event_type):
    event = decode_event({"id": "evt_9", "type": event_type, "data": {"object": {}}})

    assert isinstance(event, UnrecognizedEvent)
    assert event.event_type == event_type


def test_unrecognized_type_needs_no_data():
    event = decode_event({"id": "evt_9", "type": "unknown.thing"})

    assert isinstance(event, UnrecognizedEvent)


@pytest.mark.parametrize("event_type,obj", [
    ("checkout.session.completed", {"subscription": "sub_1", "metadata": {"userId": "user_42"}}),
    ("checkout.session.completed", {"customer": "cus_1", "metadata": {"userId": "user_42"}}),
    ("customer.subscription.updated", {"id": "sub_1", "status": "active"}),
    ("customer.subscription.updated", {"id": "sub_1", "customer": "cus_1"}),
    ("customer.subscription.deleted", {"customer": "cus_1"}),
])
def test_decode_recognized_event_missing_fields(event_type, obj):
    with pytest.raises(MalformedEventError):
        decode_event(stripe_event(event_type, obj))


def test_decode_recognized_event_without_object():
    with pytest.raises(MalformedEventError):
        decode_event({"id": "evt_1", "type": "customer.subscription.updated", "data": {}})
