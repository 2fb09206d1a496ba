"""
Integration tests for the /api/stripe endpoints and /api/health.
"""
from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from dotts_api.api.dependencies import get_gateway, get_store
from dotts_api.core.config import get_settings
from dotts_api.core.errors import StoreUnavailableError
from dotts_api.main import create_app
from dotts_api.services.stripe_gateway import StripeGateway
from stripe_fakes import encode, sign_payload, stripe_event


class WebhookGateway(StripeGateway):
    """Real signature verification, fake Stripe API calls."""

    def __init__(self, settings, fake):
        super().__init__(settings)
        self.fake = fake

    def create_customer(self, user_id, email=None):
        return self.fake.create_customer(user_id, email)

    def find_customer_id_by_email(self, email):
        return self.fake.find_customer_id_by_email(email)

    def create_checkout_session(self, **kwargs):
        return self.fake.create_checkout_session(**kwargs)

    def create_portal_session(self, customer_id):
        return self.fake.create_portal_session(customer_id)


@pytest.fixture
def app(settings, store, gateway):
    app = create_app(settings)
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_gateway] = lambda: WebhookGateway(settings, gateway)
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


def post_event(client, event, signature=None):
    body = encode(event)
    headers = {"Content-Type": "application/json", "Stripe-Signature": signature or sign_payload(body)}
    return client.post("/api/stripe/webhook", content=body, headers=headers)


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True, "database": "connected"}


def test_stripe_config(client):
    response = client.get("/api/stripe/config")

    assert response.status_code == 200
    assert response.json() == {
        "publishableKey": "pk_test_123",
        "prices": {"monthly": "price_monthly_123", "annual": "price_annual_456"},
    }


def test_create_checkout_session(client, gateway, make_profile):
    make_profile("user_1")

    response = client.post("/api/stripe/create-checkout-session", json={"userId": "user_1", "plan": "annual"})

    assert response.status_code == 200
    assert response.json()["url"].startswith("https://checkout.stripe.com/")
    assert gateway.checkout_calls[0]["price_id"] == "price_annual_456"
    assert gateway.checkout_calls[0]["user_id"] == "user_1"


def test_create_checkout_session_missing_identifier(client):
    response = client.post("/api/stripe/create-checkout-session", json={"plan": "monthly"})

    assert response.status_code == 400
    assert response.json()["error"] == "missing_identifier"


def test_create_checkout_session_missing_price(app, client, settings):
    no_prices = replace(settings, stripe_price_monthly=None)
    app.dependency_overrides[get_settings] = lambda: no_prices

    response = client.post("/api/stripe/create-checkout-session", json={"userId": "user_1"})

    assert response.status_code == 400
    assert response.json()["error"] == "missing_price_id"


def test_create_checkout_session_unknown_user(client):
    response = client.post("/api/stripe/create-checkout-session", json={"userId": "ghost"})

    assert response.status_code == 404
    assert response.json()["error"] == "user_not_found"


def test_create_portal_session(client, gateway, make_profile, store):
    make_profile("user_1")
    store.link_customer("user_1", "cus_9")

    response = client.post("/api/stripe/create-portal-session", json={"userId": "user_1"})

    assert response.status_code == 200
    assert response.json() == {"url": "https://billing.stripe.com/p/session/test_cus_9"}


def test_create_portal_session_customer_not_found(client):
    response = client.post("/api/stripe/create-portal-session", json={"email": "nobody@example.com"})

    assert response.status_code == 404
    assert response.json()["error"] == "customer_not_found"


def test_webhook_rejects_bad_signature(client, store, make_profile):
    make_profile("user_42")
    event = stripe_event("checkout.session.completed", {
        "customer": "cus_1", "subscription": "sub_1", "metadata": {"userId": "user_42"},
    })

    response = post_event(client, event, signature="t=1,v1=deadbeef")

    assert response.status_code == 400
    assert response.json()["error"] == "webhook_verification_failed"
    assert store.get_subscription("user_42") is None


def test_webhook_rejects_missing_signature(client):
    response = client.post("/api/stripe/webhook", content=b"{}", headers={"Content-Type": "application/json"})

    assert response.status_code == 400


def test_webhook_checkout_then_cancel(client, store, make_profile):
    """Test the checkout -> deletion flow through the HTTP endpoint."""
    make_profile("user_42")

    response = post_event(client, stripe_event("checkout.session.completed", {
        "id": "cs_test_1", "customer": "cus_1", "subscription": "sub_1", "metadata": {"userId": "user_42"},
    }))
    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert store.get_subscription("user_42").status == "active"
    assert store.get_profile("user_42").plan == "premium"

    response = post_event(client, stripe_event("customer.subscription.deleted", {
        "id": "sub_1", "customer": "cus_1", "status": "canceled",
    }, event_id="evt_2"))
    assert response.status_code == 200
    assert store.get_subscription("user_42").status == "canceled"
    assert store.get_profile("user_42").plan == "free"


def test_webhook_acknowledges_unknown_event(client):
    response = post_event(client, stripe_event("invoice.finalized", {"id": "in_1"}))

    assert response.status_code == 200
    assert response.json() == {"received": True}


def test_webhook_acknowledges_unmatched_customer(client, store):
    response = post_event(client, stripe_event("customer.subscription.updated", {
        "id": "sub_1", "customer": "cus_missing", "status": "active",
    }))

    assert response.status_code == 200
    assert store.find_user_by_customer("cus_missing") is None


def test_webhook_acknowledges_customer_linked_to_another_user(client, store, make_profile):
    make_profile("user_a")
    make_profile("user_b")
    store.link_customer("user_a", "cus_1")

    response = post_event(client, stripe_event("checkout.session.completed", {
        "id": "cs_test_1", "customer": "cus_1", "subscription": "sub_1", "metadata": {"userId": "user_b"},
    }))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert store.find_user_by_customer("cus_1") == "user_a"
    assert store.get_subscription("user_b") is None
    assert store.get_profile("user_b").plan == "free"


def test_webhook_acknowledges_malformed_event(client):
    response = post_event(client, stripe_event("customer.subscription.updated", {"id": "sub_1", "status": "active"}))

    assert response.status_code == 200
    assert response.json() == {"received": True}


def test_webhook_store_outage_asks_for_redelivery(client, store, monkeypatch):
    def unavailable(*args, **kwargs):
        raise StoreUnavailableError("Record store unavailable: OperationalError")

    monkeypatch.setattr(store, "find_user_by_customer", unavailable)

    response = post_event(client, stripe_event("customer.subscription.updated", {
        "id": "sub_1", "customer": "cus_1", "status": "active",
    }))

    assert response.status_code == 503
    assert response.json()["error"] == "store_unavailable"
    assert response.headers["Retry-After"] == "30"
