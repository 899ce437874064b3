import hashlib
import hmac
import json
import time
from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe

from storefront.gateway import (
    DemoGateway, GatewayEventError, GatewayFailure, StripeGateway, build_line_items, to_minor_units,
    get_gateway,
)
from storefront.main import app

URLS = {"successUrl": "http://testserver/checkout/success", "cancelUrl": "http://testserver/checkout/cancel"}


def cart_line(product_id, quantity=1, price="0.01"):
    # the client-side price is deliberately wrong; the endpoint must not trust it
    return {"productId": product_id, "quantity": quantity,
            "product": {"id": product_id, "name": "whatever", "price": price}}


# 💳 create-checkout-session

def test_checkout_session_prices_from_catalog(client, gateway, make_product):
    tee = make_product(name="Tee", price=Decimal("12.50"))
    cap = make_product(name="Cap", price=Decimal("3.00"), image_url="")

    r = client.post("/api/payments/create-checkout-session",
                    json={"cartItems": [cart_line(tee.id, 2), cart_line(cap.id)], **URLS})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["url"] == f"http://testserver/payments/demo/{body['sessionId']}"

    demo = gateway.get_session(body["sessionId"])
    assert demo.amount_total == 2800
    assert demo.line_items[0]["price_data"]["product_data"] == {"name": "Tee", "images": [tee.image_url]}
    assert demo.line_items[1]["price_data"]["product_data"] == {"name": "Cap"}
    assert demo.success_url == URLS["successUrl"]


@pytest.mark.parametrize("payload, message", [
    ({"cartItems": [], **URLS}, "Cart items are required"),
    ({**URLS}, "Cart items are required"),
    ({"cartItems": [cart_line(1)], "successUrl": URLS["successUrl"]}, "Success and cancel URLs are required"),
    ({"cartItems": [cart_line(999)], **URLS}, "Product 999 not found"),
])
def test_checkout_session_rejects_bad_requests(client, make_product, payload, message):
    make_product()
    r = client.post("/api/payments/create-checkout-session", json=payload)
    assert r.status_code == 400
    assert r.json() == {"error": message}


def test_checkout_session_checks_quantity_and_stock(client, make_product):
    tee = make_product(name="Tee", inventory=2)

    r = client.post("/api/payments/create-checkout-session", json={"cartItems": [cart_line(tee.id, 0)], **URLS})
    assert r.json() == {"error": "Invalid quantity for Tee"}

    r = client.post("/api/payments/create-checkout-session", json={"cartItems": [cart_line(tee.id, 3)], **URLS})
    assert r.json() == {"error": "Not enough stock for Tee"}


def test_checkout_session_gateway_failure(client, gateway, make_product, monkeypatch):
    async def refuse(**kwargs):
        raise GatewayFailure("boom")

    monkeypatch.setattr(gateway, "create_checkout_session", refuse)
    tee = make_product()
    r = client.post("/api/payments/create-checkout-session", json={"cartItems": [cart_line(tee.id)], **URLS})
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to create checkout session"}


def test_payment_intent(client):
    assert client.post("/api/payments/create-payment-intent", json={}).json() == {"error": "Amount is required"}

    r = client.post("/api/payments/create-payment-intent", json={"amount": "19.99"})
    assert r.status_code == 200
    assert r.json()["clientSecret"].startswith("pi_demo_")
    assert "_secret_1999usd" in r.json()["clientSecret"]


# 🔔 Webhook

WEBHOOK_SECRET = "whsec_test"


def event_payload(event_type, object_id):
    return json.dumps({
        "id": "evt_test", "object": "event", "type": event_type,
        "data": {"object": {"id": object_id}},
    }).encode()


def stripe_signature(payload, secret=WEBHOOK_SECRET, timestamp=None):
    # same scheme as Stripe: HMAC-SHA256 over "<timestamp>.<payload>"
    timestamp = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload.decode()}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture
def use_stripe_webhooks(client, stripe_gateway):
    # sessions are opened with the demo gateway, events arrive through Stripe
    app.dependency_overrides[get_gateway] = lambda: stripe_gateway
    return stripe_gateway


def _open_session(client, product_id, quantity):
    r = client.post("/api/payments/create-checkout-session", json={"cartItems": [cart_line(product_id, quantity)], **URLS})
    assert r.status_code == 200, r.text
    return r.json()["sessionId"]


def test_signed_webhook_completes_order_once(client, make_product, admin_headers, request):
    tee = make_product(inventory=4)
    session_id = _open_session(client, tee.id, 3)
    request.getfixturevalue("use_stripe_webhooks")
    payload = event_payload("checkout.session.completed", session_id)

    for _ in range(2):
        hook = client.post("/api/payments/webhook", content=payload,
                           headers={"stripe-signature": stripe_signature(payload)})
        assert hook.status_code == 200, hook.text
        assert hook.json() == {"received": True}

    assert client.get(f"/api/products/{tee.id}").json()["inventory"] == 1
    order = client.get("/api/orders", headers=admin_headers).json()[0]
    assert order["payment_status"] == "paid"


def test_signed_webhook_ignores_other_events(client, use_stripe_webhooks):
    for payload in (event_payload("charge.refunded", "ch_1"), event_payload("checkout.session.completed", "cs_unknown")):
        r = client.post("/api/payments/webhook", content=payload, headers={"stripe-signature": stripe_signature(payload)})
        assert r.status_code == 200
        assert r.json() == {"received": True}


def test_webhook_rejects_wrong_signature(client, make_product, admin_headers, request):
    tee = make_product()
    session_id = _open_session(client, tee.id, 1)
    request.getfixturevalue("use_stripe_webhooks")
    payload = event_payload("checkout.session.completed", session_id)

    for headers in ({}, {"stripe-signature": stripe_signature(payload, secret="whsec_other")}):
        r = client.post("/api/payments/webhook", content=payload, headers=headers)
        assert r.status_code == 400
        assert r.text.startswith("Webhook Error: ")

    order = client.get("/api/orders", headers=admin_headers).json()[0]
    assert order["payment_status"] == "pending"


def test_demo_gateway_refuses_forged_completion(client, make_product, admin_headers):
    tee = make_product(inventory=4)
    session_id = _open_session(client, tee.id, 2)

    r = client.post("/api/payments/webhook",
                    json={"type": "checkout.session.completed", "data": {"object": {"id": session_id}}})
    assert r.status_code == 400
    assert r.text.startswith("Webhook Error: ")

    order = client.get("/api/orders", headers=admin_headers).json()[0]
    assert order["payment_status"] == "pending"
    assert client.get(f"/api/products/{tee.id}").json()["inventory"] == 4


# 🏦 Gateways

def test_minor_units():
    assert to_minor_units(Decimal("9.99")) == 999
    assert to_minor_units(Decimal("0.005")) == 1
    assert to_minor_units(Decimal("12")) == 1200


def test_line_items_shape():
    items = build_line_items([{"name": "Tee", "image_url": "", "price": Decimal("1.50"), "quantity": 2}], currency="eur")
    assert items == [{
        "price_data": {"currency": "eur", "product_data": {"name": "Tee"}, "unit_amount": 150},
        "quantity": 2,
    }]


@pytest.fixture
def stripe_gateway(monkeypatch):
    monkeypatch.setattr(stripe, "api_key", None)
    return StripeGateway("sk_test_123", webhook_secret=WEBHOOK_SECRET)


@pytest.mark.asyncio
async def test_stripe_checkout_session(stripe_gateway, monkeypatch):
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.com/c/pay/cs_test_1")

    monkeypatch.setattr(stripe.checkout.Session, "create", create)
    hosted = await stripe_gateway.create_checkout_session(
        line_items=[{"quantity": 1}], success_url="https://shop/s", cancel_url="https://shop/c",
    )

    assert hosted.id == "cs_test_1"
    assert hosted.url == "https://checkout.stripe.com/c/pay/cs_test_1"
    assert calls[0]["mode"] == "payment"
    assert calls[0]["success_url"] == "https://shop/s"
    assert stripe.api_key == "sk_test_123"


@pytest.mark.asyncio
async def test_stripe_errors_become_gateway_failures(stripe_gateway, monkeypatch):
    def create(**kwargs):
        raise stripe.StripeError("Your card was declined")

    monkeypatch.setattr(stripe.checkout.Session, "create", create)
    with pytest.raises(GatewayFailure, match="declined"):
        await stripe_gateway.create_checkout_session(line_items=[], success_url="s", cancel_url="c")


def test_stripe_webhook_needs_a_valid_signature(stripe_gateway):
    with pytest.raises(GatewayEventError):
        stripe_gateway.parse_event(b"{}", None)
    with pytest.raises(GatewayEventError):
        stripe_gateway.parse_event(b'{"type": "x"}', "t=1,v1=deadbeef")


def test_stripe_webhook_accepts_a_valid_signature(stripe_gateway):
    payload = event_payload("payment_intent.succeeded", "pi_1")
    event = stripe_gateway.parse_event(payload, stripe_signature(payload))
    assert (event.type, event.object_id) == ("payment_intent.succeeded", "pi_1")


def test_demo_gateway_trusts_no_events():
    gw = DemoGateway()
    with pytest.raises(GatewayEventError):
        gw.parse_event(b'{"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1"}}}', None)
    with pytest.raises(GatewayEventError):
        gw.parse_event(b'{"type": "x"}', "t=1,v1=deadbeef")
