# storefront/gateway.py
"""Hosted payment gateways.

The storefront never handles card data: it asks a gateway for a hosted
checkout session and sends the browser there. ``StripeGateway`` talks to
Stripe; ``DemoGateway`` keeps sessions in memory and serves its own hosted
page so the whole flow works locally without credentials.
"""
import logging
import uuid
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional

import stripe
from starlette.concurrency import run_in_threadpool

from .config import CURRENCY, STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET

logger = logging.getLogger(__name__)


class GatewayFailure(Exception):
    """The gateway refused or failed to create a session/intent."""


class GatewayEventError(Exception):
    """A webhook payload could not be verified or decoded."""


@dataclass
class HostedSession:
    id: str
    url: str


@dataclass
class GatewayEvent:
    type: str
    object_id: Optional[str] = None


def to_minor_units(amount: Decimal) -> int:
    # Gateways expect amounts in cents
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_line_items(lines: List[dict], currency: str = CURRENCY) -> List[dict]:
    """Convert priced cart lines ({name, image_url, price, quantity}) to gateway line_items."""
    line_items = []
    for line in lines:
        product_data = {"name": line["name"]}
        if line.get("image_url"):
            product_data["images"] = [line["image_url"]]
        line_items.append(
            {
                "price_data": {
                    "currency": currency,
                    "product_data": product_data,
                    "unit_amount": to_minor_units(line["price"]),
                },
                "quantity": line["quantity"],
            }
        )
    return line_items


class StripeGateway:
    name = "stripe"

    def __init__(self, secret_key: str, webhook_secret: str = ""):
        stripe.api_key = secret_key
        self.webhook_secret = webhook_secret

    async def create_checkout_session(self, line_items, success_url, cancel_url, origin=None, metadata=None) -> HostedSession:
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.create,
                payment_method_types=["card"],
                line_items=line_items,
                mode="payment",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata or {},
            )
        except stripe.StripeError as exc:
            raise GatewayFailure(str(exc)) from exc
        return HostedSession(id=session.id, url=session.url)

    async def create_payment_intent(self, amount: int, currency: str = CURRENCY) -> str:
        try:
            intent = await run_in_threadpool(
                stripe.PaymentIntent.create,
                amount=amount,
                currency=currency,
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as exc:
            raise GatewayFailure(str(exc)) from exc
        return intent.client_secret

    def parse_event(self, payload: bytes, signature: Optional[str]) -> GatewayEvent:
        if not signature or not self.webhook_secret:
            raise GatewayEventError("Webhook signature or endpoint secret is missing")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            raise GatewayEventError(str(exc)) from exc
        obj = event["data"]["object"]
        return GatewayEvent(type=event["type"], object_id=obj.get("id"))


@dataclass
class DemoSession:
    id: str
    line_items: List[dict]
    success_url: str
    cancel_url: str
    status: str = "open"
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def amount_total(self) -> int:
        return sum(li["price_data"]["unit_amount"] * li["quantity"] for li in self.line_items)


class DemoGateway:
    """In-memory stand-in for a hosted checkout, for local development and tests."""

    name = "demo"

    def __init__(self):
        self.sessions: Dict[str, DemoSession] = {}

    async def create_checkout_session(self, line_items, success_url, cancel_url, origin=None, metadata=None) -> HostedSession:
        session_id = f"cs_demo_{uuid.uuid4().hex}"
        self.sessions[session_id] = DemoSession(
            id=session_id,
            line_items=line_items,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=dict(metadata or {}),
        )
        base = (origin or "").rstrip("/")
        return HostedSession(id=session_id, url=f"{base}/payments/demo/{session_id}")

    async def create_payment_intent(self, amount: int, currency: str = CURRENCY) -> str:
        return f"pi_demo_{uuid.uuid4().hex}_secret_{amount}{currency}"

    def parse_event(self, payload: bytes, signature: Optional[str]) -> GatewayEvent:
        # Nothing could be verified, so no event is trusted; sessions complete
        # through the hosted page's pay action instead.
        raise GatewayEventError("The demo gateway does not accept webhooks")

    def get_session(self, session_id: str) -> Optional[DemoSession]:
        return self.sessions.get(session_id)


def create_gateway():
    if STRIPE_SECRET_KEY:
        logger.info("Payments: using Stripe hosted checkout")
        return StripeGateway(STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET)
    logger.warning("Payments: STRIPE_SECRET_KEY not set, using the in-memory demo gateway")
    return DemoGateway()


_gateway = None


def get_gateway():
    global _gateway
    if _gateway is None:
        _gateway = create_gateway()
    return _gateway
