# storefront/checkout.py
"""Checkout handoff to the hosted payment page, and what happens on return.

``CheckoutInitiator`` posts the cart snapshot to the checkout-session
endpoint and navigates to the URL it gets back. Failures come in three
kinds, each an exception carrying the message shown to the shopper:

* ``EmptyCartError``: nothing to pay for, no request is made;
* ``GatewayError``: the endpoint answered non-2xx (or could not be reached);
* ``ContractViolation``: a 2xx answer without a ``url``.

``initiate_checkout()`` is the boundary that turns all of them into a
``CheckoutResult`` so a page can render the message and let the shopper retry.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from .cart_store import CartConfigurationError, CartStore

logger = logging.getLogger(__name__)

SUCCESS_PATH = "/checkout/success"
CANCEL_PATH = "/checkout/cancel"
CHECKOUT_SESSION_PATH = "/api/payments/create-checkout-session"


class CheckoutError(Exception):
    kind = "error"
    default_message = "Failed to initiate checkout"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class EmptyCartError(CheckoutError):
    kind = "validation"
    default_message = "Your cart is empty"


class GatewayError(CheckoutError):
    kind = "gateway"
    default_message = "Something went wrong"


class ContractViolation(CheckoutError):
    kind = "contract"
    default_message = "No checkout URL returned"


@dataclass
class CheckoutResult:
    redirect_url: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.redirect_url is not None


class CheckoutInitiator:
    def __init__(
        self,
        cart: CartStore,
        client: httpx.AsyncClient,
        origin: str,
        endpoint: Optional[str] = None,
        navigate: Optional[Callable[[str], None]] = None,
    ):
        if cart is None:
            raise CartConfigurationError("CheckoutInitiator needs a CartStore")
        if client is None:
            raise CartConfigurationError("CheckoutInitiator needs an HTTP client")
        self.cart = cart
        self.client = client
        self.origin = origin.rstrip("/")
        self.endpoint = endpoint or f"{self.origin}{CHECKOUT_SESSION_PATH}"
        self.navigate = navigate
        self.is_loading = False

    @property
    def success_url(self) -> str:
        return f"{self.origin}{SUCCESS_PATH}"

    @property
    def cancel_url(self) -> str:
        return f"{self.origin}{CANCEL_PATH}"

    async def request_session(self) -> str:
        """One round trip to the checkout-session endpoint; returns the hosted page URL."""
        if self.cart.is_empty():
            raise EmptyCartError()

        body = {
            "cartItems": self.cart.snapshot(),
            "successUrl": self.success_url,
            "cancelUrl": self.cancel_url,
        }
        try:
            response = await self.client.post(self.endpoint, json=body)
        except httpx.HTTPError as exc:
            raise GatewayError(str(exc) or None) from exc

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            data = {}

        if not response.is_success:
            message = data.get("error")
            # some gateways nest the message ({"error": {"message": ...}}); only a plain string is shown
            raise GatewayError(message if isinstance(message, str) else None)

        url = data.get("url")
        if not url:
            raise ContractViolation()
        return url

    async def initiate_checkout(self) -> CheckoutResult:
        self.is_loading = True
        try:
            url = await self.request_session()
        except CheckoutError as exc:
            logger.warning("Checkout error (%s): %s", exc.kind, exc.message)
            return CheckoutResult(error=exc.message, error_kind=exc.kind)
        finally:
            # the spinner covers the network round trip only, never the navigation
            self.is_loading = False

        if self.navigate is not None:
            self.navigate(url)
        return CheckoutResult(redirect_url=url)


def reconcile_success(cart: CartStore) -> None:
    # The gateway chose the success URL; the paid status itself comes from the webhook
    cart.clear_cart()


def reconcile_cancel(cart: CartStore) -> None:
    # cart stays exactly as it was before checkout
    return None
