# storefront/payments.py
import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import get_optional_user
from .config import CURRENCY
from .database import get_session
from .gateway import DemoGateway, GatewayEventError, GatewayFailure, build_line_items, get_gateway, to_minor_units
from .models import Order, OrderItem, Product, User
from .orders import fulfill_checkout_session
from .pages import templates
from .schemas import CheckoutSessionRequest, PaymentIntentRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])
demo_router = APIRouter(prefix="/payments/demo", tags=["payments"])


def error_response(message: str, status_code: int = 400) -> JSONResponse:
    # Payment endpoints answer {"error": ...}; the checkout initiator reads that key
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/create-checkout-session")
async def create_checkout_session(
    payload: CheckoutSessionRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
    gateway=Depends(get_gateway),
    user: Optional[User] = Depends(get_optional_user),
):
    if not payload.cart_items:
        return error_response("Cart items are required")
    if not payload.success_url or not payload.cancel_url:
        return error_response("Success and cancel URLs are required")

    # Price every line from the catalog, never from the client's snapshot
    ids = {item.product_id for item in payload.cart_items}
    res = await session.execute(select(Product).where(Product.id.in_(ids)))
    products = {p.id: p for p in res.scalars().all()}

    lines = []
    total = Decimal("0")
    for item in payload.cart_items:
        product = products.get(item.product_id)
        if product is None:
            return error_response(f"Product {item.product_id} not found")
        if item.quantity < 1:
            return error_response(f"Invalid quantity for {product.name}")
        if item.quantity > product.inventory:
            return error_response(f"Not enough stock for {product.name}")
        lines.append({
            "product_id": product.id,
            "name": product.name,
            "image_url": product.image_url,
            "price": Decimal(product.price),
            "quantity": item.quantity,
        })
        total += Decimal(product.price) * item.quantity

    try:
        hosted = await gateway.create_checkout_session(
            line_items=build_line_items(lines),
            success_url=payload.success_url,
            cancel_url=payload.cancel_url,
            origin=str(request.base_url).rstrip("/"),
        )
    except GatewayFailure:
        logger.exception("Error creating checkout session")
        return error_response("Failed to create checkout session", status_code=500)

    order = Order(
        user_id=user.id if user is not None else None,
        status="pending",
        payment_status="pending",
        payment_method="card",
        total=total,
        checkout_session_id=hosted.id,
        items=[OrderItem(product_id=ln["product_id"], quantity=ln["quantity"], price=ln["price"]) for ln in lines],
    )
    session.add(order)
    await session.commit()
    logger.info("Checkout session %s created for order %s (%s %s)", hosted.id, order.id, total, CURRENCY)

    return {"sessionId": hosted.id, "url": hosted.url}


@router.post("/create-payment-intent")
async def create_payment_intent(payload: PaymentIntentRequest, gateway=Depends(get_gateway)):
    if not payload.amount:
        return error_response("Amount is required")
    try:
        client_secret = await gateway.create_payment_intent(to_minor_units(payload.amount), CURRENCY)
    except GatewayFailure:
        logger.exception("Error creating payment intent")
        return error_response("Failed to create payment intent", status_code=500)
    return {"clientSecret": client_secret}


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    session: AsyncSession = Depends(get_session),
    gateway=Depends(get_gateway),
):
    body = await request.body()
    try:
        event = gateway.parse_event(body, request.headers.get("stripe-signature"))
    except GatewayEventError as exc:
        logger.warning("Webhook Error: %s", exc)
        return PlainTextResponse(f"Webhook Error: {exc}", status_code=400)

    if event.type == "checkout.session.completed" and event.object_id:
        await fulfill_checkout_session(session, event.object_id)
    elif event.type == "payment_intent.succeeded":
        logger.info("PaymentIntent was successful: %s", event.object_id)
    else:
        logger.info("Unhandled event type %s", event.type)

    return {"received": True}


# 🧪 Hosted page of the demo gateway

def get_demo_session(session_id: str, gateway=Depends(get_gateway)):
    if not isinstance(gateway, DemoGateway):
        raise HTTPException(status_code=404, detail="Demo gateway is disabled")
    demo = gateway.get_session(session_id)
    if demo is None:
        raise HTTPException(status_code=404, detail="Checkout session not found")
    return demo


@demo_router.get("/{session_id}", response_class=HTMLResponse)
async def demo_checkout_page(request: Request, demo=Depends(get_demo_session)):
    ctx = {
        "request": request,
        "session": demo,
        "amount": Decimal(demo.amount_total) / 100,
        "currency": CURRENCY.upper(),
    }
    return templates.TemplateResponse(request, "demo_checkout.html", ctx)


@demo_router.post("/{session_id}/pay")
async def demo_pay(demo=Depends(get_demo_session), session: AsyncSession = Depends(get_session)):
    if demo.status == "open":
        demo.status = "complete"
        await fulfill_checkout_session(session, demo.id)
    return RedirectResponse(demo.success_url, status_code=303)


@demo_router.post("/{session_id}/cancel")
async def demo_cancel(demo=Depends(get_demo_session)):
    if demo.status == "open":
        demo.status = "expired"
    return RedirectResponse(demo.cancel_url, status_code=303)
