# storefront/pages.py
from pathlib import Path
from typing import AsyncIterator, Optional

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import get_optional_user
from .cart import get_cart_store
from .cart_store import CartStore
from .checkout import CHECKOUT_SESSION_PATH, CheckoutInitiator, reconcile_cancel, reconcile_success
from .config import PAYMENTS_URL, TOKEN_COOKIE
from .database import get_session
from .models import Order, Product, User
from .shop import get_product_or_404

BASE_DIR = Path(__file__).resolve().parent.parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))
router = APIRouter()


def render(request: Request, name: str, status_code: int = 200, **ctx):
    ctx["request"] = request
    return templates.TemplateResponse(request, name, ctx, status_code=status_code)


async def get_checkout_client(request: Request) -> AsyncIterator[httpx.AsyncClient]:
    """Client for the checkout-session round trip. No timeout is configured."""
    headers = {}
    token = request.cookies.get(TOKEN_COOKIE)
    if token:
        # lets the payments endpoint link the order to the shopper
        headers["Authorization"] = f"Bearer {token}"
    async with httpx.AsyncClient(timeout=None, headers=headers) as client:
        yield client


@router.get("/", response_class=HTMLResponse)
async def home_page(request: Request, session: AsyncSession = Depends(get_session)):
    res = await session.execute(select(Product).where(Product.featured.is_(True)).order_by(Product.id))
    return render(request, "index.html", featured=res.scalars().all())


@router.get("/shop", response_class=HTMLResponse)
async def shop_page(request: Request, category: Optional[str] = None, session: AsyncSession = Depends(get_session)):
    query = select(Product).order_by(Product.id)
    if category:
        query = query.where(Product.category.ilike(category))
    res = await session.execute(query)
    return render(request, "shop.html", products=res.scalars().all(), category=category)


@router.get("/product/{product_id}", response_class=HTMLResponse)
async def product_page(
    request: Request,
    product_id: int,
    cart: CartStore = Depends(get_cart_store),
    session: AsyncSession = Depends(get_session),
):
    product = await get_product_or_404(product_id, session)
    return render(request, "product.html", product=product, in_cart=cart.is_product_in_cart(product.id))


@router.get("/cart", response_class=HTMLResponse)
async def cart_page(request: Request, cart: CartStore = Depends(get_cart_store)):
    return render(request, "cart.html", cart=cart)


# 💳 Checkout
@router.get("/checkout", response_class=HTMLResponse)
async def checkout_page(request: Request, cart: CartStore = Depends(get_cart_store)):
    return render(request, "checkout.html", cart=cart, error=None)


@router.post("/checkout")
async def start_checkout(
    request: Request,
    cart: CartStore = Depends(get_cart_store),
    client: httpx.AsyncClient = Depends(get_checkout_client),
):
    endpoint = f"{PAYMENTS_URL.rstrip('/')}{CHECKOUT_SESSION_PATH}" if PAYMENTS_URL else None
    initiator = CheckoutInitiator(cart, client, origin=str(request.base_url), endpoint=endpoint)
    result = await initiator.initiate_checkout()
    if result.ok:
        # hand the browser over to the hosted checkout page
        return RedirectResponse(result.redirect_url, status_code=303)
    return render(request, "checkout.html", status_code=400, cart=cart, error=result.error)


@router.get("/checkout/success", response_class=HTMLResponse)
async def checkout_success_page(request: Request, cart: CartStore = Depends(get_cart_store)):
    reconcile_success(cart)
    return render(request, "checkout_success.html")


@router.get("/checkout/cancel", response_class=HTMLResponse)
async def checkout_cancel_page(request: Request, cart: CartStore = Depends(get_cart_store)):
    reconcile_cancel(cart)
    return render(request, "checkout_cancel.html", cart=cart)


# 🧾 Account
@router.get("/my-orders", response_class=HTMLResponse)
async def my_orders_page(
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    if user is None:
        return RedirectResponse("/login", status_code=303)
    res = await session.execute(
        select(Order).where(Order.user_id == user.id).order_by(Order.created_at.desc(), Order.id.desc())
    )
    return render(request, "my_orders.html", user=user, orders=res.scalars().all())


@router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request):
    return render(request, "login.html")
