# storefront/cart.py
"""Cart JSON API.

The cart belongs to the browser: it travels in the signed ``cart`` cookie and
is loaded into a CartStore for the duration of one request. Nothing here
touches the database except catalog lookups.
"""
import logging
from typing import Dict, Iterator, Mapping, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from itsdangerous import BadData, URLSafeSerializer
from sqlalchemy.ext.asyncio import AsyncSession

from .config import CART_COOKIE_MAX_AGE, SECRET_KEY
from .cart_store import CartConfigurationError, CartStore, CorruptStorageError
from .database import get_session
from .schemas import CartAddRequest, CartQuantityUpdate, CartSummary
from .shop import get_product_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cart", tags=["cart"])

cart_serializer = URLSafeSerializer(SECRET_KEY, salt="cart")


class CookieStorage:
    """CartStorage backed by request cookies; writes are flushed onto the response."""

    def __init__(self, cookies: Mapping[str, str], serializer: URLSafeSerializer = cart_serializer):
        self._cookies = cookies
        self._serializer = serializer
        self.pending: Dict[str, str] = {}

    def read(self, key: str) -> Optional[str]:
        if key in self.pending:
            return self.pending[key]
        raw = self._cookies.get(key)
        if raw is None:
            return None
        try:
            value = self._serializer.loads(raw)
        except BadData as exc:
            raise CorruptStorageError(f"bad cart cookie: {exc}") from exc
        if not isinstance(value, str):
            raise CorruptStorageError("bad cart cookie: unexpected payload")
        return value

    def write(self, key: str, value: str) -> None:
        self.pending[key] = value

    def apply(self, response) -> None:
        for key, value in self.pending.items():
            response.set_cookie(
                key,
                self._serializer.dumps(value),
                max_age=CART_COOKIE_MAX_AGE,
                path="/",
                httponly=True,
                samesite="lax",
            )


async def cart_cookie_middleware(request: Request, call_next):
    storage = CookieStorage(request.cookies)
    request.state.cart_storage = storage
    response = await call_next(request)
    storage.apply(response)
    return response


def get_cart_store(request: Request) -> Iterator[CartStore]:
    storage = getattr(request.state, "cart_storage", None)
    if storage is None:
        raise CartConfigurationError("cart_cookie_middleware is not installed on this app")
    store = CartStore(storage).load()
    try:
        yield store
    finally:
        store.dispose()


def cart_summary(cart: CartStore) -> CartSummary:
    return CartSummary(items=cart.items, count=cart.item_count, total=cart.total)


@router.get("", response_model=CartSummary)
async def get_cart(cart: CartStore = Depends(get_cart_store)):
    return cart_summary(cart)


@router.post("/add", response_model=CartSummary, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    payload: CartAddRequest,
    cart: CartStore = Depends(get_cart_store),
    session: AsyncSession = Depends(get_session),
):
    product = await get_product_or_404(payload.product_id, session)

    if payload.quantity <= 0:
        raise HTTPException(status_code=400, detail="Quantity must be greater than 0")

    # Stock control
    in_cart = sum(item.quantity for item in cart.items if item.product_id == product.id)
    if in_cart + payload.quantity > product.inventory:
        raise HTTPException(status_code=400, detail=f"Not enough in stock: only {product.inventory} available")

    cart.add_item(product, payload.quantity)
    logger.debug("cart: added product %s x%s", product.id, payload.quantity)
    return cart_summary(cart)


@router.put("/{product_id}", response_model=CartSummary)
async def update_cart_item(
    product_id: int,
    payload: CartQuantityUpdate,
    cart: CartStore = Depends(get_cart_store),
    session: AsyncSession = Depends(get_session),
):
    if payload.quantity > 0 and cart.is_product_in_cart(product_id):
        product = await get_product_or_404(product_id, session)
        if payload.quantity > product.inventory:
            raise HTTPException(status_code=400, detail=f"Not enough in stock: only {product.inventory} available")
    cart.update_quantity(product_id, payload.quantity)
    return cart_summary(cart)


@router.delete("/{product_id}", response_model=CartSummary)
async def remove_cart_item(product_id: int, cart: CartStore = Depends(get_cart_store)):
    cart.remove_item(product_id)
    return cart_summary(cart)


@router.delete("", response_model=CartSummary)
async def clear_cart(cart: CartStore = Depends(get_cart_store)):
    cart.clear_cart()
    return cart_summary(cart)
