# storefront/orders.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .auth import get_current_user, require_admin
from .database import get_session
from .models import Order, OrderItem, Product, User
from .schemas import OrderCreate, OrderDetail, OrderOut, OrderStatusUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])

ORDER_STATUSES = {"pending", "processing", "shipped", "delivered", "cancelled"}


async def fulfill_checkout_session(session: AsyncSession, checkout_session_id: str) -> Optional[Order]:
    """Mark the order behind a completed checkout session as paid and take the stock.

    Safe to call more than once for the same session: an already-paid order is
    returned untouched.
    """
    res = await session.execute(
        select(Order)
        .options(selectinload(Order.items))
        .where(Order.checkout_session_id == checkout_session_id)
    )
    order = res.scalar_one_or_none()
    if order is None:
        logger.warning("Checkout session %s has no matching order", checkout_session_id)
        return None
    if order.payment_status == "paid":
        return order

    for item in order.items:
        if item.product_id is None:
            continue
        prod_res = await session.execute(select(Product).where(Product.id == item.product_id))
        product = prod_res.scalar_one_or_none()
        if product is not None:
            product.inventory = max(product.inventory - item.quantity, 0)

    order.payment_status = "paid"
    order.status = "processing"
    await session.commit()
    logger.info("Order %s paid (checkout session %s)", order.id, checkout_session_id)
    return order


# 🧾 Order history: admins see every order, customers their own
@router.get("", response_model=List[OrderOut])
async def list_orders(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    query = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
    if not current_user.is_admin:
        query = query.where(Order.user_id == current_user.id)
    res = await session.execute(query)
    return res.scalars().all()


# ➕ Place an order directly (no hosted checkout); stock is taken at once
@router.post("", response_model=OrderDetail, status_code=status.HTTP_201_CREATED)
async def create_order(
    request: Request,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    # parsed here so a bad body is a 400 "Invalid order data", not a 422
    try:
        payload = OrderCreate.model_validate(await request.json())
    except (ValueError, ValidationError):
        raise HTTPException(status_code=400, detail="Invalid order data")

    ids = {item.product_id for item in payload.items}
    res = await session.execute(select(Product).where(Product.id.in_(ids)))
    products = {p.id: p for p in res.scalars().all()}
    missing = sorted(ids - products.keys())
    if missing:
        raise HTTPException(status_code=400, detail=f"Product {missing[0]} not found")

    order = Order(
        user_id=current_user.id,
        status="pending",
        payment_status="pending",
        payment_method=payload.order.payment_method,
        shipping_address=payload.order.shipping_address,
        total=payload.order.total,
        items=[OrderItem(product_id=i.product_id, quantity=i.quantity, price=i.price) for i in payload.items],
    )
    for item in payload.items:
        product = products[item.product_id]
        product.inventory = max(product.inventory - item.quantity, 0)

    session.add(order)
    await session.commit()
    logger.info("Order %s placed by user %s", order.id, current_user.id)

    res = await session.execute(
        select(Order)
        .options(selectinload(Order.items))
        .where(Order.id == order.id)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one()


# 📦 One order with its items
@router.get("/{order_id}", response_model=OrderDetail)
async def order_detail(
    order_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    res = await session.execute(
        select(Order).options(selectinload(Order.items)).where(Order.id == order_id)
    )
    order = res.scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if not current_user.is_admin and order.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return order


@router.put("/{order_id}/status", response_model=OrderOut)
async def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_admin),
):
    if not payload.status:
        raise HTTPException(status_code=400, detail="Status is required")
    if payload.status not in ORDER_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown status: {payload.status}")

    res = await session.execute(select(Order).where(Order.id == order_id))
    order = res.scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    order.status = payload.status
    await session.commit()
    await session.refresh(order)
    return order
