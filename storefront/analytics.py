# storefront/analytics.py
"""Admin panel data: dashboard numbers and CSV exports."""
import csv
import io
from collections import OrderedDict
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import require_admin
from .database import Base, get_session
from .models import Order, Product, User
from .schemas import OrderOut, ProductOut

router = APIRouter(prefix="/api/analytics", tags=["analytics"])
export_router = APIRouter(prefix="/api/admin", tags=["admin"])

EXPORTABLE_TABLES = ("users", "products", "orders", "order_items")


@router.get("/recent-orders", response_model=List[OrderOut])
async def recent_orders(
    limit: int = 10,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_admin),
):
    res = await session.execute(
        select(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(max(limit, 1))
    )
    return res.scalars().all()


@router.get("/low-stock", response_model=List[ProductOut])
async def low_stock(
    threshold: int = 10,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_admin),
):
    res = await session.execute(
        select(Product).where(Product.inventory <= threshold).order_by(Product.inventory, Product.id)
    )
    return res.scalars().all()


@router.get("/revenue")
async def revenue(
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_admin),
):
    res = await session.execute(
        select(Order).where(Order.payment_status == "paid").order_by(Order.created_at)
    )
    daily = OrderedDict()
    weekly = OrderedDict()
    monthly = OrderedDict()
    for order in res.scalars().all():
        if order.created_at is None:
            continue
        amount = Decimal(order.total)
        day = order.created_at.strftime("%Y-%m-%d")
        week = order.created_at.strftime("%G-W%V")  # ISO week, e.g. 2026-W42
        month = order.created_at.strftime("%Y-%m")
        daily[day] = daily.get(day, Decimal("0")) + amount
        weekly[week] = weekly.get(week, Decimal("0")) + amount
        monthly[month] = monthly.get(month, Decimal("0")) + amount
    return {
        "daily": [{"date": d, "revenue": str(v)} for d, v in daily.items()],
        "weekly": [{"week": w, "revenue": str(v)} for w, v in weekly.items()],
        "monthly": [{"month": m, "revenue": str(v)} for m, v in monthly.items()],
    }


@router.get("/categories")
async def category_distribution(
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_admin),
):
    res = await session.execute(
        select(Product.category, func.count(Product.id)).group_by(Product.category).order_by(Product.category)
    )
    return [{"category": category, "count": count} for category, count in res.all()]


def rows_to_csv(columns: List[str], rows) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(columns)
    for row in rows:
        writer.writerow(["" if value is None else value for value in row])
    return buf.getvalue()


@export_router.get("/export/{table}")
async def export_table(
    table: str,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_admin),
):
    if table not in EXPORTABLE_TABLES:
        raise HTTPException(status_code=400, detail=f"Invalid table name: {table}")
    tbl = Base.metadata.tables[table]
    columns = [c.name for c in tbl.columns]
    if table == "users":
        # never export password hashes
        columns.remove("password_hash")
    res = await session.execute(select(*[tbl.c[name] for name in columns]))
    body = rows_to_csv(columns, res.all())
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{table}.csv"'},
    )
