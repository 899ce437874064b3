# storefront/shop.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import require_admin
from .database import get_session
from .models import Product, User
from .schemas import ProductCreate, ProductOut, ProductUpdate

router = APIRouter(prefix="/api/products", tags=["products"])


async def get_product_or_404(product_id: int, session: AsyncSession) -> Product:
    result = await session.execute(select(Product).where(Product.id == product_id))
    product = result.scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get("", response_model=List[ProductOut])
async def list_products(session: AsyncSession = Depends(get_session)):
    result = await session.execute(select(Product).order_by(Product.id))
    return result.scalars().all()


@router.get("/featured", response_model=List[ProductOut])
async def featured_products(session: AsyncSession = Depends(get_session)):
    result = await session.execute(select(Product).where(Product.featured.is_(True)).order_by(Product.id))
    return result.scalars().all()


@router.get("/category/{category}", response_model=List[ProductOut])
async def products_by_category(category: str, session: AsyncSession = Depends(get_session)):
    result = await session.execute(
        select(Product).where(Product.category.ilike(category)).order_by(Product.name)
    )
    return result.scalars().all()


@router.get("/search", response_model=List[ProductOut])
async def search_products(q: Optional[str] = None, session: AsyncSession = Depends(get_session)):
    if not q:
        raise HTTPException(status_code=400, detail="Search query is required")
    pattern = f"%{q}%"
    result = await session.execute(
        select(Product)
        .where(or_(Product.name.ilike(pattern), Product.description.ilike(pattern), Product.category.ilike(pattern)))
        .order_by(Product.id)
    )
    return result.scalars().all()


@router.get("/{product_id}", response_model=ProductOut)
async def get_product(product_id: int, session: AsyncSession = Depends(get_session)):
    return await get_product_or_404(product_id, session)


# 🔒 Inventory management, admin only
@router.post("", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_admin),
):
    product = Product(**payload.model_dump())
    session.add(product)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=400, detail="A product with this SKU already exists")
    await session.refresh(product)
    return product


@router.put("/{product_id}", response_model=ProductOut)
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_admin),
):
    product = await get_product_or_404(product_id, session)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(product, field, value)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=400, detail="A product with this SKU already exists")
    await session.refresh(product)
    return product


@router.delete("/{product_id}", status_code=204)
async def delete_product(
    product_id: int,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_admin),
):
    product = await get_product_or_404(product_id, session)
    await session.delete(product)
    await session.commit()
    return
