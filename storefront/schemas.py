# storefront/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


# 👤 User
class UserBase(BaseModel):
    username: str
    email: EmailStr
    full_name: Optional[str] = None


class UserCreate(UserBase):
    password: str


class UserOut(UserBase):
    id: int
    is_admin: bool
    class Config:
        from_attributes = True


class UserLogin(BaseModel):
    email: EmailStr
    password: str


# 🛍️ Product
class ProductBase(BaseModel):
    name: str
    description: str = ""
    price: Decimal = Field(ge=0)
    image_url: str = ""
    category: str
    sku: str
    inventory: int = Field(default=0, ge=0)
    featured: bool = False


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    # every field optional: PUT applies a partial update
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    image_url: Optional[str] = None
    category: Optional[str] = None
    sku: Optional[str] = None
    inventory: Optional[int] = Field(default=None, ge=0)
    featured: Optional[bool] = None


class ProductOut(ProductBase):
    id: int
    class Config:
        from_attributes = True


# 🛒 Cart. Wire names are camelCase (productId, imageUrl), python names snake_case.
class CartProduct(BaseModel):
    id: int
    name: str
    price: Decimal
    image_url: str = Field(default="", alias="imageUrl")
    category: str = ""
    sku: str = ""
    class Config:
        from_attributes = True
        populate_by_name = True


class CartItem(BaseModel):
    product_id: int = Field(alias="productId")
    quantity: int
    product: CartProduct
    class Config:
        populate_by_name = True


class CartAddRequest(BaseModel):
    product_id: int
    quantity: int = 1


class CartQuantityUpdate(BaseModel):
    quantity: int


# 📊 Cart summary (single response shape for /api/cart)
class CartSummary(BaseModel):
    items: List[CartItem]
    count: int
    total: Decimal


# 💳 Checkout session request, exactly what the checkout initiator posts
class CheckoutSessionRequest(BaseModel):
    cart_items: Optional[List[CartItem]] = Field(default=None, alias="cartItems")
    success_url: Optional[str] = Field(default=None, alias="successUrl")
    cancel_url: Optional[str] = Field(default=None, alias="cancelUrl")
    class Config:
        populate_by_name = True


class PaymentIntentRequest(BaseModel):
    amount: Optional[Decimal] = None


# 🧾 Orders
class OrderItemOut(BaseModel):
    id: int
    product_id: Optional[int] = None
    quantity: int
    price: Decimal
    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    id: int
    user_id: Optional[int] = None
    status: str
    total: Decimal
    payment_method: str
    payment_status: str
    shipping_address: str
    created_at: Optional[datetime] = None
    class Config:
        from_attributes = True


class OrderDetail(OrderOut):
    items: List[OrderItemOut] = []


# 🧾 Direct order placement: {"order": {...}, "items": [...]}, the user comes from the token
class OrderFields(BaseModel):
    total: Decimal = Field(ge=0)
    payment_method: str = Field(alias="paymentMethod")
    shipping_address: str = Field(alias="shippingAddress")
    class Config:
        populate_by_name = True


class OrderItemCreate(BaseModel):
    product_id: int = Field(alias="productId")
    quantity: int = Field(ge=1)
    price: Decimal = Field(ge=0)
    class Config:
        populate_by_name = True


class OrderCreate(BaseModel):
    order: OrderFields
    items: List[OrderItemCreate] = Field(min_length=1)


class OrderStatusUpdate(BaseModel):
    status: Optional[str] = None
