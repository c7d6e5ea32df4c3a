"""
Database Schemas for the storefront

Each Pydantic model represents a MongoDB collection.
Collection name is the lowercase of the class name; variants live in the
"variant" collection scoped by product_id.
"""
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class Category(BaseModel):
    id: str = ""
    name: str = "Uncategorized"
    slug: str = "uncategorized"
    description: str = ""
    created_at: str = ""


class Product(BaseModel):
    id: str
    category_id: str = ""
    name: str = ""
    slug: str = ""
    description: str = ""
    image_url: str = ""
    base_price: float = 0
    is_active: bool = True
    created_at: str = ""
    updated_at: str = ""


class ProductVariant(BaseModel):
    id: str
    product_id: str = ""
    weight: str = ""
    price: float = 0
    stock: int = 0
    is_active: bool = True


class ProductWithVariants(Product):
    """Product joined with its category and variants. Never stored."""
    category: Category = Field(default_factory=Category)
    variants: List[ProductVariant] = Field(default_factory=list)


class CartItem(BaseModel):
    product: Product
    variant: ProductVariant
    quantity: int = Field(..., ge=1)


class User(BaseModel):
    id: str
    email: str
    name: str
    role: Literal["user", "admin"] = "user"


class OrderItem(BaseModel):
    product_id: str
    variant_id: str
    quantity: int
    unit_price: float
    subtotal: float


class Order(BaseModel):
    order_number: str
    customer_name: str
    customer_phone: str
    customer_email: str
    shipping_address: str
    total_amount: float
    status: str = "pending"
    payment_status: str = "pending"
    items: List[OrderItem] = []


# Admin forms

class CategoryForm(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    description: str = ""


class ProductForm(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    category_id: str = Field(..., min_length=1)
    base_price: float = Field(..., ge=0)
    image_url: Optional[str] = None
    # None on update keeps the stored flag
    is_active: Optional[bool] = None


class VariantForm(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    weight: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    stock: int = Field(100, ge=0)
