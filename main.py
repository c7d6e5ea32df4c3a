import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, EmailStr, Field

from admin import ImageFile
from catalog import ALL_CATEGORIES, filter_by_category
from database import db
from errors import LoginRequired, NotFound, StorefrontError
from storefront import ClientState, Storefront, build_storefront

load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.storefront = build_storefront()
    yield
    app.state.storefront.close()


# FastAPI app
app = FastAPI(title="Ayushyaa Storefront API", version="1.0.0", lifespan=lifespan)
# sessions travel in the Authorization header, never in cookies
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Pydantic models
class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AdminLoginRequest(BaseModel):
    username: str
    password: str


class CartAddRequest(BaseModel):
    product_id: str
    variant_id: str
    quantity: int = 1


class CartQuantityRequest(BaseModel):
    quantity: int


class CategoryCreate(BaseModel):
    name: str
    slug: str
    description: str = ""


# Dependencies
def get_storefront(request: Request) -> Storefront:
    return request.app.state.storefront


def get_client(token: Optional[str] = Depends(oauth2_scheme), sf: Storefront = Depends(get_storefront)) -> ClientState:
    return sf.client(token)


def get_optional_client(
    token: Optional[str] = Depends(oauth2_scheme), sf: Storefront = Depends(get_storefront)
) -> Optional[ClientState]:
    try:
        return sf.client(token)
    except LoginRequired:
        return None


def require_admin(client: ClientState):
    if not client.session.is_admin:
        raise HTTPException(status_code=403, detail="Admin only")


def get_admin(client: ClientState = Depends(get_client)) -> ClientState:
    require_admin(client)
    return client


def product_fields(
    name: Optional[str] = Form(None),
    slug: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category_id: Optional[str] = Form(None),
    base_price: Optional[str] = Form(None),
    image_url: Optional[str] = Form(None),
    is_active: Optional[bool] = Form(None),
) -> dict:
    return {
        "name": name,
        "slug": slug,
        "description": description,
        "category_id": category_id,
        "base_price": base_price,
        "image_url": image_url,
        "is_active": is_active,
    }


def variant_fields(
    weight: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    stock: Optional[str] = Form("100"),
) -> dict:
    return {"weight": weight, "price": price, "stock": stock}


def read_image(upload: Optional[UploadFile]) -> Optional[ImageFile]:
    # browsers send an empty part when no file was picked
    if upload is None or not upload.filename:
        return None
    data = upload.file.read()
    if not data:
        return None
    return ImageFile(filename=upload.filename, content_type=upload.content_type or "", data=data)


def cart_payload(client: ClientState) -> dict:
    return {
        "items": [i.model_dump() for i in client.cart.items],
        "count": client.cart.count(),
        "total": client.cart.total(),
    }


def auth_payload(client: ClientState, user) -> dict:
    return {"access_token": client.token, "token_type": "bearer", "user": user.model_dump()}


# Health + test
@app.get("/")
def root():
    return {"message": "Storefront API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "collections": []
    }
    try:
        if db is not None:
            collections = db.list_collection_names()
            response["collections"] = collections[:10]
    except Exception as e:
        response["error"] = str(e)[:120]
    return response


# Catalog
@app.get("/api/categories")
def get_categories(sf: Storefront = Depends(get_storefront)):
    return {"categories": [c.model_dump() for c in sf.catalog.load_categories()]}


@app.get("/api/products")
def list_products(category: str = ALL_CATEGORIES, sf: Storefront = Depends(get_storefront)):
    view = sf.catalog.load_catalog()
    result = filter_by_category(view.products, category)
    return {
        "items": [p.model_dump() for p in result.products],
        "counts": result.counts,
        "total": result.total,
        "error": view.error,
    }


@app.get("/api/products/{product_id}")
def get_product(product_id: str, sf: Storefront = Depends(get_storefront)):
    product = sf.catalog.load_product(product_id)
    if not product.is_active:
        raise NotFound("Product not found")
    return product.model_dump()


# Sessions and auth
@app.post("/api/session")
def open_session(sf: Storefront = Depends(get_storefront)):
    """Start an anonymous session; its token carries the cart until login."""
    client = sf.open_client()
    return {"access_token": client.token, "token_type": "bearer"}


@app.post("/api/auth/signup")
def signup(
    payload: SignupRequest,
    client: Optional[ClientState] = Depends(get_optional_client),
    sf: Storefront = Depends(get_storefront),
):
    client = client or sf.open_client()
    return auth_payload(client, client.session.signup(payload.email, payload.password, payload.name))


@app.post("/api/auth/login")
def login(
    payload: LoginRequest,
    client: Optional[ClientState] = Depends(get_optional_client),
    sf: Storefront = Depends(get_storefront),
):
    client = client or sf.open_client()
    return auth_payload(client, client.session.login(payload.email, payload.password))


@app.post("/api/auth/admin/login")
def admin_login(
    payload: AdminLoginRequest,
    client: Optional[ClientState] = Depends(get_optional_client),
    sf: Storefront = Depends(get_storefront),
):
    client = client or sf.open_client()
    return auth_payload(client, client.session.admin_login(payload.username, payload.password))


@app.post("/api/auth/logout")
def logout(client: ClientState = Depends(get_client)):
    client.session.logout()
    return {"success": True}


@app.get("/api/auth/me")
def me(client: Optional[ClientState] = Depends(get_optional_client)):
    user = client.session.user if client else None
    return {"authenticated": user is not None, "user": user.model_dump() if user else None}


# Cart
@app.get("/api/cart")
def get_cart(client: ClientState = Depends(get_client)):
    return cart_payload(client)


@app.post("/api/cart/items")
def add_to_cart(
    payload: CartAddRequest,
    client: ClientState = Depends(get_client),
    sf: Storefront = Depends(get_storefront),
):
    product = sf.catalog.load_product(payload.product_id)
    if not product.is_active:
        raise NotFound("Product not found")
    variant = next((v for v in product.variants if v.id == payload.variant_id), None)
    if variant is None:
        raise NotFound("Variant not found")
    client.cart.add(product, variant, payload.quantity)
    return cart_payload(client)


@app.put("/api/cart/items/{product_id}/{variant_id}")
def update_cart_item(product_id: str, variant_id: str, payload: CartQuantityRequest, client: ClientState = Depends(get_client)):
    client.cart.update_quantity(product_id, variant_id, payload.quantity)
    return cart_payload(client)


@app.delete("/api/cart/items/{product_id}/{variant_id}")
def remove_cart_item(product_id: str, variant_id: str, client: ClientState = Depends(get_client)):
    client.cart.remove(product_id, variant_id)
    return cart_payload(client)


@app.delete("/api/cart")
def clear_cart(client: ClientState = Depends(get_client)):
    client.cart.clear()
    return cart_payload(client)


@app.post("/api/cart/checkout")
def checkout(client: ClientState = Depends(get_client)):
    user = client.session.user
    if user is None:
        raise LoginRequired()
    items, total = client.cart.take_checkout()
    if not items:
        raise HTTPException(status_code=400, detail="Your cart is empty")
    return {
        "customer_name": user.name,
        "customer_email": user.email,
        "items": [i.model_dump() for i in items],
        "total_amount": total,
    }


# Admin
@app.get("/api/admin/products")
def admin_products(admin: ClientState = Depends(get_admin), sf: Storefront = Depends(get_storefront)):
    view = sf.catalog.load_catalog(active_only=False)
    return {"items": [p.model_dump() for p in view.products], "error": view.error}


@app.post("/api/admin/products")
def admin_create_product(
    fields: dict = Depends(product_fields),
    variant: dict = Depends(variant_fields),
    image: Optional[UploadFile] = File(None),
    admin: ClientState = Depends(get_admin),
    sf: Storefront = Depends(get_storefront),
):
    product_id = sf.admin.create_product(fields, variant, read_image(image))
    return {"id": product_id}


@app.put("/api/admin/products/{product_id}")
def admin_update_product(
    product_id: str,
    fields: dict = Depends(product_fields),
    variant: dict = Depends(variant_fields),
    image: Optional[UploadFile] = File(None),
    admin: ClientState = Depends(get_admin),
    sf: Storefront = Depends(get_storefront),
):
    sf.admin.update_product(product_id, fields, variant, read_image(image))
    return {"success": True}


@app.delete("/api/admin/products/{product_id}")
def admin_delete_product(product_id: str, admin: ClientState = Depends(get_admin), sf: Storefront = Depends(get_storefront)):
    sf.admin.delete_product(product_id)
    return {"success": True}


@app.post("/api/admin/products/{product_id}/toggle")
def admin_toggle_product(product_id: str, admin: ClientState = Depends(get_admin), sf: Storefront = Depends(get_storefront)):
    return {"is_active": sf.admin.toggle_active(product_id)}


@app.post("/api/admin/categories")
def admin_create_category(payload: CategoryCreate, admin: ClientState = Depends(get_admin), sf: Storefront = Depends(get_storefront)):
    return {"id": sf.admin.create_category(payload.model_dump())}


# Images
@app.post("/api/images/upload")
def upload_image(file: UploadFile = File(...), admin: ClientState = Depends(get_admin), sf: Storefront = Depends(get_storefront)):
    image = read_image(file)
    if image is None:
        raise HTTPException(status_code=400, detail="Please select a valid image file")
    return {"url": sf.admin.upload_image(image)}


@app.get("/api/images/{blob_id}")
def get_image(blob_id: str, sf: Storefront = Depends(get_storefront)):
    data, content_type = sf.gateway.open_blob(blob_id)
    return Response(content=data, media_type=content_type)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
