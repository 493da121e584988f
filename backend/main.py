"""
Uhsin Store — Backend API
FastAPI server the browser storefront talks to: catalogue, cart, checkout,
order history, profile and the admin console. State lives in the Store,
is cached on disk and synchronised with the remote store API on a best‑effort basis.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from api_client import StoreApiClient
from cache import StateCache
from catalog import SortOption, filter_products, related_products
from config import LOG_LEVEL, SYNC_INTERVAL_SECONDS
from description_client import generate_description, list_models
from errors import AuthRequired, DraftIncomplete, StoreError
from helpers import random_id, utcnow
from models import (
    Address, BankDetails, Category, OrderStatus, ProductDraft, Record, Role, User,
)
from store import Store
from sync import BackgroundSync
from validators import (
    validate_email, validate_payment_method, validate_review, validate_shipping_address,
)

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class LoginRequest(BaseModel):
    email: str
    name: Optional[str] = None
    token: Optional[str] = None

class ProfileUpdate(Record):
    name: Optional[str] = None
    address: Optional[Address] = None
    bank_details: Optional[BankDetails] = None
    avatar: Optional[str] = None

class RateRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)

class ReviewRequest(Record):
    user_name: str
    rating: int
    comment: str

class CheckoutRequest(Record):
    payment_method: str
    shipping_address: Address

class StatusUpdate(BaseModel):
    status: OrderStatus

class DescribeRequest(BaseModel):
    name: str
    category: Category


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_store(request: Request) -> Store:
    return request.app.state.store


def require_admin(store: Store = Depends(get_store)) -> Store:
    if store.user is None:
        raise AuthRequired()
    if not store.user.is_admin():
        raise HTTPException(403, "Unauthorized")
    return store


def _signed_in(store: Store) -> User:
    if store.user is None:
        raise AuthRequired()
    return store.user


# ---------------------------------------------------------------------------
# Endpoints — Session & profile
# ---------------------------------------------------------------------------

@router.get("/session")
async def session(store: Store = Depends(get_store)):
    return {"user": store.user, "cart_count": store.cart_count}


@router.post("/session/login")
async def login(req: LoginRequest, store: Store = Depends(get_store)):
    """Mock sign‑in: any e‑mail works, addresses containing 'admin' get the admin role."""
    email = req.email.strip().lower()
    if not validate_email(email):
        raise HTTPException(400, "Invalid email address")
    user = User(
        id=random_id(),
        email=email,
        name=req.name or email.split("@")[0],
        role=Role.ADMIN if "admin" in email else Role.USER,
        joined_at=utcnow(),
    )
    return {"user": store.sign_in(user, token=req.token)}


@router.post("/session/logout")
async def logout(store: Store = Depends(get_store)):
    store.sign_out()
    return {"status": "signed_out", "redirect": "home"}


@router.put("/profile")
async def update_profile(req: ProfileUpdate, store: Store = Depends(get_store)):
    user = store.update_profile(
        name=req.name, address=req.address,
        bank_details=req.bank_details, avatar=req.avatar,
    )
    return {"user": user}


# ---------------------------------------------------------------------------
# Endpoints — Catalogue
# ---------------------------------------------------------------------------

@router.get("/products")
async def list_products(category: Optional[Category] = None, q: str = "",
                        min_price: Optional[float] = None, max_price: Optional[float] = None,
                        in_stock: bool = False, sort: SortOption = SortOption.FEATURED,
                        store: Store = Depends(get_store)):
    items = filter_products(store.products, category, q, min_price, max_price, in_stock, sort)
    return {"products": items, "total": len(items)}


@router.get("/products/{product_id}")
async def product_detail(product_id: str, store: Store = Depends(get_store)):
    product = store.get_product(product_id)
    return {
        "product": product,
        "related": related_products(store.products, product),
        "wishlisted": bool(store.user and product.id in store.user.wishlist),
    }


@router.post("/products/{product_id}/rate")
async def rate_product(product_id: str, req: RateRequest, store: Store = Depends(get_store)):
    product = store.rate_product(product_id, req.rating)
    return {"rating": product.rating, "rating_count": product.rating_count}


@router.post("/products/{product_id}/reviews")
async def add_review(product_id: str, req: ReviewRequest, store: Store = Depends(get_store)):
    ok, msg = validate_review(req.user_name, req.rating, req.comment)
    if not ok:
        raise HTTPException(400, msg)
    review = store.add_review(product_id, req.user_name.strip(), req.rating, req.comment.strip())
    return {"review": review, "product": store.get_product(product_id)}


# ---------------------------------------------------------------------------
# Endpoints — Cart, wishlist, checkout
# ---------------------------------------------------------------------------

@router.get("/cart")
async def get_cart(coupon: Optional[str] = None, store: Store = Depends(get_store)):
    return store.cart_summary(coupon)


@router.post("/cart/{product_id}")
async def add_to_cart(product_id: str, store: Store = Depends(get_store)):
    store.get_product(product_id)
    line = store.add_to_cart(product_id)
    return {"line": line, "cart_count": store.cart_count}


@router.delete("/cart")
async def clear_cart(store: Store = Depends(get_store)):
    store.clear_cart()
    return {"cart_count": 0}


@router.delete("/cart/{product_id}")
async def remove_from_cart(product_id: str, store: Store = Depends(get_store)):
    store.remove_from_cart(product_id)
    return {"cart_count": store.cart_count}


@router.post("/wishlist/{product_id}")
async def toggle_wishlist(product_id: str, store: Store = Depends(get_store)):
    added = store.toggle_wishlist(product_id)
    return {"wishlisted": added, "wishlist": store.user.wishlist}


@router.post("/checkout")
async def checkout(req: CheckoutRequest, store: Store = Depends(get_store)):
    _signed_in(store)
    if not store.cart:
        raise HTTPException(400, "Your cart is empty")
    for ok, msg in (validate_payment_method(req.payment_method),
                    validate_shipping_address(req.shipping_address)):
        if not ok:
            raise HTTPException(400, msg)
    order = await store.checkout(req.payment_method, req.shipping_address)
    return {"order": order, "notice": store.pop_notice(), "redirect": "orders"}


# ---------------------------------------------------------------------------
# Endpoints — Orders
# ---------------------------------------------------------------------------

@router.get("/orders")
async def my_orders(status: Optional[OrderStatus] = None, start: Optional[date] = None,
                    end: Optional[date] = None, store: Store = Depends(get_store)):
    user = _signed_in(store)
    return {"orders": store.orders_for(user.id, status, start, end)}


@router.post("/orders/{order_id}/cancel")
async def cancel_order(order_id: str, store: Store = Depends(get_store)):
    return {"order": store.cancel_order(order_id)}


@router.post("/sync")
async def sync_now(store: Store = Depends(get_store)):
    ok = await store.pull_remote()
    return {"synced": ok, "products": len(store.products), "orders": len(store.orders)}


# ---------------------------------------------------------------------------
# Endpoints — Admin console
# ---------------------------------------------------------------------------

@router.get("/admin/stats")
async def admin_stats(store: Store = Depends(require_admin)):
    return store.dashboard_stats()


@router.put("/admin/products")
async def save_product(draft: ProductDraft, store: Store = Depends(require_admin)):
    return {"product": store.save_product(draft)}


@router.delete("/admin/products/{product_id}")
async def delete_product(product_id: str, store: Store = Depends(require_admin)):
    product = store.delete_product(product_id)
    return {"status": "deleted", "id": product.id}


@router.get("/admin/orders")
async def admin_orders(status: Optional[OrderStatus] = None, store: Store = Depends(require_admin)):
    orders = [o for o in store.orders if status is None or o.status == status]
    return {"orders": orders}


@router.put("/admin/orders/{order_id}/status")
async def set_order_status(order_id: str, req: StatusUpdate, store: Store = Depends(require_admin)):
    return {"order": store.set_order_status(order_id, req.status)}


@router.get("/admin/users")
async def admin_users(store: Store = Depends(require_admin)):
    return {"users": store.users}


@router.put("/admin/users/{user_id}")
async def admin_update_user(user_id: str, user: User, store: Store = Depends(require_admin)):
    if user.id != user_id:
        raise HTTPException(400, "User id does not match the path")
    return {"user": store.update_roster_user(user)}


@router.post("/admin/users/{user_id}/role")
async def admin_toggle_role(user_id: str, store: Store = Depends(require_admin)):
    return {"user": store.toggle_user_role(user_id)}


@router.get("/admin/logs")
async def admin_logs(store: Store = Depends(require_admin)):
    return {"logs": store.admin_logs}


@router.post("/admin/describe")
async def describe_product(req: DescribeRequest, store: Store = Depends(require_admin)):
    return {"description": await generate_description(req.name, req.category.value)}


# ---------------------------------------------------------------------------
# Utilities
# ---------------------------------------------------------------------------

@router.get("/models")
async def get_models():
    models = await list_models()
    return {"models": models}


@router.get("/health")
async def health(store: Store = Depends(get_store)):
    return {
        "status": "ok",
        "initialized": store.initialized,
        "signed_in": store.user is not None,
        "products": len(store.products),
    }


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

def _status_for(exc: StoreError) -> int:
    if isinstance(exc, AuthRequired):
        return 401
    if isinstance(exc, LookupError):
        return 404
    return 400


async def _store_error_handler(request: Request, exc: StoreError):
    content = {"detail": str(exc)}
    if isinstance(exc, AuthRequired):
        content["redirect"] = "auth"
    if isinstance(exc, DraftIncomplete):
        content["missing"] = exc.missing
    return JSONResponse(status_code=_status_for(exc), content=content)


def _default_store() -> Store:
    cache = StateCache()
    client = StoreApiClient(cache)
    client.on_unauthorized(lambda: logger.warning("Store API rejected our token; it has been cleared"))
    return Store(cache, client)


def create_app(store: Optional[Store] = None,
               sync_interval: float = SYNC_INTERVAL_SECONDS) -> FastAPI:
    store = store or _default_store()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.load()
        # The first remote pull runs in the background.
        sync = BackgroundSync(store, sync_interval)
        sync.start()
        yield
        await sync.stop()
        await store.close()

    app = FastAPI(title="Uhsin Store API", version="0.1.0", lifespan=lifespan)
    app.state.store = store
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StoreError, _store_error_handler)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
