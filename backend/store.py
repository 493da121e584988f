"""
Store — in‑memory session state and the operations that mutate it.

Local state is authoritative. Every mutation is applied in memory first,
written to the state cache, and then pushed to the remote API as a
fire‑and‑forget task whose failure is logged and otherwise ignored.
Checkout is the one write that waits for the remote answer, and only to
tell the user when their order could not be sent.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Awaitable, Callable, Optional

from api_client import RemoteError, StoreApiClient
from cache import LOGS_KEY, ORDERS_KEY, PRODUCTS_KEY, USER_KEY, USERS_KEY, StateCache
from catalog import lookup_coupon, seed_products
from config import ADMIN_LOG_LIMIT, LOW_STOCK_THRESHOLD
from errors import (
    AuthRequired, InvalidRating, InvalidTransition, OrderNotFound, ProductNotFound,
    UserNotFound,
)
from helpers import format_price, new_order_id, new_tracking_number, utcnow
from models import (
    Address, AdminLog, BankDetails, CartLine, LogSeverity, Order, OrderItem,
    OrderStatus, Product, ProductDraft, Review, Role, User,
)

logger = logging.getLogger(__name__)

CHECKOUT_OFFLINE_NOTICE = (
    "We could not reach the store server. Your order has been saved on this device."
)


def aggregate_rating(product: Product, new_rating: int) -> None:
    """Fold one more vote into the product's running average."""
    # A seed rating without a count stands for a single earlier vote.
    count = product.rating_count if product.rating_count is not None else 1
    mean = (product.rating * count + new_rating) / (count + 1)
    # Halves round up, so 4.25 is stored as 4.3.
    product.rating = float(Decimal(mean).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
    product.rating_count = count + 1


class Store:
    def __init__(self, cache: StateCache, client: Optional[StoreApiClient] = None):
        self.cache = cache
        self.client = client
        self.user: Optional[User] = None
        self.products: list[Product] = []
        self.orders: list[Order] = []
        self.users: list[User] = []
        self.admin_logs: list[AdminLog] = []
        self.cart: list[CartLine] = []
        self.initialized = False
        self.notice: Optional[str] = None
        self._pending: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle and synchronisation
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Populate state from the cache, seeding the catalogue on first run."""
        products = self._load_list(PRODUCTS_KEY, Product)
        self.products = products if products is not None else seed_products()

        raw_user = self.cache.read(USER_KEY)
        self.user = None
        if raw_user is not None:
            try:
                self.user = User.model_validate(raw_user)
            except ValueError as e:
                logger.warning("Discarding cached user: %s", e)

        self.orders = self._load_list(ORDERS_KEY, Order) or []
        users = self._load_list(USERS_KEY, User)
        if users is not None:
            self.users = users
        else:
            self.users = [self.user.model_copy(deep=True)] if self.user else []
        self.admin_logs = self._load_list(LOGS_KEY, AdminLog) or []
        self.initialized = True
        logger.info("Loaded %d products, %d orders from cache", len(self.products), len(self.orders))

    def _load_list(self, key: str, model) -> Optional[list]:
        raw = self.cache.read(key)
        if raw is None:
            return None
        try:
            return [model.model_validate(item) for item in raw]
        except (TypeError, ValueError) as e:
            logger.warning("Discarding cached %s: %s", key, e)
            return None

    async def initialize(self) -> None:
        self.load()
        await self.pull_remote()

    async def pull_remote(self) -> bool:
        """Replace products and orders with the remote copies.

        Each list is overwritten only if its own fetch succeeded. Returns True
        when both did.
        """
        if self.client is None:
            return False
        ok = True
        try:
            self.products = await self.client.fetch_products()
        except RemoteError as e:
            logger.warning("Catalogue refresh failed, keeping local copy: %s", e)
            ok = False
        try:
            self.orders = await self.client.fetch_orders()
        except RemoteError as e:
            logger.warning("Order refresh failed, keeping local copy: %s", e)
            ok = False
        self._prune_cart()
        self.persist()
        return ok

    def persist(self) -> None:
        if not self.initialized:
            return
        self.cache.write(PRODUCTS_KEY, [p.to_wire() for p in self.products])
        self.cache.write(ORDERS_KEY, [o.to_wire() for o in self.orders])
        self.cache.write(USERS_KEY, [u.to_wire() for u in self.users])
        self.cache.write(LOGS_KEY, [log.to_wire() for log in self.admin_logs])
        if self.user is not None:
            self.cache.write(USER_KEY, self.user.to_wire())
        else:
            self.cache.remove(USER_KEY)

    def _fire(self, call: Callable[[StoreApiClient], Awaitable[Any]], label: str) -> None:
        """Schedule a remote write without waiting for it."""
        if self.client is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, skipping remote %s", label)
            return
        task = loop.create_task(self._absorb(call(self.client), label))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _absorb(self, call: Awaitable[Any], label: str) -> None:
        try:
            await call
        except RemoteError as e:
            logger.warning("Remote %s failed (ignored): %s", label, e)
        except Exception:
            logger.exception("Remote %s crashed", label)

    async def drain(self) -> None:
        """Wait for outstanding fire‑and‑forget writes."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()

    def pop_notice(self) -> Optional[str]:
        notice, self.notice = self.notice, None
        return notice

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def _require_user(self) -> User:
        if self.user is None:
            raise AuthRequired()
        return self.user

    def sign_in(self, user: User, token: Optional[str] = None) -> User:
        self.user = user.model_copy(deep=True)
        if token:
            self.cache.set_token(token)
        self._sync_roster(self.user, add=True)
        self.persist()
        logger.info("Signed in %s (%s)", user.email, user.role.value)
        return self.user

    def sign_out(self) -> None:
        self.user = None
        self.cart = []
        self.cache.clear_token()
        self.persist()

    def update_profile(self, name: Optional[str] = None, address: Optional[Address] = None,
                       bank_details: Optional[BankDetails] = None,
                       avatar: Optional[str] = None) -> User:
        user = self._require_user()
        changes = {"name": name, "address": address, "bank_details": bank_details, "avatar": avatar}
        self.user = user.model_copy(update={k: v for k, v in changes.items() if v is not None})
        self._sync_roster(self.user)
        self.persist()
        self._push_user(self.user)
        return self.user

    def _sync_roster(self, user: User, add: bool = False) -> None:
        # The roster keeps its own copies; the signed-in user is mirrored into it.
        for i, u in enumerate(self.users):
            if u.id == user.id:
                self.users[i] = user.model_copy(deep=True)
                return
        if add:
            self.users.append(user.model_copy(deep=True))

    def _push_user(self, user: User) -> None:
        snapshot = user.model_copy(deep=True)
        self._fire(lambda c: c.update_user(snapshot), "user update")

    # ------------------------------------------------------------------
    # Catalogue lookups
    # ------------------------------------------------------------------

    def get_product(self, product_id: str) -> Product:
        for p in self.products:
            if p.id == product_id:
                return p
        raise ProductNotFound(product_id)

    def _find_order(self, order_id: str) -> Order:
        for o in self.orders:
            if o.id == order_id:
                return o
        raise OrderNotFound(order_id)

    def _roster_index(self, user_id: str) -> int:
        for i, u in enumerate(self.users):
            if u.id == user_id:
                return i
        raise UserNotFound(user_id)

    # ------------------------------------------------------------------
    # Cart and wishlist
    # ------------------------------------------------------------------

    def add_to_cart(self, product_id: str) -> CartLine:
        for line in self.cart:
            if line.product_id == product_id:
                line.quantity += 1
                return line
        line = CartLine(product_id=product_id, quantity=1)
        self.cart.append(line)
        return line

    def remove_from_cart(self, product_id: str) -> None:
        self.cart = [line for line in self.cart if line.product_id != product_id]

    def clear_cart(self) -> None:
        self.cart = []

    def _prune_cart(self) -> None:
        known = {p.id for p in self.products}
        dropped = [line.product_id for line in self.cart if line.product_id not in known]
        if dropped:
            logger.info("Dropping cart lines for removed products: %s", ", ".join(dropped))
            self.cart = [line for line in self.cart if line.product_id in known]

    @property
    def cart_count(self) -> int:
        """Number of items in the cart, counting quantities."""
        return sum(line.quantity for line in self.cart)

    def cart_items(self) -> list[tuple[Product, int]]:
        return [(self.get_product(line.product_id), line.quantity) for line in self.cart]

    def cart_summary(self, coupon: Optional[str] = None) -> dict:
        """Cart lines joined with products, plus totals for an optional coupon code."""
        lines = [
            {"product": p, "quantity": qty, "line_total": p.price * qty}
            for p, qty in self.cart_items()
        ]
        subtotal = sum(line["line_total"] for line in lines)
        discount = lookup_coupon(coupon) if coupon else None
        discount_amount = discount.amount_off(subtotal) if discount else 0.0
        return {
            "lines": lines,
            "item_count": self.cart_count,
            "subtotal": subtotal,
            "coupon": coupon.strip().upper() if discount else None,
            "discount_label": discount.label() if discount else None,
            "discount": discount_amount,
            "total": max(0.0, subtotal - discount_amount),
        }

    def toggle_wishlist(self, product_id: str) -> bool:
        """Flip wishlist membership; returns True when the product is now wishlisted."""
        user = self._require_user()
        if product_id in user.wishlist:
            user.wishlist = [pid for pid in user.wishlist if pid != product_id]
            added = False
        else:
            user.wishlist = [*user.wishlist, product_id]
            added = True
        self._sync_roster(user)
        self.persist()
        self._push_user(user)
        return added

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def checkout(self, payment_method: str, shipping_address: Address) -> Order:
        user = self._require_user()
        items = [
            OrderItem(product_id=p.id, name=p.name, quantity=qty, price_at_purchase=p.price)
            for p, qty in self.cart_items()
        ]
        # Empty the cart before awaiting the remote, so lines added meanwhile survive.
        self.cart = []
        order = Order(
            id=new_order_id(),
            user_id=user.id,
            items=items,
            total=sum(item.subtotal for item in items),
            status=OrderStatus.PROCESSING,
            tracking_number=new_tracking_number(),
            payment_method=payment_method,
            shipping_address=shipping_address.model_copy(deep=True),
        )

        self.notice = None
        if self.client is not None:
            try:
                await self.client.create_order(order)
            except RemoteError as e:
                logger.warning("Order %s kept locally, remote create failed: %s", order.id, e)
                self.notice = CHECKOUT_OFFLINE_NOTICE

        self.orders.insert(0, order)
        self.persist()
        logger.info("Order %s placed by %s for %s", order.id, user.id, format_price(order.total))
        return order

    def orders_for(self, user_id: str, status: Optional[OrderStatus] = None,
                   start: Optional[date] = None, end: Optional[date] = None) -> list[Order]:
        return [
            o for o in self.orders
            if o.user_id == user_id
            and (status is None or o.status == status)
            and (start is None or o.date.date() >= start)
            and (end is None or o.date.date() <= end)
        ]

    def cancel_order(self, order_id: str) -> Order:
        """User‑initiated cancellation; only orders still processing qualify."""
        user = self._require_user()
        order = self._find_order(order_id)
        if order.user_id != user.id:
            raise OrderNotFound(order_id)
        if order.status != OrderStatus.PROCESSING:
            raise InvalidTransition(f"Order {order_id} is {order.status.value} and can no longer be cancelled")
        self._apply_status(order, OrderStatus.CANCELLED)
        self.create_log("Cancelled Order", order.id, LogSeverity.WARNING)
        return order

    def set_order_status(self, order_id: str, status: OrderStatus) -> Order:
        """Admin status edit. Any state may be set except leaving Cancelled."""
        order = self._find_order(order_id)
        if order.status == status:
            return order
        if order.status == OrderStatus.CANCELLED:
            raise InvalidTransition(f"Order {order_id} is cancelled")
        self._apply_status(order, status)
        severity = LogSeverity.WARNING if status == OrderStatus.CANCELLED else LogSeverity.INFO
        self.create_log("Updated Order Status", f"{order.id}: {status.value}", severity)
        return order

    def _apply_status(self, order: Order, status: OrderStatus) -> None:
        order.status = status
        order.updated_at = utcnow()
        self.persist()
        snapshot = order.model_copy(deep=True)
        self._fire(lambda c: c.update_order(snapshot), "order update")

    # ------------------------------------------------------------------
    # Ratings and reviews
    # ------------------------------------------------------------------

    def rate_product(self, product_id: str, rating: int) -> Product:
        if not 1 <= rating <= 5:
            raise InvalidRating(rating)
        product = self.get_product(product_id)
        aggregate_rating(product, rating)
        self._product_changed(product)
        return product

    def add_review(self, product_id: str, user_name: str, rating: int, comment: str) -> Review:
        product = self.get_product(product_id)
        review = Review(user_name=user_name, rating=rating, comment=comment)
        product.reviews = [review, *product.reviews]
        aggregate_rating(product, review.rating)
        self._product_changed(product)
        return review

    def _product_changed(self, product: Product) -> None:
        self.persist()
        snapshot = product.model_copy(deep=True)
        self._fire(lambda c: c.update_product(snapshot), "product update")

    # ------------------------------------------------------------------
    # Admin console
    # ------------------------------------------------------------------

    def create_log(self, action: str, target: str,
                   severity: LogSeverity = LogSeverity.INFO) -> Optional[AdminLog]:
        if self.user is None:
            return None
        log = AdminLog(
            admin_id=self.user.id,
            admin_name=self.user.name,
            action=action,
            target=target,
            severity=severity,
        )
        self.admin_logs = [log, *self.admin_logs][:ADMIN_LOG_LIMIT]
        self.persist()
        self._fire(lambda c: c.append_log(log), "log append")
        return log

    def save_product(self, draft: ProductDraft) -> Product:
        """Publish a draft: replace the product with the same id, or add it first in the list."""
        product = draft.build()
        snapshot = product.model_copy(deep=True)
        for i, existing in enumerate(self.products):
            if existing.id == product.id:
                self.products[i] = product
                self.create_log("Updated Product", product.name, LogSeverity.SUCCESS)
                self._fire(lambda c: c.update_product(snapshot), "product update")
                break
        else:
            self.products.insert(0, product)
            self.create_log("Created Product", product.name, LogSeverity.SUCCESS)
            self._fire(lambda c: c.create_product(snapshot), "product create")
        self.persist()
        return product

    def delete_product(self, product_id: str) -> Product:
        product = self.get_product(product_id)
        self.products = [p for p in self.products if p.id != product_id]
        self._prune_cart()
        self.create_log("Deleted Product", product.name, LogSeverity.ERROR)
        self.persist()
        self._fire(lambda c: c.delete_product(product_id), "product delete")
        return product

    def update_roster_user(self, user: User) -> User:
        idx = self._roster_index(user.id)
        self.users[idx] = user.model_copy(deep=True)
        if self.user is not None and self.user.id == user.id:
            self.user = user.model_copy(deep=True)
        self.create_log("Updated User", user.email, LogSeverity.INFO)
        self.persist()
        self._push_user(user)
        return self.users[idx]

    def toggle_user_role(self, user_id: str) -> User:
        current = self.users[self._roster_index(user_id)]
        role = Role.USER if current.role == Role.ADMIN else Role.ADMIN
        return self.update_roster_user(current.model_copy(update={"role": role}))

    def dashboard_stats(self) -> dict:
        revenue = sum(o.total for o in self.orders if o.status != OrderStatus.CANCELLED)
        low_stock = [p for p in self.products if p.stock < LOW_STOCK_THRESHOLD]
        return {
            "revenue": round(revenue, 2),
            "revenue_display": format_price(revenue),
            "orders_count": len(self.orders),
            "products_count": len(self.products),
            "users_count": len(self.users),
            "low_stock": len(low_stock),
            "low_stock_products": low_stock[:4],
        }
