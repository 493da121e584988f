"""
Remote store API client — wraps the REST backend over httpx.

Every call is attempted once. Failures are logged and raised as RemoteError;
callers in the store decide whether to absorb them (they always do).
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import httpx

from cache import StateCache
from config import API_BASE_URL, REQUEST_TIMEOUT
from models import AdminLog, Order, Product, User

logger = logging.getLogger(__name__)


class RemoteError(Exception):
    """A request to the remote API failed."""


class Unauthorized(RemoteError):
    """The remote API answered 401; the cached token has been evicted."""


class StoreApiClient:
    def __init__(self, cache: StateCache, base_url: str = API_BASE_URL,
                 timeout: float = REQUEST_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.cache = cache
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._unauthorized_listeners: list[Callable[[], None]] = []

    def on_unauthorized(self, listener: Callable[[], None]) -> None:
        """Register a callback fired whenever the API rejects our token."""
        self._unauthorized_listeners.append(listener)

    def _headers(self) -> dict[str, str]:
        token = self.cache.get_token()
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}" if token else "",
        }

    def _signal_unauthorized(self) -> None:
        self.cache.clear_token()
        for listener in self._unauthorized_listeners:
            try:
                listener()
            except Exception:
                logger.exception("unauthorized listener failed")

    async def request(self, method: str, endpoint: str, body: Any = None) -> Any:
        url = f"{self.base_url}{endpoint}"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.request(method, url, json=body, headers=self._headers())
            except httpx.HTTPError as e:
                logger.warning("API call failed: %s %s (%s)", method, url, e)
                raise RemoteError(f"API call failed: {url}") from e

        if resp.is_error:
            logger.warning("API call failed: %s %s -> %s", method, url, resp.status_code)
            if resp.status_code == 401:
                self._signal_unauthorized()
                raise Unauthorized(f"Backend Error: {resp.reason_phrase}")
            raise RemoteError(f"Backend Error: {resp.reason_phrase}")

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteError(f"Malformed response from {url}") from e

    async def get(self, endpoint: str) -> Any:
        return await self.request("GET", endpoint)

    async def post(self, endpoint: str, body: Any) -> Any:
        return await self.request("POST", endpoint, body)

    async def put(self, endpoint: str, body: Any) -> Any:
        return await self.request("PUT", endpoint, body)

    async def delete(self, endpoint: str) -> Any:
        return await self.request("DELETE", endpoint)

    # --- resources --------------------------------------------------------
    async def fetch_products(self) -> list[Product]:
        data = await self.get("/products")
        try:
            return [Product.model_validate(p) for p in data]
        except (TypeError, ValueError) as e:
            raise RemoteError("Unexpected products payload") from e

    async def fetch_orders(self) -> list[Order]:
        data = await self.get("/orders")
        try:
            return [Order.model_validate(o) for o in data]
        except (TypeError, ValueError) as e:
            raise RemoteError("Unexpected orders payload") from e

    async def create_order(self, order: Order) -> Any:
        return await self.post("/orders", order.to_wire())

    async def update_order(self, order: Order) -> Any:
        return await self.put(f"/orders/{order.id}", order.to_wire())

    async def create_product(self, product: Product) -> Any:
        return await self.post("/products", product.to_wire())

    async def update_product(self, product: Product) -> Any:
        return await self.put(f"/products/{product.id}", product.to_wire())

    async def delete_product(self, product_id: str) -> Any:
        return await self.delete(f"/products/{product_id}")

    async def append_log(self, log: AdminLog) -> Any:
        return await self.post("/logs", log.to_wire())

    async def update_user(self, user: User) -> Any:
        return await self.put(f"/users/{user.id}", user.to_wire())
