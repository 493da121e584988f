import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from api_client import StoreApiClient
from cache import StateCache
from main import create_app
from models import Category, Product, Role, User
from store import Store

REMOTE_BASE = "http://remote.test/api"


class FakeRemote:
    """Stand‑in for the store API. Unknown routes answer 503."""

    def __init__(self):
        self.calls = []
        self.routes = {}
        self.offline = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api")
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, path, body))
        if self.offline:
            raise httpx.ConnectError("offline", request=request)
        status, payload = self.routes.get((request.method, path), (503, {"detail": "unavailable"}))
        return httpx.Response(status, json=payload)

    def transport(self):
        return httpx.MockTransport(self.handler)

    def paths(self, method):
        return [path for m, path, _ in self.calls if m == method]


def make_product(id="p1", name="Widget", price=10.0, rating=4.0, rating_count=9,
                 stock=50, category=Category.POWER):
    return Product(id=id, name=name, price=price, rating=rating, rating_count=rating_count,
                   stock=stock, category=category)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def alice():
    return User(id="u1", email="alice@example.com", name="Alice")


@pytest.fixture
def admin():
    return User(id="a1", email="admin@uhsinstore.com", name="Admin", role=Role.ADMIN)


@pytest.fixture
def cache(tmp_path):
    return StateCache(str(tmp_path / "cache"))


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def api_client(cache, remote):
    return StoreApiClient(cache, base_url=REMOTE_BASE, transport=remote.transport())


@pytest.fixture
def store(cache, api_client):
    s = Store(cache, api_client)
    s.load()
    s.products = [
        make_product("p1", "Widget", 10.0),
        make_product("p2", "Gizmo", 25.0, category=Category.AUDIO),
    ]
    return s


@pytest.fixture
def offline_store(cache):
    s = Store(cache)
    s.load()
    return s


@pytest.fixture
def client(cache, api_client):
    app = create_app(Store(cache, api_client), sync_interval=0)
    with TestClient(app) as c:
        yield c
