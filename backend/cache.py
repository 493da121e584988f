"""
Persisted state cache — one JSON file per key under CACHE_DIR.

Each entry is a full snapshot, overwritten on every change. Unreadable
entries are treated as missing; write failures are logged and ignored so
the session keeps running on in‑memory state.
"""

import json
import logging
import os
from typing import Any

from config import CACHE_DIR

logger = logging.getLogger(__name__)

PRODUCTS_KEY = "uhsin_products"
USER_KEY = "uhsin_user"
ORDERS_KEY = "uhsin_orders"
USERS_KEY = "uhsin_users_list"
LOGS_KEY = "uhsin_admin_logs"
TOKEN_KEY = "uhsin_jwt"


class StateCache:
    def __init__(self, root: str = CACHE_DIR):
        self.root = root

    def _path(self, key: str) -> str:
        return os.path.join(self.root, f"{key}.json")

    def read(self, key: str) -> Any:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable cache entry %s: %s", key, e)
            return None

    def write(self, key: str, value: Any) -> None:
        try:
            os.makedirs(self.root, exist_ok=True)
            with open(self._path(key), "w", encoding="utf-8") as f:
                json.dump(value, f)
        except (OSError, TypeError) as e:
            logger.error("Could not write cache entry %s: %s", key, e)

    def remove(self, key: str) -> None:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Could not remove cache entry %s: %s", key, e)

    # --- token ------------------------------------------------------------
    def get_token(self) -> str | None:
        return self.read(TOKEN_KEY)

    def set_token(self, token: str) -> None:
        self.write(TOKEN_KEY, token)

    def clear_token(self) -> None:
        self.remove(TOKEN_KEY)
