"""
General‑purpose helper functions used across the project.
"""

import random
import string
from datetime import datetime, timezone

_BASE36 = string.digits + string.ascii_lowercase


def random_id(length: int = 9) -> str:
    """Short random base‑36 id. Not globally unique, good enough locally."""
    return "".join(random.choices(_BASE36, k=length))


def new_order_id() -> str:
    return f"ORD-{random_id().upper()}"


def new_tracking_number() -> str:
    return f"TRK{random.randrange(1_000_000_000)}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_price(amount: float) -> str:
    """Display a price with $ and two decimals."""
    return f"${amount:,.2f}"
