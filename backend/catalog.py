"""
Catalogue helpers — seed products, promo codes, listing filters.
"""

import random
from enum import Enum
from typing import Optional

from errors import InvalidCoupon
from models import Category, FlatDiscount, PercentageDiscount, Product

INITIAL_PRODUCTS: list[Product] = [
    Product(
        id="1",
        name="ThunderCharge 65W GaN",
        price=49.99,
        description="Ultra-compact high-speed charger for laptops and phones.",
        image="https://picsum.photos/seed/charger/400/400",
        category=Category.POWER,
        rating=4.8,
        stock=120,
    ),
    Product(
        id="2",
        name="SonicWave Elite TWS",
        price=129.00,
        description="Noise-cancelling wireless earbuds with 40h battery life.",
        image="https://picsum.photos/seed/earbuds/400/400",
        category=Category.AUDIO,
        rating=4.9,
        stock=85,
    ),
    Product(
        id="3",
        name="HyperConnect HDMI 2.1",
        price=24.99,
        description="8K Ultra HD compatible HDMI cable with braided shield.",
        image="https://picsum.photos/seed/cable/400/400",
        category=Category.CONNECTIVITY,
        rating=4.5,
        stock=200,
    ),
    Product(
        id="4",
        name="ShieldPro Laptop Sleeve",
        price=35.00,
        description="Water-resistant protective sleeve for 14-inch laptops.",
        image="https://picsum.photos/seed/sleeve/400/400",
        category=Category.PROTECTION,
        rating=4.7,
        stock=50,
    ),
    Product(
        id="5",
        name="PrecisionClick MX",
        price=89.99,
        description="Ergonomic wireless mouse with precision tracking.",
        image="https://picsum.photos/seed/mouse/400/400",
        category=Category.INPUT,
        rating=4.9,
        stock=30,
    ),
]

PROMO_CODES = {
    "AUDIO25": PercentageDiscount(rate=0.25),
    "WELCOME15": PercentageDiscount(rate=0.15),
    "PWRUP10": FlatDiscount(amount=10),
    "SAVE10": PercentageDiscount(rate=0.10),
}


class SortOption(str, Enum):
    FEATURED = "featured"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    RATING = "rating"


def seed_products() -> list[Product]:
    """Fresh copies of the seed catalogue with a plausible rating count."""
    return [
        p.model_copy(update={"rating_count": random.randint(10, 109)}, deep=True)
        for p in INITIAL_PRODUCTS
    ]


def lookup_coupon(code: str):
    key = code.strip().upper()
    if key not in PROMO_CODES:
        raise InvalidCoupon(code)
    return PROMO_CODES[key]


def filter_products(
    products: list[Product],
    category: Optional[Category] = None,
    search: str = "",
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    in_stock_only: bool = False,
    sort: SortOption = SortOption.FEATURED,
) -> list[Product]:
    """Apply the catalogue page filters. ``featured`` keeps the stored order."""
    needle = search.lower()
    items = [
        p for p in products
        if (category is None or p.category == category)
        and needle in p.name.lower()
        and (min_price is None or p.price >= min_price)
        and (max_price is None or p.price <= max_price)
        and (not in_stock_only or p.is_available())
    ]
    if sort == SortOption.PRICE_ASC:
        items.sort(key=lambda p: p.price)
    elif sort == SortOption.PRICE_DESC:
        items.sort(key=lambda p: p.price, reverse=True)
    elif sort == SortOption.RATING:
        items.sort(key=lambda p: p.rating, reverse=True)
    return items


def related_products(products: list[Product], product: Product, limit: int = 4) -> list[Product]:
    return [p for p in products if p.category == product.category and p.id != product.id][:limit]
