"""
Data models — pydantic records shared by the store, the cache and the remote API.

Attributes are snake_case in Python and camelCase on the wire
(``rating_count`` ↔ ``ratingCount``); both spellings are accepted on input.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from errors import DraftIncomplete
from helpers import random_id, utcnow

PLACEHOLDER_IMAGE = "https://picsum.photos/400/400"


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """JSON‑ready dict with camelCase keys, as the cache and remote API expect."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Category(str, Enum):
    AUDIO = "Audio"
    POWER = "Power"
    CONNECTIVITY = "Connectivity"
    PROTECTION = "Protection"
    INPUT = "Input"


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class OrderStatus(str, Enum):
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    OUT_FOR_DELIVERY = "Out for Delivery"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class LogSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------

class Review(Record):
    id: str = Field(default_factory=random_id)
    user_name: str
    rating: int = Field(..., ge=1, le=5)
    comment: str
    date: datetime = Field(default_factory=utcnow)


class Product(Record):
    id: str
    name: str
    price: float = Field(..., ge=0)
    description: str = ""
    image: str = PLACEHOLDER_IMAGE
    category: Category
    rating: float = Field(0, ge=0, le=5)
    rating_count: Optional[int] = Field(None, ge=0)
    stock: int = Field(0, ge=0)
    reviews: List[Review] = Field(default_factory=list)

    def is_available(self):
        return self.stock > 0


class ProductDraft(Record):
    """Partial product being edited in the admin console.

    Fields are filled in one at a time; nothing is checked until ``build()``.
    """

    id: Optional[str] = None
    name: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    image: Optional[str] = None
    category: Optional[Category] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    rating_count: Optional[int] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    reviews: Optional[List[Review]] = None

    @classmethod
    def from_product(cls, product: Product) -> "ProductDraft":
        return cls(**product.model_dump())

    def missing_fields(self) -> list[str]:
        missing = []
        if not (self.name or "").strip():
            missing.append("name")
        if self.price is None:
            missing.append("price")
        if self.category is None:
            missing.append("category")
        return missing

    def build(self) -> Product:
        missing = self.missing_fields()
        if missing:
            raise DraftIncomplete(missing)
        return Product(
            id=self.id or random_id(),
            name=self.name.strip(),
            price=self.price,
            description=self.description or "",
            image=self.image or PLACEHOLDER_IMAGE,
            category=self.category,
            rating=5 if self.rating is None else self.rating,
            rating_count=self.rating_count,
            stock=self.stock or 0,
            reviews=self.reviews or [],
        )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class Address(Record):
    street: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    country: str = "India"

    def is_complete(self):
        return all(v.strip() for v in (self.street, self.city, self.state, self.zip))


class BankDetails(Record):
    account_holder: str = ""
    account_number: str = ""
    bank_name: str = ""
    ifsc: str = ""


class User(Record):
    id: str
    email: str
    name: str
    role: Role = Role.USER
    wishlist: List[str] = Field(default_factory=list)
    joined_at: Optional[datetime] = None
    address: Optional[Address] = None
    bank_details: Optional[BankDetails] = None
    avatar: Optional[str] = None

    @field_validator("wishlist")
    @classmethod
    def _dedupe_wishlist(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))

    def is_admin(self):
        return self.role == Role.ADMIN


# ---------------------------------------------------------------------------
# Orders, cart and audit log
# ---------------------------------------------------------------------------

class OrderItem(Record):
    product_id: str
    name: str
    quantity: int = Field(..., ge=1)
    price_at_purchase: float = Field(..., ge=0)

    @property
    def subtotal(self):
        return self.quantity * self.price_at_purchase


class Order(Record):
    id: str
    user_id: str
    items: List[OrderItem] = Field(default_factory=list)
    total: float
    status: OrderStatus = OrderStatus.PROCESSING
    date: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    tracking_number: str
    payment_method: str
    shipping_address: Address


class CartLine(Record):
    product_id: str
    quantity: int = Field(1, ge=1)


class AdminLog(Record):
    id: str = Field(default_factory=random_id)
    admin_id: str
    admin_name: str
    action: str
    target: str
    timestamp: datetime = Field(default_factory=utcnow)
    severity: LogSeverity = Field(LogSeverity.INFO, alias="type")


# ---------------------------------------------------------------------------
# Discounts
# ---------------------------------------------------------------------------

class FlatDiscount(BaseModel):
    kind: Literal["flat"] = "flat"
    amount: float = Field(..., gt=0)

    def amount_off(self, subtotal: float) -> float:
        return min(self.amount, subtotal)

    def label(self) -> str:
        return f"${self.amount:g}"


class PercentageDiscount(BaseModel):
    kind: Literal["percentage"] = "percentage"
    rate: float = Field(..., gt=0, le=1)

    def amount_off(self, subtotal: float) -> float:
        return subtotal * self.rate

    def label(self) -> str:
        return f"{self.rate * 100:g}%"


Discount = Annotated[Union[FlatDiscount, PercentageDiscount], Field(discriminator="kind")]
