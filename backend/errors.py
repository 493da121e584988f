"""
Exception types raised by the store layer.
The HTTP layer in main.py maps each of them to a status code.
"""


class StoreError(Exception):
    """Base class for store operation failures."""


class AuthRequired(StoreError):
    """No signed‑in user; the caller should send the user to the auth view."""

    def __init__(self, message: str = "Sign in required"):
        super().__init__(message)


class ProductNotFound(StoreError, LookupError):
    def __init__(self, product_id: str):
        super().__init__(f"Product not found: {product_id}")
        self.product_id = product_id


class OrderNotFound(StoreError, LookupError):
    def __init__(self, order_id: str):
        super().__init__(f"Order not found: {order_id}")
        self.order_id = order_id


class UserNotFound(StoreError, LookupError):
    def __init__(self, user_id: str):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class InvalidTransition(StoreError):
    """Order status change not allowed from the current state."""


class InvalidRating(StoreError):
    def __init__(self, rating):
        super().__init__("Rating must be between 1 and 5")
        self.rating = rating


class InvalidCoupon(StoreError):
    def __init__(self, code: str):
        super().__init__("Invalid coupon code. Try AUDIO25 or WELCOME15")
        self.code = code


class DraftIncomplete(StoreError, ValueError):
    def __init__(self, missing: list[str]):
        super().__init__(f"Missing required fields: {', '.join(missing)}")
        self.missing = missing
