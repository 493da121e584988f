"""
Input validators — used by route handlers before touching the store.
"""

import re

from models import Address


def validate_email(email: str) -> bool:
    """Basic email format check."""
    pattern = r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$"
    return bool(re.match(pattern, email))


def validate_shipping_address(address: Address) -> tuple[bool, str]:
    """Street, city, state and zip are all required for delivery."""
    if not address.is_complete():
        return False, "Please complete the delivery destination details."
    return True, ""


def validate_review(user_name: str, rating: int, comment: str) -> tuple[bool, str]:
    if not user_name.strip():
        return False, "Please tell us your name"
    if not 1 <= rating <= 5:
        return False, "Rating must be between 1 and 5"
    if not comment.strip():
        return False, "Please write a short comment"
    return True, ""


def validate_payment_method(method: str) -> tuple[bool, str]:
    if not method.strip():
        return False, "Choose a payment method"
    return True, ""
