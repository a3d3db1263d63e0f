"""
Input validation - run before any store interaction.
Each function returns the cleaned value or raises ValidationFailed.
"""

import re
from decimal import Decimal, InvalidOperation

from smartqueue.errors import ValidationFailed
from smartqueue.models.entry import ENTRY_STATUSES

PHONE_PATTERN = re.compile(r"^\d{10}$")
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
MAX_CART_VALUE = Decimal("99999999.99")
MAX_PER_PAGE = 100


def validate_name(name):
    if not isinstance(name, str) or not name.strip():
        raise ValidationFailed("name", "Customer name is required")
    name = name.strip()
    if len(name) < NAME_MIN_LENGTH:
        raise ValidationFailed("name", f"Name must be at least {NAME_MIN_LENGTH} characters")
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationFailed("name", f"Name cannot exceed {NAME_MAX_LENGTH} characters")
    return name


def validate_phone(phone):
    if not isinstance(phone, str):
        raise ValidationFailed("phone", "Phone number is required")
    phone = phone.strip()
    if not PHONE_PATTERN.match(phone):
        raise ValidationFailed("phone", "Phone number must be exactly 10 digits")
    return phone


def validate_cart_value(cart_value):
    # bool is an int subclass; a JSON true is not a cart total
    if cart_value is None or isinstance(cart_value, bool):
        raise ValidationFailed("cart_value", "Cart total is required")
    try:
        value = Decimal(str(cart_value).strip())
    except InvalidOperation:
        raise ValidationFailed("cart_value", "Cart total must be a number")
    if not value.is_finite():
        raise ValidationFailed("cart_value", "Cart total must be a number")
    if value < 0:
        raise ValidationFailed("cart_value", "Cart total cannot be negative")
    if value > MAX_CART_VALUE:
        raise ValidationFailed("cart_value", "Cart total is too large")
    return value.quantize(Decimal("0.01"))


def validate_body(data):
    """Optional JSON body; anything other than an object is rejected."""
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationFailed("body", "Request body must be a JSON object")
    return data


def validate_registration(data):
    if not isinstance(data, dict):
        raise ValidationFailed("body", "Please provide name, phone, and cart total")
    return (
        validate_name(data.get("name")),
        validate_phone(data.get("phone")),
        validate_cart_value(data.get("cart_value", data.get("cartTotal"))),
    )


def validate_status(status):
    if status is None or status == "":
        return None
    status = status.strip().upper()
    if status not in ENTRY_STATUSES:
        raise ValidationFailed("status", f"Status must be one of {', '.join(ENTRY_STATUSES)}")
    return status


def validate_pagination(page, per_page):
    if page is None or page < 1:
        raise ValidationFailed("page", "page must be a positive integer")
    if per_page is None or per_page < 1 or per_page > MAX_PER_PAGE:
        raise ValidationFailed("per_page", f"per_page must be between 1 and {MAX_PER_PAGE}")
    return page, per_page


def validate_optional_text(field, value, max_length):
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationFailed(field, f"{field} must be a string")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationFailed(field, f"{field} cannot exceed {max_length} characters")
    return value or None
