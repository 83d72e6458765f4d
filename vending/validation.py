import json
from decimal import Decimal, InvalidOperation

from django.core.serializers.json import DjangoJSONEncoder

from vending.exceptions import ValidationFailed
from vending.models.base import (
    MONEY_DECIMAL_PLACES,
    MONEY_MAX_DIGITS,
    MONEY_QUANTUM,
    quantize_money,
)

MONEY_LIMIT = Decimal(10) ** (MONEY_MAX_DIGITS - MONEY_DECIMAL_PLACES)


def validate_amount(amount) -> Decimal:
    """Return `amount` as a 2-place Decimal, or raise ValidationFailed."""
    if isinstance(amount, bool):
        raise ValidationFailed("Amount must be a decimal number.")
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationFailed("Amount must be a decimal number.")

    if not value.is_finite() or value <= 0:
        raise ValidationFailed("Amount must be positive.")
    if value >= MONEY_LIMIT:
        raise ValidationFailed(f"Amount must be lower than {MONEY_LIMIT}.")
    if value != value.quantize(MONEY_QUANTUM):
        raise ValidationFailed("Amount must have at most two decimal places.")
    return quantize_money(value)


def validate_basket(basket):
    """The basket is opaque here: a non-empty list or object that serializes to JSON."""
    if not isinstance(basket, (list, dict)) or not basket:
        raise ValidationFailed("Basket must be a non-empty list or object.")
    try:
        json.dumps(basket, cls=DjangoJSONEncoder)
    except (TypeError, ValueError) as exc:
        raise ValidationFailed(f"Basket is not serializable: {exc}")
    return basket


def basket_total(basket):
    """
    Sum of price * quantity over a list of items, or None when the basket
    does not have that shape.
    """
    if not isinstance(basket, list):
        return None
    total = Decimal("0")
    for item in basket:
        if not isinstance(item, dict) or "price" not in item:
            return None
        try:
            price = Decimal(str(item["price"]))
            quantity = Decimal(str(item.get("quantity", 1)))
        except (InvalidOperation, TypeError, ValueError):
            return None
        if not price.is_finite() or not quantity.is_finite():
            return None
        total += price * quantity
    return quantize_money(total)
