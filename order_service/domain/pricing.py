# order_service/domain/pricing.py
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_money(value) -> Decimal | None:
    """None when `value` is not a usable non-negative amount."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount


def subtotal(lines: Iterable[tuple[Decimal, int]]) -> Decimal:
    """Sum of unit_price * quantity for (unit_price, quantity) pairs."""
    return sum((Decimal(str(price)) * qty for price, qty in lines), Decimal("0"))


def order_total(sub: Decimal, tax_rate: Decimal, processing_fee: Decimal) -> Decimal:
    return to_money(sub + sub * tax_rate + processing_fee)


def whole_amount(amount: Decimal) -> int:
    """Bank transfers take whole units only."""
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
