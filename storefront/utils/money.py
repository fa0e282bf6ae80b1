# storefront/utils/money.py

from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP

Money = Decimal
ZERO = Decimal("0.00")

def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))

def round_money(x: Money) -> Money:
    return D(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

def floor_int(x) -> int:
    return int(D(x).to_integral_value(rounding=ROUND_FLOOR))

def to_string_money(x) -> str:
    return str(round_money(x))

def fmt_dollars(x) -> str:
    return f"${round_money(x):.2f}"
