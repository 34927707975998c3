# backend/utils/money.py
from decimal import Decimal, ROUND_HALF_UP

MINOR_UNITS = 100

# Percentage of an amount, rounded half-up to a whole minor unit
def percent_of(amount: int, rate) -> int:
    if not rate:
        return 0
    value = Decimal(amount) * Decimal(str(rate)) / Decimal(100)
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))

# Display conversion, only used when serializing responses
def to_major(amount: int) -> Decimal:
    return (Decimal(amount or 0) / MINOR_UNITS).quantize(Decimal("0.01"))
