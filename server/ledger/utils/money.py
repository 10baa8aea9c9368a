from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

CENT = Decimal("0.01")
ZERO_MONEY = Decimal("0.00")


def quantize_money(value: Decimal | float | int | str | None) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def sum_money(values: Iterable[Decimal | float | int | str | None]) -> Decimal:
    """Sum amounts exactly and round once at the end. None counts as zero."""
    total = sum((Decimal(str(value)) for value in values if value is not None), Decimal("0"))
    return quantize_money(total)


def nets_to_zero(debit: Decimal, credit: Decimal, tolerance: Decimal) -> bool:
    """Debit and credit agree when they differ by strictly less than the tolerance."""
    return abs(Decimal(debit) - Decimal(credit)) < tolerance
