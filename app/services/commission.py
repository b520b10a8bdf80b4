"""
Commission and brand-earnings derivation.
commission = round_half_up(total * rate, 0.01); earnings = total - commission, so the two always sum to total.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, DecimalException, ROUND_HALF_UP
from typing import Any

from app.config import settings
from app.exceptions import FinancialIntegrityError
from app.models import Brand

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass(frozen=True)
class Earnings:
    commission_amount: Decimal
    brand_earnings: Decimal


def to_money(value: Any) -> Decimal:
    """Parse a vendor money value ("100.00", 100, None) into a 2-place Decimal. Raises ValueError on garbage."""
    if value is None or value == "":
        return Decimal("0.00")
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite():
            raise ValueError(f"Invalid money value: {value!r}")
        # Raises InvalidOperation when the result needs more digits than the context precision
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except DecimalException as e:
        raise ValueError(f"Invalid money value: {value!r}") from e


def round_money(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def derive(total_amount: Decimal, commission_rate: Decimal) -> Earnings:
    """Split total_amount into platform commission and brand earnings."""
    total = round_money(Decimal(str(total_amount)))
    rate = Decimal(str(commission_rate))
    if total < 0:
        raise FinancialIntegrityError(f"Negative order total {total}", {"total": str(total)})
    if rate < 0 or rate > 1:
        raise FinancialIntegrityError(f"Commission rate {rate} outside [0, 1]", {"rate": str(rate)})

    commission = round_money(total * rate)
    earnings = total - commission
    if earnings < 0 or commission > total:
        raise FinancialIntegrityError(
            f"Commission {commission} exceeds total {total}",
            {"total": str(total), "commission": str(commission)},
        )
    return Earnings(commission_amount=commission, brand_earnings=earnings)


def resolve_commission_rate(brand: Brand) -> Decimal:
    """Brand's configured rate, or DEFAULT_COMMISSION_RATE (logged: this affects payouts)."""
    if brand.commission_rate is not None:
        return Decimal(str(brand.commission_rate))
    logger.warning(
        "Brand %s has no commission_rate configured; using default %s",
        brand.id,
        settings.DEFAULT_COMMISSION_RATE,
    )
    return settings.DEFAULT_COMMISSION_RATE
