"""
Shopify financial_status -> canonical PaymentStatus.
"""
from typing import Optional

from app.models import PaymentStatus

_FINANCIAL_TO_PAYMENT = {
    "paid": PaymentStatus.PAID,
    "pending": PaymentStatus.PENDING,
    "refunded": PaymentStatus.REFUNDED,
    "partially_refunded": PaymentStatus.PARTIALLY_REFUNDED,
}


def map_payment_status(financial_status: Optional[str]) -> PaymentStatus:
    """Total mapping; unknown, empty or missing vendor values fall back to PENDING."""
    key = (financial_status or "").strip().lower()
    return _FINANCIAL_TO_PAYMENT.get(key, PaymentStatus.PENDING)
