"""
Payment summary (quote) computation.

Quotes are advisory: they tell the payer what will be charged. Nothing is
marked paid until the processor confirms the charge or a credit debit
succeeds.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from rcn.domain.billing import PaymentSource, PaymentSummary

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Round to cents, half-up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _fmt_percent(percent: Decimal) -> str:
    text = format(percent.normalize(), "f")
    return f"{text}%"


def build_payment_summary(
    referral_id: str,
    source: PaymentSource,
    price_per_referral: Decimal,
    fee_percent: Decimal,
    currency: Optional[str],
    recipients: int = 1,
    department_id: Optional[str] = None,
    payment_method_id: Optional[str] = None,
) -> PaymentSummary:
    """
    Quote ``recipients`` unlocks at ``price_per_referral`` each.

    Credits carry no processing fee and no currency (the amount is in
    credits). Payment methods add ``fee_percent`` of the base amount.
    """
    price = to_money(price_per_referral)
    base = to_money(price * recipients)

    if source == PaymentSource.CREDIT:
        fee_percent = Decimal("0")
        fee = to_money(0)
        total = base
        currency = None
        message = f"Referral unlock: {base} credits"
        if recipients > 1:
            message = f"Referral to {recipients} receivers: {base} credits"
        calculation = f"{recipients} x {price} credits = {base} credits"
    else:
        fee_percent = Decimal(str(fee_percent))
        fee = to_money(base * fee_percent / Decimal("100"))
        total = to_money(base + fee)
        prefix = "Referral unlock" if recipients == 1 else f"Referral to {recipients} receivers"
        message = (
            f"{prefix}: ${base} + {_fmt_percent(fee_percent)} processing fee "
            f"(${fee}) = ${total}"
        )
        calculation = (
            f"{recipients} x ${price} = ${base}; "
            f"fee {_fmt_percent(fee_percent)} of ${base} = ${fee}; total ${total}"
        )

    return PaymentSummary(
        referral_id=referral_id,
        department_id=department_id,
        source=source,
        base_amount=base,
        fee_percent=fee_percent,
        fee=fee,
        total=total,
        currency=currency,
        message=message,
        calculation=calculation,
        recipients=recipients,
        price_per_referral=price,
        payment_method_id=payment_method_id,
    )
