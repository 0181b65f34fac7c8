"""
Discount, tax and total arithmetic shared by reservations and the register.

All amounts are integers in minor currency units.

Reservations price tax-exclusive: the total is the service subtotal and the
tax figure is informational. Settlement prices tax-inclusive: the tax is
backed out of the already-inclusive total using the rate snapshotted on the
sale, so a sticker price never moves when the rate changes later.
"""
from dataclasses import dataclass

from app.errors import ValidationError

PERCENTAGE = "PERCENTAGE"
FIXED = "FIXED"


def compute_discount(discount_type, value, subtotal):
    """PERCENTAGE floors to whole units; FIXED never exceeds the subtotal."""
    if subtotal <= 0:
        return 0
    if discount_type == PERCENTAGE:
        return subtotal * value // 100
    if discount_type == FIXED:
        return min(value, subtotal)
    raise ValueError(f"Unknown discount type {discount_type!r}")


def exclusive_tax(amount, rate):
    return amount * rate // 100


def inclusive_tax(total, rate):
    """Tax contained in a tax-inclusive ``total``: floor(total * rate / (100 + rate))."""
    return total * rate // (100 + rate)


@dataclass(frozen=True)
class ReservationTotals:
    subtotal: int
    discount: int
    total: int
    payable: int
    tax_estimate: int

    def to_dict(self):
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "total": self.total,
            "payable": self.payable,
            "tax_estimate": self.tax_estimate,
        }


def reservation_totals(subtotal, discount, tax_rate):
    payable = max(0, subtotal - discount)
    return ReservationTotals(
        subtotal=subtotal,
        discount=discount,
        total=subtotal,
        payable=payable,
        tax_estimate=exclusive_tax(payable, tax_rate),
    )


@dataclass(frozen=True)
class SettlementTotals:
    subtotal: int
    discount_total: int
    total: int
    tax_rate: int
    tax: int


def settlement_totals(subtotal, discounts, tax_rate):
    discount_total = sum(discounts)
    total = max(0, subtotal - discount_total)
    return SettlementTotals(
        subtotal=subtotal,
        discount_total=discount_total,
        total=total,
        tax_rate=tax_rate,
        tax=inclusive_tax(total, tax_rate),
    )


def reconcile_payments(amounts, total):
    """The itemised payments must add up to the total exactly."""
    paid = sum(amounts)
    if paid != total:
        raise ValidationError(
            f"Payment total does not match the amount due (paid: {paid}, due: {total})"
        )
    return paid
