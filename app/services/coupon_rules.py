"""
Coupon eligibility rules.

Every optional restriction on a coupon is one entry in ``COUPON_RULES``. The
table is evaluated top to bottom and the first failing rule decides the
error, so precedence is the order of the table. Adding a restriction means
adding a row.

Validation is read-only: it never touches ``usage_count`` and never writes a
CouponUsage row. Consumption happens once, at settlement.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, NamedTuple, Optional, Sequence

from sqlalchemy import func, select

from app.errors import CouponError
from app.models import Coupon, CouponUsage, Sale
from app.services.pricing import PERCENTAGE, compute_discount
from app.services.time_of_day import TimeOfDay


@dataclass(frozen=True)
class CouponLine:
    amount: int
    service_id: Optional[int] = None
    category: Optional[str] = None


@dataclass
class CouponContext:
    subtotal: int
    now: datetime
    customer_id: Optional[int] = None
    service_ids: Sequence[int] = ()
    categories: Sequence[str] = ()
    weekday: Optional[int] = None
    time_of_day: Optional[str] = None
    lines: Sequence[CouponLine] = ()
    # Counting callbacks; only invoked when a rule needs them
    customer_usage_count: Callable[[], int] = field(default=lambda: 0)
    customer_sale_count: Callable[[], int] = field(default=lambda: 0)

    @property
    def effective_weekday(self):
        return self.now.weekday() if self.weekday is None else self.weekday

    @property
    def effective_time(self):
        if self.time_of_day is None:
            return TimeOfDay.from_time(self.now)
        return TimeOfDay(self.time_of_day)


class CouponRule(NamedTuple):
    reason: str
    passes: Callable
    message: Callable


def _service_allow_list(coupon):
    return {int(i) for i in coupon.applicable_service_ids or []}


def _category_allow_list(coupon):
    return set(coupon.applicable_categories or [])


def _services_allowed(coupon, ctx):
    allowed = _service_allow_list(coupon)
    if not allowed:
        return True
    return bool(ctx.service_ids) and set(ctx.service_ids) <= allowed


def _categories_allowed(coupon, ctx):
    allowed = _category_allow_list(coupon)
    if not allowed:
        return True
    return bool(ctx.categories) and set(ctx.categories) <= allowed


def _weekday_allowed(coupon, ctx):
    weekdays = coupon.applicable_weekdays or []
    return not weekdays or ctx.effective_weekday in weekdays


def _time_allowed(coupon, ctx):
    if not (coupon.start_time and coupon.end_time):
        return True
    return coupon.start_time <= ctx.effective_time <= coupon.end_time


def _customer_limit_ok(coupon, ctx):
    if ctx.customer_id is None or coupon.usage_limit_per_customer is None:
        return True
    return ctx.customer_usage_count() < coupon.usage_limit_per_customer


def _first_time_ok(coupon, ctx):
    if ctx.customer_id is None or not coupon.only_first_time:
        return True
    return ctx.customer_sale_count() == 0


def _returning_ok(coupon, ctx):
    if ctx.customer_id is None or not coupon.only_returning:
        return True
    return ctx.customer_sale_count() > 0


COUPON_RULES = (
    CouponRule(
        "inactive",
        lambda c, ctx: bool(c.is_active),
        lambda c: "This coupon is not currently active",
    ),
    CouponRule(
        "not_yet_valid",
        lambda c, ctx: c.valid_from is None or ctx.now >= c.valid_from,
        lambda c: f"This coupon is valid from {c.valid_from:%Y-%m-%d}",
    ),
    CouponRule(
        "expired",
        lambda c, ctx: c.valid_until is None or ctx.now <= c.valid_until,
        lambda c: "This coupon has expired",
    ),
    CouponRule(
        "usage_limit_reached",
        lambda c, ctx: c.usage_limit is None or (c.usage_count or 0) < c.usage_limit,
        lambda c: "This coupon has reached its usage limit",
    ),
    CouponRule(
        "below_minimum",
        lambda c, ctx: c.minimum_amount is None or ctx.subtotal >= c.minimum_amount,
        lambda c: f"This coupon requires a subtotal of at least {c.minimum_amount}",
    ),
    CouponRule(
        "service_not_applicable",
        _services_allowed,
        lambda c: "This coupon does not apply to the selected services",
    ),
    CouponRule(
        "category_not_applicable",
        _categories_allowed,
        lambda c: "This coupon does not apply to the selected categories",
    ),
    CouponRule(
        "weekday_not_applicable",
        _weekday_allowed,
        lambda c: "This coupon cannot be used on this day of the week",
    ),
    CouponRule(
        "outside_time_window",
        _time_allowed,
        lambda c: f"This coupon can be used between {c.start_time} and {c.end_time}",
    ),
    CouponRule(
        "customer_limit_reached",
        _customer_limit_ok,
        lambda c: "You have already used this coupon the maximum number of times",
    ),
    CouponRule(
        "first_time_only",
        _first_time_ok,
        lambda c: "This coupon is for first-time customers only",
    ),
    CouponRule(
        "returning_only",
        _returning_ok,
        lambda c: "This coupon is for returning customers only",
    ),
)


def check_coupon_rules(coupon, ctx, rules=COUPON_RULES):
    for rule in rules:
        if not rule.passes(coupon, ctx):
            raise CouponError(rule.reason, rule.message(coupon))


def applicable_subtotal(coupon, ctx):
    """
    Amount the discount is computed on.

    With a service or category allow-list and itemised lines, only the
    matching lines count; otherwise the whole subtotal does.
    """
    services = _service_allow_list(coupon)
    categories = _category_allow_list(coupon)
    if not (services or categories) or not ctx.lines:
        return ctx.subtotal
    return sum(
        line.amount
        for line in ctx.lines
        if (services and line.service_id in services)
        or (categories and line.category in categories)
    )


@dataclass(frozen=True)
class CouponValidation:
    coupon: Coupon
    discount_amount: int
    applicable_subtotal: int

    @property
    def message(self):
        if self.coupon.discount_type == PERCENTAGE:
            return f"{self.coupon.value}% off: {self.discount_amount} discount"
        return f"{self.discount_amount} discount"

    def to_dict(self):
        return {
            "valid": True,
            "coupon": {
                "id": self.coupon.id,
                "code": self.coupon.code,
                "name": self.coupon.name,
                "type": self.coupon.discount_type,
                "value": self.coupon.value,
                "description": self.coupon.description,
            },
            "discount_amount": self.discount_amount,
            "applicable_subtotal": self.applicable_subtotal,
            "message": self.message,
        }


def evaluate_coupon(coupon, ctx):
    check_coupon_rules(coupon, ctx)
    base = applicable_subtotal(coupon, ctx)
    return CouponValidation(
        coupon=coupon,
        discount_amount=compute_discount(coupon.discount_type, coupon.value, base),
        applicable_subtotal=base,
    )


def find_coupon(session, code):
    if not code or not code.strip():
        raise CouponError("not_found", "Coupon code is required")
    coupon = session.scalar(select(Coupon).where(Coupon.code == code.strip().upper()))
    if coupon is None:
        raise CouponError("not_found", "Coupon not found")
    return coupon


def count_customer_usage(session, coupon_id, customer_id):
    return session.scalar(
        select(func.count(CouponUsage.id)).where(
            CouponUsage.coupon_id == coupon_id,
            CouponUsage.customer_id == customer_id,
        )
    )


def count_settled_sales(session, customer_id):
    return session.scalar(
        select(func.count(Sale.id)).where(
            Sale.customer_id == customer_id, Sale.payment_status == "PAID"
        )
    )


def validate_coupon(
    session,
    code,
    subtotal,
    now,
    customer_id=None,
    service_ids=(),
    categories=(),
    weekday=None,
    time_of_day=None,
    lines=(),
):
    """Look a coupon up by code and run every rule against the given purchase."""
    coupon = find_coupon(session, code)
    ctx = CouponContext(
        subtotal=subtotal,
        now=now,
        customer_id=customer_id,
        service_ids=list(service_ids),
        categories=list(categories),
        weekday=weekday,
        time_of_day=time_of_day,
        lines=list(lines),
        customer_usage_count=lambda: count_customer_usage(
            session, coupon.id, customer_id
        ),
        customer_sale_count=lambda: count_settled_sales(session, customer_id),
    )
    return evaluate_coupon(coupon, ctx)
