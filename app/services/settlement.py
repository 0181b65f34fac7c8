"""
Point-of-sale settlement.

Settlement is the only writer of coupon consumption. The coupon is
re-validated read-only with the same rule table the booking flow uses, then
the sale, its items, its payments, one CouponUsage row and one usage-counter
increment are written in a single transaction.

A client-supplied ``sale_key`` makes the operation idempotent: a retried
request finds the sale it already created and returns it untouched, so a
coupon is never counted twice.
"""
from dataclasses import dataclass
from typing import List, Optional

from flask import current_app
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError

from app.errors import ConflictError, CouponError, NotFoundError, ValidationError
from app.models import (
    Appointment,
    Coupon,
    CouponUsage,
    Discount,
    Payment,
    Sale,
    SaleItem,
)
from app.services.coupon_rules import CouponLine, validate_coupon
from app.services.pricing import compute_discount, reconcile_payments, settlement_totals
from app.services.reservation_writer import check_transition
from app.services.time_of_day import TimeOfDay

SALE_NUMBER_PREFIX = "SALE"


@dataclass
class SaleLine:
    name: str
    unit_price: int
    quantity: int = 1
    item_type: str = "SERVICE"
    service_id: Optional[int] = None
    category: Optional[str] = None
    duration: Optional[int] = None

    @property
    def subtotal(self):
        return self.unit_price * self.quantity


@dataclass
class PaymentLine:
    method: str
    amount: int


@dataclass
class SaleRequest:
    sale_key: str
    lines: List[SaleLine]
    payments: List[PaymentLine]
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    reservation_id: Optional[int] = None
    discount_id: Optional[int] = None
    # manual store discount, ignored when discount_id is given
    discount_amount: int = 0
    coupon_code: Optional[str] = None
    note: Optional[str] = None
    sale_date: object = None
    sale_time: Optional[TimeOfDay] = None


@dataclass
class SettlementResult:
    sale: Sale
    created: bool = True


def _check_request(request):
    if not request.sale_key or not request.sale_key.strip():
        raise ValidationError("sale_key is required")
    if not request.lines:
        raise ValidationError("A sale needs at least one item")
    for line in request.lines:
        if line.quantity < 1:
            raise ValidationError(f"Quantity for {line.name} must be at least 1")
        if line.unit_price < 0:
            raise ValidationError(f"Unit price for {line.name} cannot be negative")
    for payment in request.payments:
        if payment.amount <= 0:
            raise ValidationError("Payment amounts must be positive")
    if request.discount_amount < 0:
        raise ValidationError("discount_amount cannot be negative")


def find_sale_by_key(session, sale_key):
    return session.scalar(select(Sale).where(Sale.sale_key == sale_key))


def next_sale_number(session, sale_date):
    """SALE-YYYYMMDD-NNN, numbered per day."""
    prefix = f"{SALE_NUMBER_PREFIX}-{sale_date:%Y%m%d}-"
    latest = session.scalar(
        select(Sale.sale_number)
        .where(Sale.sale_number.like(f"{prefix}%"))
        .order_by(Sale.sale_number.desc())
        .limit(1)
    )
    sequence = int(latest.rsplit("-", 1)[1]) + 1 if latest else 1
    return f"{prefix}{sequence:03d}"


def store_discount(session, request, subtotal):
    """Returns (discount_id, amount) for the store discount picked at the register."""
    if request.discount_id is not None:
        discount = session.get(Discount, request.discount_id)
        if discount is None or not discount.is_active:
            raise NotFoundError("Discount not found")
        return discount.id, compute_discount(
            discount.discount_type, discount.value, subtotal
        )
    if request.discount_amount > subtotal:
        raise ValidationError("Store discount cannot exceed the subtotal")
    return None, request.discount_amount


def _linked_reservation(session, reservation_id):
    if reservation_id is None:
        return None
    appointment = session.get(Appointment, reservation_id)
    if appointment is None:
        raise NotFoundError("Reservation not found")
    check_transition(appointment.status, "COMPLETED")
    return appointment


def _consume_coupon(session, coupon, sale, customer_id):
    # Guarded increment: a concurrent sale may have used the last slot
    result = session.execute(
        update(Coupon)
        .where(
            Coupon.id == coupon.id,
            or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit),
        )
        .values(usage_count=Coupon.usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise CouponError("usage_limit_reached", "This coupon has reached its usage limit")
    session.add(CouponUsage(coupon_id=coupon.id, sale_id=sale.id, customer_id=customer_id))


def settle_sale(session, settings, clock, request):
    existing = find_sale_by_key(session, request.sale_key)
    if existing is not None:
        current_app.logger.info(
            f"Sale key {request.sale_key} already settled as {existing.sale_number}"
        )
        return SettlementResult(existing, created=False)

    _check_request(request)
    now = clock.now()
    sale_date = request.sale_date or now.date()
    sale_time = request.sale_time or TimeOfDay.from_time(now)

    subtotal = sum(line.subtotal for line in request.lines)
    discount_id, discount_amount = store_discount(session, request, subtotal)

    coupon, coupon_discount = None, 0
    if request.coupon_code:
        validation = validate_coupon(
            session,
            request.coupon_code,
            subtotal,
            now,
            customer_id=request.customer_id,
            service_ids=[line.service_id for line in request.lines if line.service_id],
            categories=[line.category for line in request.lines if line.category],
            weekday=sale_date.weekday(),
            time_of_day=sale_time,
            lines=[
                CouponLine(line.subtotal, line.service_id, line.category)
                for line in request.lines
            ],
        )
        coupon, coupon_discount = validation.coupon, validation.discount_amount

    totals = settlement_totals(
        subtotal, [discount_amount, coupon_discount], settings.tax_rate
    )
    reconcile_payments([p.amount for p in request.payments], totals.total)
    appointment = _linked_reservation(session, request.reservation_id)

    try:
        sale = Sale(
            sale_number=next_sale_number(session, sale_date),
            sale_key=request.sale_key,
            customer_id=request.customer_id,
            customer_name=request.customer_name,
            reservation_id=request.reservation_id,
            subtotal=subtotal,
            discount_id=discount_id,
            discount_amount=discount_amount,
            coupon_id=coupon.id if coupon else None,
            coupon_discount=coupon_discount,
            tax_rate=totals.tax_rate,
            tax_amount=totals.tax,
            total_amount=totals.total,
            payment_method=request.payments[0].method if request.payments else "NONE",
            payment_status="PAID",
            sale_date=sale_date,
            sale_time=sale_time,
            note=request.note or None,
        )
        sale.items = [
            SaleItem(
                item_type=line.item_type,
                service_id=line.service_id,
                name=line.name,
                category=line.category,
                duration=line.duration,
                quantity=line.quantity,
                unit_price=line.unit_price,
                subtotal=line.subtotal,
                order_index=index,
            )
            for index, line in enumerate(request.lines)
        ]
        sale.payments = [
            Payment(payment_method=p.method, amount=p.amount, order_index=index)
            for index, p in enumerate(request.payments)
        ]
        session.add(sale)
        session.flush()

        if coupon is not None:
            _consume_coupon(session, coupon, sale, request.customer_id)
        if appointment is not None:
            appointment.status = "COMPLETED"
        session.commit()
    except IntegrityError as e:
        session.rollback()
        # Lost a race on sale_key (retry in flight) or on the sale number
        existing = find_sale_by_key(session, request.sale_key)
        if existing is not None:
            return SettlementResult(existing, created=False)
        raise ConflictError("Another sale was recorded at the same moment, please retry") from e
    except Exception:
        session.rollback()
        raise

    if coupon is not None:
        session.refresh(coupon)
    current_app.logger.info(
        f"Sale {sale.sale_number} settled: total {sale.total_amount}, tax {sale.tax_amount}"
        + (f", coupon {coupon.code}" if coupon else "")
    )
    return SettlementResult(sale)
