from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

Base = declarative_base()
metadata = Base.metadata

APPOINTMENT_STATUSES = ("CONFIRMED", "CANCELLED", "COMPLETED", "NO_SHOW")
DISCOUNT_TYPES = ("PERCENTAGE", "FIXED")


class Service(Base):
    __tablename__ = "service"
    __table_args__ = (
        Index("ix_service_category", "category"),
        CheckConstraint("price >= 0", name="ck_service_price"),
        CheckConstraint("duration > 0", name="ck_service_duration"),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    name = mapped_column(String(100), nullable=False)
    category = mapped_column(String(100), nullable=False)
    # minor currency units
    price = mapped_column(Integer, nullable=False, server_default=text("0"))
    duration = mapped_column(Integer, nullable=False, server_default=text("30"))
    last_booking_time = mapped_column(String(5), nullable=False)
    is_active = mapped_column(Boolean, nullable=False, default=True)
    display_order = mapped_column(Integer, nullable=False, default=0)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )


class Closure(Base):
    """A full-day holiday when start/end are NULL, otherwise a blocked window."""

    __tablename__ = "closure"
    __table_args__ = (
        Index("ix_closure_date", "date"),
        CheckConstraint(
            "(start_time IS NULL AND end_time IS NULL) OR "
            "(start_time IS NOT NULL AND end_time IS NOT NULL AND start_time < end_time)",
            name="ck_closure_window",
        ),
    )

    id = mapped_column(Integer, primary_key=True)
    date = mapped_column(Date, nullable=False)
    start_time = mapped_column(String(5))
    end_time = mapped_column(String(5))
    reason = mapped_column(String(255))
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    @property
    def is_full_day(self):
        return self.start_time is None


class ForcedOpenDay(Base):
    __tablename__ = "forced_open_day"
    __table_args__ = (Index("ux_forced_open_day_date", "date", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    date = mapped_column(Date, nullable=False)
    reason = mapped_column(String(255))
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )


class BookingDay(Base):
    """One row per calendar date; writers lock it to serialise bookings."""

    __tablename__ = "booking_day"

    date = mapped_column(Date, primary_key=True)


class Appointment(Base):
    __tablename__ = "appointment"
    __table_args__ = (
        ForeignKeyConstraint(
            ["coupon_id"], ["coupon.id"], ondelete="SET NULL", name="fk_ap_coupon"
        ),
        Index("ix_appointment_date_status", "date", "status", "start_time"),
        Index("ix_appointment_customer", "customer_id", "date"),
    )

    id = mapped_column(Integer, primary_key=True)
    customer_id = mapped_column(Integer, nullable=False)
    customer_name = mapped_column(String(100))
    customer_email = mapped_column(String(255))
    date = mapped_column(Date, nullable=False)
    start_time = mapped_column(String(5), nullable=False)
    end_time = mapped_column(String(5), nullable=False)
    total_price = mapped_column(Integer, nullable=False, default=0)
    total_duration = mapped_column(Integer, nullable=False, default=0)
    service_summary = mapped_column(String(255))
    status = mapped_column(
        Enum(*APPOINTMENT_STATUSES, name="appointment_status"),
        nullable=False,
        default="CONFIRMED",
    )
    coupon_id = mapped_column(Integer)
    coupon_code = mapped_column(String(50))
    # frozen at booking time, never recomputed
    discount_amount = mapped_column(Integer, nullable=False, default=0)
    note = mapped_column(Text)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    items: Mapped[List["ReservationItem"]] = relationship(
        "ReservationItem",
        uselist=True,
        back_populates="appointment",
        cascade="all, delete-orphan",
        order_by="ReservationItem.order_index",
    )
    coupon: Mapped[Optional["Coupon"]] = relationship("Coupon")


class ReservationItem(Base):
    """Snapshot of a service as it was when the appointment was booked."""

    __tablename__ = "reservation_item"
    __table_args__ = (
        ForeignKeyConstraint(
            ["appointment_id"],
            ["appointment.id"],
            ondelete="CASCADE",
            name="fk_ri_appointment",
        ),
        Index("fk_ri_appointment", "appointment_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    appointment_id = mapped_column(Integer, nullable=False)
    service_id = mapped_column(Integer, nullable=False)
    service_name = mapped_column(String(100), nullable=False)
    category = mapped_column(String(100), nullable=False)
    price = mapped_column(Integer, nullable=False)
    duration = mapped_column(Integer, nullable=False)
    order_index = mapped_column(Integer, nullable=False, default=0)

    appointment: Mapped["Appointment"] = relationship(
        "Appointment", back_populates="items"
    )


class Coupon(Base):
    __tablename__ = "coupon"
    __table_args__ = (
        Index("ux_coupon_code", "code", unique=True),
        CheckConstraint(
            "discount_type <> 'PERCENTAGE' OR (value >= 0 AND value <= 100)",
            name="ck_coupon_percentage",
        ),
        CheckConstraint(
            "NOT (only_first_time AND only_returning)", name="ck_coupon_audience"
        ),
    )

    id = mapped_column(Integer, primary_key=True)
    # stored upper-case, matched case-insensitively
    code = mapped_column(String(50), nullable=False)
    name = mapped_column(String(100), nullable=False)
    description = mapped_column(String(255))
    discount_type = mapped_column(
        Enum(*DISCOUNT_TYPES, name="discount_type"), nullable=False
    )
    value = mapped_column(Integer, nullable=False)
    valid_from = mapped_column(DateTime)
    valid_until = mapped_column(DateTime)
    usage_limit = mapped_column(Integer)
    usage_count = mapped_column(Integer, nullable=False, default=0)
    usage_limit_per_customer = mapped_column(Integer)
    minimum_amount = mapped_column(Integer)
    applicable_service_ids = mapped_column(JSON, nullable=False, default=list)
    applicable_categories = mapped_column(JSON, nullable=False, default=list)
    applicable_weekdays = mapped_column(JSON, nullable=False, default=list)
    start_time = mapped_column(String(5))
    end_time = mapped_column(String(5))
    only_first_time = mapped_column(Boolean, nullable=False, default=False)
    only_returning = mapped_column(Boolean, nullable=False, default=False)
    is_active = mapped_column(Boolean, nullable=False, default=True)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    usages: Mapped[List["CouponUsage"]] = relationship(
        "CouponUsage", uselist=True, back_populates="coupon"
    )


class CouponUsage(Base):
    """Append-only; one row per settled sale that consumed a coupon."""

    __tablename__ = "coupon_usage"
    __table_args__ = (
        ForeignKeyConstraint(["coupon_id"], ["coupon.id"], name="fk_cu_coupon"),
        ForeignKeyConstraint(["sale_id"], ["sale.id"], name="fk_cu_sale"),
        Index("ux_coupon_usage_sale", "sale_id", unique=True),
        Index("ix_coupon_usage_customer", "coupon_id", "customer_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    coupon_id = mapped_column(Integer, nullable=False)
    sale_id = mapped_column(Integer, nullable=False)
    customer_id = mapped_column(Integer)
    used_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    coupon: Mapped["Coupon"] = relationship("Coupon", back_populates="usages")


class Discount(Base):
    """Store discount picked manually at the register."""

    __tablename__ = "discount"
    __table_args__ = (
        CheckConstraint(
            "discount_type <> 'PERCENTAGE' OR (value >= 0 AND value <= 100)",
            name="ck_discount_percentage",
        ),
    )

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(100), nullable=False)
    discount_type = mapped_column(
        Enum(*DISCOUNT_TYPES, name="discount_type"), nullable=False
    )
    value = mapped_column(Integer, nullable=False)
    description = mapped_column(String(255))
    display_order = mapped_column(Integer, nullable=False, default=0)
    is_active = mapped_column(Boolean, nullable=False, default=True)


class Sale(Base):
    __tablename__ = "sale"
    __table_args__ = (
        ForeignKeyConstraint(
            ["reservation_id"],
            ["appointment.id"],
            ondelete="SET NULL",
            name="fk_sale_appointment",
        ),
        ForeignKeyConstraint(["coupon_id"], ["coupon.id"], name="fk_sale_coupon"),
        Index("ux_sale_number", "sale_number", unique=True),
        Index("ux_sale_key", "sale_key", unique=True),
        Index("ix_sale_customer", "customer_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    sale_number = mapped_column(String(32), nullable=False)
    # client-supplied idempotency key
    sale_key = mapped_column(String(64), nullable=False)
    customer_id = mapped_column(Integer)
    customer_name = mapped_column(String(100))
    reservation_id = mapped_column(Integer)
    subtotal = mapped_column(Integer, nullable=False)
    discount_id = mapped_column(Integer)
    discount_amount = mapped_column(Integer, nullable=False, default=0)
    coupon_id = mapped_column(Integer)
    coupon_discount = mapped_column(Integer, nullable=False, default=0)
    tax_rate = mapped_column(Integer, nullable=False)
    tax_amount = mapped_column(Integer, nullable=False)
    total_amount = mapped_column(Integer, nullable=False)
    payment_method = mapped_column(String(50), nullable=False)
    payment_status = mapped_column(String(16), nullable=False, default="PAID")
    sale_date = mapped_column(Date, nullable=False)
    sale_time = mapped_column(String(5), nullable=False)
    note = mapped_column(Text)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    items: Mapped[List["SaleItem"]] = relationship(
        "SaleItem",
        uselist=True,
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.order_index",
    )
    payments: Mapped[List["Payment"]] = relationship(
        "Payment",
        uselist=True,
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="Payment.order_index",
    )
    coupon: Mapped[Optional["Coupon"]] = relationship("Coupon")


class SaleItem(Base):
    __tablename__ = "sale_item"
    __table_args__ = (
        ForeignKeyConstraint(
            ["sale_id"], ["sale.id"], ondelete="CASCADE", name="fk_si_sale"
        ),
        Index("fk_si_sale", "sale_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    sale_id = mapped_column(Integer, nullable=False)
    item_type = mapped_column(Enum("SERVICE", "PRODUCT", name="sale_item_type"))
    service_id = mapped_column(Integer)
    name = mapped_column(String(100), nullable=False)
    category = mapped_column(String(100))
    duration = mapped_column(Integer)
    quantity = mapped_column(Integer, nullable=False, default=1)
    unit_price = mapped_column(Integer, nullable=False)
    subtotal = mapped_column(Integer, nullable=False)
    order_index = mapped_column(Integer, nullable=False, default=0)

    sale: Mapped["Sale"] = relationship("Sale", back_populates="items")


class Payment(Base):
    __tablename__ = "payment"
    __table_args__ = (
        ForeignKeyConstraint(
            ["sale_id"], ["sale.id"], ondelete="CASCADE", name="fk_pay_sale"
        ),
        Index("fk_pay_sale", "sale_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    sale_id = mapped_column(Integer, nullable=False)
    payment_method = mapped_column(String(50), nullable=False)
    amount = mapped_column(Integer, nullable=False)
    order_index = mapped_column(Integer, nullable=False, default=0)

    sale: Mapped["Sale"] = relationship("Sale", back_populates="payments")
