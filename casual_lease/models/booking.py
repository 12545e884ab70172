"""Booking models.

A booking reserves one leasable asset for an inclusive date range by one
customer. The three asset kinds each have their own booking table; the
column set is shared through ``BookingColumns`` so the workflows can treat
them uniformly (see ``casual_lease.services.booking_kinds``).

Bookings are never deleted - cancellation is a status transition.
"""

import enum
from datetime import date, datetime
from typing import ClassVar

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from casual_lease.models.base import Base, TimestampMixin, enum_values


class BookingType(enum.StrEnum):
    """Discriminator carried in gateway metadata to pick the booking table."""

    SITE = "site"
    VACANT_SHOP = "vacant_shop"
    THIRD_LINE = "third_line"


class BookingStatus(enum.StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"  # terminal
    COMPLETED = "completed"
    REJECTED = "rejected"


class PaymentMethod(enum.StrEnum):
    INVOICE = "invoice"
    STRIPE = "stripe"


class RefundStatus(enum.StrEnum):
    NOT_REQUIRED = "not_required"  # never paid
    MANUAL = "manual"              # paid by invoice, refunded off-platform
    PENDING = "pending"            # card refund awaiting (re)processing
    PROCESSED = "processed"        # card refund accepted by Stripe


class BookingColumns(TimestampMixin):
    """Columns shared by all three booking tables."""

    __asset_table__: ClassVar[str]

    id: Mapped[int] = mapped_column(primary_key=True)
    booking_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)

    @declared_attr
    def asset_id(cls) -> Mapped[int]:
        return mapped_column(ForeignKey(f"{cls.__asset_table__}.id", ondelete="CASCADE"), nullable=False, index=True)

    @declared_attr
    def customer_id(cls) -> Mapped[int]:
        return mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Inclusive calendar dates
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status", values_callable=enum_values),
        default=BookingStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Money (cents, AUD). total excludes GST.
    total_amount_cents: Mapped[int] = mapped_column(default=0, nullable=False)
    gst_amount_cents: Mapped[int] = mapped_column(default=0, nullable=False)
    gst_percentage: Mapped[float] = mapped_column(Numeric(5, 2, asdecimal=False), default=10.0, nullable=False)
    owner_amount_cents: Mapped[int] = mapped_column(default=0, nullable=False)
    platform_fee_cents: Mapped[int] = mapped_column(default=0, nullable=False)

    # Payment
    payment_method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, name="payment_method", values_callable=enum_values),
        default=PaymentMethod.STRIPE,
        nullable=False,
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    stripe_payment_intent_id: Mapped[str | None] = mapped_column(String(255))

    # Cancellation / refund
    refund_status: Mapped[RefundStatus | None] = mapped_column(
        Enum(RefundStatus, name="refund_status", values_callable=enum_values)
    )
    refund_pending_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    admin_comments: Mapped[str | None] = mapped_column(Text)

    # Approval / invoicing
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_reminder_sent: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    invoice_dispatched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    @property
    def total_with_gst_cents(self) -> int:
        return self.total_amount_cents + self.gst_amount_cents

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.booking_number} {self.status.value}>"


class Booking(BookingColumns, Base):
    """Casual leasing site booking - the primary booking table."""

    __tablename__ = "bookings"
    __asset_table__ = "sites"


class VacantShopBooking(BookingColumns, Base):
    __tablename__ = "vacant_shop_bookings"
    __asset_table__ = "vacant_shops"


class ThirdLineBooking(BookingColumns, Base):
    __tablename__ = "third_line_bookings"
    __asset_table__ = "third_line_assets"
