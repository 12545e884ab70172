"""Append-only audit models: booking status history and the generic audit log."""

from sqlalchemy import Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from casual_lease.models.base import Base, TimestampMixin, enum_values
from casual_lease.models.booking import BookingStatus, BookingType


class BookingStatusHistory(TimestampMixin, Base):
    """One row per booking status transition. Never updated."""

    __tablename__ = "booking_status_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    booking_type: Mapped[BookingType] = mapped_column(
        Enum(BookingType, name="booking_type", values_callable=enum_values),
        default=BookingType.SITE,
        nullable=False,
    )
    booking_id: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_status: Mapped[BookingStatus | None] = mapped_column(
        Enum(BookingStatus, name="booking_status", values_callable=enum_values)
    )
    new_status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status", values_callable=enum_values),
        nullable=False,
    )
    changed_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))  # None = system
    changed_by_name: Mapped[str | None] = mapped_column(String(255))
    reason: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (Index("ix_status_history_booking", "booking_type", "booking_id"),)

    def __repr__(self) -> str:
        return f"<BookingStatusHistory {self.booking_id} {self.previous_status}->{self.new_status}>"


class AuditLog(TimestampMixin, Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(100))
    entity_id: Mapped[int | None] = mapped_column(Integer)
    changes: Mapped[str | None] = mapped_column(Text)  # JSON-serialised payload
    ip_address: Mapped[str | None] = mapped_column(String(45))

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} {self.entity_type}:{self.entity_id}>"
