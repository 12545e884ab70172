"""All models imported here for Alembic autogenerate discovery."""

from casual_lease.models.audit import AuditLog, BookingStatusHistory
from casual_lease.models.base import Base
from casual_lease.models.booking import (
    Booking,
    BookingStatus,
    BookingType,
    PaymentMethod,
    RefundStatus,
    ThirdLineBooking,
    VacantShopBooking,
)
from casual_lease.models.centre import Owner, ShoppingCentre, Site, ThirdLineAsset, VacantShop
from casual_lease.models.outbox import InvoiceOutbox, ProcessedCheckoutSession
from casual_lease.models.transaction import Transaction, TransactionType
from casual_lease.models.user import CustomerProfile, User, UserRole

__all__ = [
    "Base",
    "User",
    "UserRole",
    "CustomerProfile",
    "Owner",
    "ShoppingCentre",
    "Site",
    "VacantShop",
    "ThirdLineAsset",
    "Booking",
    "VacantShopBooking",
    "ThirdLineBooking",
    "BookingType",
    "BookingStatus",
    "PaymentMethod",
    "RefundStatus",
    "Transaction",
    "TransactionType",
    "BookingStatusHistory",
    "AuditLog",
    "ProcessedCheckoutSession",
    "InvoiceOutbox",
]
