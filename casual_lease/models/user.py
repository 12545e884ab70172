"""User and customer profile models.

User = a person with a login (customer, centre owner staff, or platform admin).
CustomerProfile = registration details for a customer (company / trading name, ABN).
"""

import enum

from sqlalchemy import Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from casual_lease.models.base import Base, TimestampMixin, enum_values


class UserRole(enum.StrEnum):
    CUSTOMER = "customer"
    OWNER_CENTRE_MANAGER = "owner_centre_manager"
    OWNER_MARKETING_MANAGER = "owner_marketing_manager"
    OWNER_REGIONAL_ADMIN = "owner_regional_admin"
    OWNER_STATE_ADMIN = "owner_state_admin"
    OWNER_SUPER_ADMIN = "owner_super_admin"
    MEGA_STATE_ADMIN = "mega_state_admin"
    MEGA_ADMIN = "mega_admin"


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    open_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(Text)
    email: Mapped[str | None] = mapped_column(String(320), index=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", values_callable=enum_values),
        default=UserRole.CUSTOMER,
        nullable=False,
    )

    @property
    def is_admin(self) -> bool:
        return self.role != UserRole.CUSTOMER

    def __repr__(self) -> str:
        return f"<User {self.id} {self.role.value}>"


class CustomerProfile(TimestampMixin, Base):
    __tablename__ = "customer_profiles"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    first_name: Mapped[str | None] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100))
    phone: Mapped[str | None] = mapped_column(String(20))
    company_name: Mapped[str | None] = mapped_column(String(255))
    trading_name: Mapped[str | None] = mapped_column(String(255))
    abn: Mapped[str | None] = mapped_column(String(11))

    def __repr__(self) -> str:
        return f"<CustomerProfile user={self.user_id}>"
