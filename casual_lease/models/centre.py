"""Owner, shopping centre, and leasable asset models.

Owner = the landlord that receives booking revenue (net of platform fee).
ShoppingCentre = a centre belonging to one owner.
Site / VacantShop / ThirdLineAsset = the three kinds of leasable asset inside a centre.
"""

from sqlalchemy import Boolean, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from casual_lease.models.base import Base, TimestampMixin


class Owner(TimestampMixin, Base):
    __tablename__ = "owners"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320))
    commission_percentage: Mapped[float] = mapped_column(Numeric(5, 2, asdecimal=False), default=0.0, nullable=False)

    def __repr__(self) -> str:
        return f"<Owner {self.name}>"


class ShoppingCentre(TimestampMixin, Base):
    __tablename__ = "shopping_centres"

    id: Mapped[int] = mapped_column(primary_key=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("owners.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    centre_code: Mapped[str | None] = mapped_column(String(50), unique=True)
    suburb: Mapped[str | None] = mapped_column(String(100))
    state: Mapped[str | None] = mapped_column(String(50))

    def __repr__(self) -> str:
        return f"<ShoppingCentre {self.name}>"


class Site(TimestampMixin, Base):
    """A casual leasing site (pop-up space in a mall walkway)."""

    __tablename__ = "sites"

    id: Mapped[int] = mapped_column(primary_key=True)
    centre_id: Mapped[int] = mapped_column(
        ForeignKey("shopping_centres.id", ondelete="CASCADE"), nullable=False, index=True
    )
    site_number: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @property
    def label(self) -> str:
        return f"Site {self.site_number}"

    def __repr__(self) -> str:
        return f"<Site {self.site_number} @ centre {self.centre_id}>"


class VacantShop(TimestampMixin, Base):
    __tablename__ = "vacant_shops"

    id: Mapped[int] = mapped_column(primary_key=True)
    centre_id: Mapped[int] = mapped_column(
        ForeignKey("shopping_centres.id", ondelete="CASCADE"), nullable=False, index=True
    )
    shop_number: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @property
    def label(self) -> str:
        return f"Shop {self.shop_number}"

    def __repr__(self) -> str:
        return f"<VacantShop {self.shop_number} @ centre {self.centre_id}>"


class ThirdLineAsset(TimestampMixin, Base):
    """Third-line income asset: signage, digital screens, car-park activations."""

    __tablename__ = "third_line_assets"

    id: Mapped[int] = mapped_column(primary_key=True)
    centre_id: Mapped[int] = mapped_column(
        ForeignKey("shopping_centres.id", ondelete="CASCADE"), nullable=False, index=True
    )
    asset_number: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @property
    def label(self) -> str:
        return f"Asset {self.asset_number}"

    def __repr__(self) -> str:
        return f"<ThirdLineAsset {self.asset_number} @ centre {self.centre_id}>"
