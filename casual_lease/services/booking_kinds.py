"""Uniform access to the three booking tables.

Site, vacant shop, and third-line bookings live in separate tables with
identical columns. Each ``BookingKind`` bundles the table, its asset table,
and the few behaviours that differ, so payment confirmation, cancellation
and reminders are written once and instantiated per kind.
"""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from casual_lease.models.booking import Booking, BookingColumns, BookingType, ThirdLineBooking, VacantShopBooking
from casual_lease.models.centre import ShoppingCentre, Site, ThirdLineAsset, VacantShop


@dataclass(frozen=True)
class BookingKind:
    booking_type: BookingType
    model: type[BookingColumns]
    asset_model: type[Site] | type[VacantShop] | type[ThirdLineAsset]
    # Payment confirmation writes a status history row (site bookings only)
    records_payment_history: bool = False
    # Payment confirmation queues an invoice for dispatch (site bookings only)
    dispatches_invoice: bool = False


BOOKING_KINDS: dict[BookingType, BookingKind] = {
    BookingType.SITE: BookingKind(
        booking_type=BookingType.SITE,
        model=Booking,
        asset_model=Site,
        records_payment_history=True,
        dispatches_invoice=True,
    ),
    BookingType.VACANT_SHOP: BookingKind(
        booking_type=BookingType.VACANT_SHOP,
        model=VacantShopBooking,
        asset_model=VacantShop,
    ),
    BookingType.THIRD_LINE: BookingKind(
        booking_type=BookingType.THIRD_LINE,
        model=ThirdLineBooking,
        asset_model=ThirdLineAsset,
    ),
}


def get_kind(booking_type: BookingType | str) -> BookingKind:
    """Look up a booking kind by enum or raw value. Raises ValueError if unknown."""
    return BOOKING_KINDS[BookingType(booking_type)]


async def get_booking(db: AsyncSession, kind: BookingKind, booking_id: int) -> BookingColumns | None:
    result = await db.execute(
        select(kind.model).where(kind.model.id == booking_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def load_asset_chain(
    db: AsyncSession, kind: BookingKind, booking: BookingColumns
) -> tuple[Site | VacantShop | ThirdLineAsset | None, ShoppingCentre | None]:
    """Resolve booking -> asset -> centre. Either element may be None if missing."""
    asset_result = await db.execute(select(kind.asset_model).where(kind.asset_model.id == booking.asset_id))
    asset = asset_result.scalar_one_or_none()
    if asset is None:
        return None, None

    centre_result = await db.execute(select(ShoppingCentre).where(ShoppingCentre.id == asset.centre_id))
    return asset, centre_result.scalar_one_or_none()
