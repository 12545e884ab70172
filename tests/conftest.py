"""Shared test fixtures.

Every test gets a fresh in-memory SQLite database built from the ORM
metadata. StaticPool keeps the single connection alive for the life of
the engine so all sessions see the same database.
"""

from datetime import date
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from casual_lease.core.auth import create_access_token
from casual_lease.core.database import get_db
from casual_lease.main import app
from casual_lease.models import (
    Base,
    BookingStatus,
    BookingType,
    CustomerProfile,
    Owner,
    PaymentMethod,
    ShoppingCentre,
    Transaction,
    TransactionType,
    User,
    UserRole,
)
from casual_lease.services.booking_kinds import get_kind


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


_counter = 0


def _next_number() -> int:
    global _counter
    _counter += 1
    return _counter


async def seed_booking(
    db: AsyncSession,
    booking_type: BookingType = BookingType.SITE,
    *,
    customer_email: str | None = "jane@example.com",
    with_profile: bool = True,
    ledgered: bool = False,
    **booking_fields,
) -> SimpleNamespace:
    """Create owner -> centre -> asset -> booking plus a customer and an admin.

    Booking defaults: pending, card payment, unpaid, $1,000.00 + $100.00 GST.
    ``ledgered`` also inserts the original ``booking`` ledger transaction.
    """
    n = _next_number()
    kind = get_kind(booking_type)

    owner = Owner(name=f"Owner {n}", email=f"owner{n}@example.com", commission_percentage=10.0)
    db.add(owner)
    await db.flush()

    centre = ShoppingCentre(owner_id=owner.id, name=f"Westfield {n}", centre_code=f"WF{n}", state="NSW")
    db.add(centre)
    await db.flush()

    number_field = {
        BookingType.SITE: "site_number",
        BookingType.VACANT_SHOP: "shop_number",
        BookingType.THIRD_LINE: "asset_number",
    }[booking_type]
    asset = kind.asset_model(centre_id=centre.id, **{number_field: str(n)})
    db.add(asset)

    customer = User(open_id=f"customer-{n}", name="Jane Citizen", email=customer_email, role=UserRole.CUSTOMER)
    admin = User(open_id=f"admin-{n}", name="Alex Admin", email=f"admin{n}@example.com", role=UserRole.MEGA_ADMIN)
    db.add_all([customer, admin])
    await db.flush()

    if with_profile:
        db.add(
            CustomerProfile(
                user_id=customer.id,
                first_name="Jane",
                last_name="Citizen",
                company_name="Pop Up Pty Ltd",
                trading_name="Pop Up Coffee",
                abn="12345678901",
            )
        )

    fields = {
        "booking_number": f"BK-{booking_type.value.upper()}-{n:04d}",
        "start_date": date(2026, 3, 2),
        "end_date": date(2026, 3, 8),
        "status": BookingStatus.PENDING,
        "total_amount_cents": 100_000,
        "gst_amount_cents": 10_000,
        "gst_percentage": 10.0,
        "owner_amount_cents": 90_000,
        "platform_fee_cents": 10_000,
        "payment_method": PaymentMethod.STRIPE,
    }
    fields.update(booking_fields)
    booking = kind.model(asset_id=asset.id, customer_id=customer.id, **fields)
    db.add(booking)
    await db.flush()

    if ledgered:
        db.add(
            Transaction(
                booking_type=booking_type,
                booking_id=booking.id,
                owner_id=owner.id,
                type=TransactionType.BOOKING,
                amount_cents=booking.total_amount_cents,
                gst_amount_cents=booking.gst_amount_cents,
                gst_percentage=booking.gst_percentage,
                owner_amount_cents=booking.owner_amount_cents,
                platform_fee_cents=booking.platform_fee_cents,
                remitted=False,
            )
        )

    await db.commit()
    return SimpleNamespace(
        kind=kind, owner=owner, centre=centre, asset=asset, customer=customer, admin=admin, booking=booking
    )


@pytest.fixture
def seed(db):
    """``await seed(BookingType.SITE, status=..., ...)`` against the test session."""

    async def _seed(booking_type: BookingType = BookingType.SITE, **kwargs) -> SimpleNamespace:
        return await seed_booking(db, booking_type, **kwargs)

    return _seed


@pytest.fixture
def auth():
    return auth_headers
