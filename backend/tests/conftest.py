"""
Pytest configuration and shared fixtures for the order service tests.

Provides an in-memory SQLite session, an ASGI test client bound to it,
users / products / orders factories and bearer-token headers.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

# Must be set before config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from typing import AsyncGenerator

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from database import Base, get_db
from config import settings
from middleware.auth import issue_access_token
from middleware.rate_limit import limiter

# ── Test Configuration ───────────────────────────────────────────────
# Set test-only values for settings that would normally come from .env
if not settings.jwt_secret:
    settings.jwt_secret = "test-jwt-secret-for-pytest-only"
settings.razorpay_key_id = "rzp_test_key"
settings.razorpay_key_secret = "rzp_test_key_secret"
settings.razorpay_webhook_secret = "rzp_test_webhook_secret"
settings.delhivery_auth_token = "test-delhivery-token"
settings.resend_api_key = ""

SAMPLE_ADDRESS = {
    "firstName": "Asha",
    "lastName": "Rao",
    "phoneNumber": "9876543210",
    "address1": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "zipCode": "560001",
    "country": "India",
}


def auth_headers(user) -> dict:
    """Authorization header with a valid JWT for the given user row."""
    token = issue_access_token(user_id=user.id, role=user.role, email=user.email, name=user.name)
    return {"Authorization": f"Bearer {token}"}


# ── Database Fixtures ────────────────────────────────────────────────


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an in-memory SQLite database session for each test.

    Uses StaticPool to allow in-memory SQLite with async SQLAlchemy.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    ASGI test client sharing the test DB session.

    Overrides get_db and resets the in-memory rate limiter around each test.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
    limiter.reset()


# ── Test Data Fixtures ────────────────────────────────────────────────


@pytest.fixture
async def customer(db_session: AsyncSession):
    from db_models import User

    user = User(email="buyer@example.com", name="Test Buyer", role="customer")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
async def other_customer(db_session: AsyncSession):
    from db_models import User

    user = User(email="someone.else@example.com", name="Someone Else", role="customer")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
async def staff_user(db_session: AsyncSession):
    from db_models import User

    user = User(email="admin@example.com", name="Store Admin", role="admin")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
async def product(db_session: AsyncSession):
    from db_models import Product

    item = Product(name="Classic Tee", slug="classic-tee", price=499.0, stock_quantity=10, sold=0)
    db_session.add(item)
    await db_session.commit()
    return item


@pytest.fixture
def make_order(db_session: AsyncSession, customer, product):
    """
    Factory for orders with one item per entry of `item_statuses`.

    The order status defaults to the first item's status.
    """
    from db_models import Order, OrderItem

    async def _make(
        item_statuses=("pending",),
        status=None,
        user=None,
        payment_method="razorpay",
        is_paid=False,
        shipping_address=None,
    ):
        owner = user or customer
        order = Order(
            user=owner,
            status=status or item_statuses[0],
            payment_method=payment_method,
            is_paid=is_paid,
            shipping_address=dict(shipping_address or SAMPLE_ADDRESS),
            items_price=product.price * len(item_statuses),
            total_amount=product.price * len(item_statuses),
        )
        for index, item_status in enumerate(item_statuses):
            order.items.append(
                OrderItem(
                    product_id=product.id,
                    name=f"{product.name} #{index + 1}",
                    size="M",
                    quantity=1,
                    price=product.price,
                    status=item_status,
                )
            )
        db_session.add(order)
        await db_session.commit()
        return order

    return _make


@pytest.fixture
def customer_headers(customer) -> dict:
    return auth_headers(customer)


@pytest.fixture
def staff_headers(staff_user) -> dict:
    return auth_headers(staff_user)


@pytest.fixture
def make_headers():
    return auth_headers


@pytest.fixture
def sample_address() -> dict:
    return dict(SAMPLE_ADDRESS)
