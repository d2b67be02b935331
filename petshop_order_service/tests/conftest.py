"""
Pytest configuration and fixtures for Order Service tests.
"""

import os
import tempfile
from decimal import Decimal
from typing import Any, AsyncGenerator, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

# Set up test environment before settings are first read
_TEST_DB_DIR = tempfile.mkdtemp(prefix="petshop-orders-")
os.environ["ENVIRONMENT"] = "test"
os.environ["KAFKA_ENABLED"] = "false"
os.environ["LOW_STOCK_THRESHOLD"] = "10"
os.environ["ORDER_DATABASE_URL"] = (
    f"sqlite+aiosqlite:///{os.path.join(_TEST_DB_DIR, 'app.db')}"
)

from petshop_order_service.app.core.database import OrderServiceDatabaseManager
from petshop_order_service.app.core.locks import order_locks, product_locks
from petshop_order_service.app.core.settings import get_settings
from petshop_order_service.app.events.base import EventPublisher
from petshop_order_service.app.events.dispatcher import NotificationDispatcher
from petshop_order_service.app.models import Customer, Product
from petshop_order_service.app.services.order_service import OrderService


@pytest.fixture(autouse=True)
def reset_lock_registries():
    """Start every test with empty lock registries"""
    product_locks.clear()
    order_locks.clear()
    yield
    product_locks.clear()
    order_locks.clear()


@pytest.fixture(scope="session")
def test_settings():
    """Get test settings."""
    return get_settings()


@pytest.fixture
async def db_manager(tmp_path) -> AsyncGenerator[OrderServiceDatabaseManager, None]:
    """Fresh SQLite database per test."""
    manager = OrderServiceDatabaseManager(
        f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}"
    )
    await manager.create_tables()
    yield manager
    await manager.close()


@pytest.fixture
async def db_session(db_manager) -> AsyncGenerator[Any, None]:
    """Create a test database session."""
    async with db_manager.async_session_maker() as session:
        yield session


@pytest.fixture
def mock_publisher() -> AsyncMock:
    """Publisher double recording every delivered event."""
    return AsyncMock(spec=EventPublisher)


@pytest.fixture
def dispatcher(mock_publisher) -> NotificationDispatcher:
    return NotificationDispatcher(mock_publisher)


@pytest.fixture
async def catalog(db_manager) -> Dict[str, int]:
    """Seed two customers and a small product catalog."""
    async with db_manager.async_session_maker() as session:
        alice = Customer(name="Alice", email="alice@example.com")
        bob = Customer(name="Bob", email="bob@example.com")
        kibble = Product(name="Dog Kibble", price=Decimal("9.90"), stock_quantity=5)
        leash = Product(name="Leash", price=Decimal("15.00"), stock_quantity=20)
        catnip = Product(name="Catnip", price=Decimal("3.50"), stock_quantity=12)
        retired = Product(
            name="Retired Toy", price=Decimal("1.00"), stock_quantity=50, is_active=False
        )
        session.add_all([alice, bob, kibble, leash, catnip, retired])
        await session.commit()

        return {
            "alice": alice.id,
            "bob": bob.id,
            "kibble": kibble.id,
            "leash": leash.id,
            "catnip": catnip.id,
            "retired": retired.id,
        }


@pytest.fixture
def order_service(db_session, dispatcher) -> OrderService:
    return OrderService(db_session, dispatcher)


@pytest.fixture
def delivered(mock_publisher):
    """Events handed to the publisher, optionally filtered by type."""

    def _delivered(event_type: Optional[str] = None) -> List[Any]:
        events = [call.args[0] for call in mock_publisher.publish.await_args_list]
        if event_type is None:
            return events
        return [e for e in events if e.event_type == event_type]

    return _delivered
