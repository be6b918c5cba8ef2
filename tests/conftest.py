"""
Pytest fixtures for the stock ledger test suite.

Provides:
- A fresh in-memory SQLite database per test (``session``)
- A deterministic clock and auth contexts for each role
- Catalog fixtures: two locations, three articles
- Service and selector factories wired to the fixtures above
- Log capture (``captured_logs``) and a recording notification gateway

Concurrency tests build their own file-backed database; see
``tests/concurrency``.
"""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest

from stock_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from stock_kernel.domain.auth import AuthContext, Role
from stock_kernel.domain.clock import DeterministicClock
from stock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from stock_modules.catalog import (
    ArticleCategory,
    CatalogService,
    ContactListAuthorizer,
    ResponsibleContact,
)
from stock_modules.fulfillment import FulfillmentConfig, OrderFulfillmentService, OrderSelector
from stock_modules.ledger import (
    LedgerConfig,
    StockLedger,
    StockLedgerService,
    WriteOffSelector,
    WriteOffService,
)

RESPONSIBLE_EMAIL = "lea.berger@example.org"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture stock_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, fulfillment):
            fulfillment.create(...)
            logs = captured_logs()
            assert any(r["message"] == "order_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("stock_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def session():
    """A session on a fresh in-memory database with every table created."""
    init_engine_from_url("sqlite://")
    create_tables()
    s = get_session()
    yield s
    s.rollback()
    s.close()
    reset_engine()


@pytest.fixture
def clock():
    return DeterministicClock()


# =============================================================================
# Auth contexts
# =============================================================================


@pytest.fixture
def admin_auth():
    return AuthContext(user_id=uuid4(), email="admin@example.org", role=Role.ADMIN)


@pytest.fixture
def responsible_auth():
    """Location-responsible user listed as a contact of ``location``."""
    return AuthContext(user_id=uuid4(), email=RESPONSIBLE_EMAIL, role=Role.LOCATION_RESPONSIBLE)


@pytest.fixture
def outsider_auth():
    """Location-responsible user NOT listed on ``location``."""
    return AuthContext(
        user_id=uuid4(),
        email="tom.weber@example.org",
        role=Role.LOCATION_RESPONSIBLE,
    )


@pytest.fixture
def default_auth():
    """Default-role user listed as a contact of ``location``."""
    return AuthContext(user_id=uuid4(), email="azubi@example.org", role=Role.DEFAULT)


# =============================================================================
# Catalog
# =============================================================================


@pytest.fixture
def catalog(session, clock):
    return CatalogService(session, clock)


@pytest.fixture
def location(catalog, admin_auth):
    return catalog.create_location(
        admin_auth,
        name="Branch Nord",
        address="Hafenstrasse 4",
        postal_code="20457",
        city="Hamburg",
        country="DE",
        contacts=[
            ResponsibleContact(name="Lea Berger", email="Lea.Berger@Example.org", phone="040-1234"),
            ResponsibleContact(name="Azubi", email="azubi@example.org"),
        ],
    )


@pytest.fixture
def other_location(catalog, admin_auth):
    return catalog.create_location(
        admin_auth,
        name="Branch Sued",
        city="Munich",
        contacts=[ResponsibleContact(name="Tom Weber", email="tom.weber@example.org")],
    )


@pytest.fixture
def toner(catalog, admin_auth):
    return catalog.create_article(
        admin_auth,
        name="Toner Black",
        sku="TON-001",
        category=ArticleCategory.CONSUMABLE,
        unit="piece",
        minimum_stock=5,
    )


@pytest.fixture
def paper(catalog, admin_auth):
    return catalog.create_article(
        admin_auth,
        name="Paper A4",
        sku="PAP-A4",
        category=ArticleCategory.OFFICE_SUPPLY,
        unit="ream",
    )


@pytest.fixture
def laptop(catalog, admin_auth):
    return catalog.create_article(
        admin_auth,
        name="Laptop 14",
        sku="HW-LT14",
        category=ArticleCategory.HARDWARE,
        unit="piece",
        service_interval_months=12,
        replacement_interval_years=4,
        responsible_name="IT Desk",
        responsible_email="it@example.org",
    )


# =============================================================================
# Notifications
# =============================================================================


class RecordingNotifier:
    """Notification gateway that records every call."""

    def __init__(self):
        self.shipped = []
        self.received = []
        self.below_minimum = []

    def notify_order_shipped(self, order):
        self.shipped.append(order)

    def notify_order_received(self, order):
        self.received.append(order)

    def notify_stock_below_minimum(self, article, location_id, position):
        self.below_minimum.append((article, location_id, position))


class FailingNotifier:
    """Notification gateway whose every call raises."""

    def notify_order_shipped(self, order):
        raise ConnectionError("mail relay unreachable")

    def notify_order_received(self, order):
        raise ConnectionError("mail relay unreachable")

    def notify_stock_below_minimum(self, article, location_id, position):
        raise ConnectionError("mail relay unreachable")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def failing_notifier():
    return FailingNotifier()


# =============================================================================
# Services and selectors
# =============================================================================


@pytest.fixture
def authorizer(session):
    return ContactListAuthorizer(session)


@pytest.fixture
def ledger_config():
    return LedgerConfig(default_bin="Receiving")


@pytest.fixture
def fulfillment_config():
    return FulfillmentConfig()


@pytest.fixture
def fulfillment(session, authorizer, notifier, fulfillment_config, ledger_config, clock):
    return OrderFulfillmentService(
        session,
        authorizer,
        notifier=notifier,
        config=fulfillment_config,
        ledger_config=ledger_config,
        clock=clock,
    )


@pytest.fixture
def ledger_service(session, authorizer, ledger_config, clock):
    return StockLedgerService(session, authorizer, config=ledger_config, clock=clock)


@pytest.fixture
def write_offs(session, authorizer, notifier, ledger_config, clock):
    return WriteOffService(
        session,
        authorizer,
        notifier=notifier,
        config=ledger_config,
        clock=clock,
    )


@pytest.fixture
def stock_ledger(session):
    return StockLedger(session)


@pytest.fixture
def orders(session):
    return OrderSelector(session)


@pytest.fixture
def write_off_selector(session):
    return WriteOffSelector(session)
