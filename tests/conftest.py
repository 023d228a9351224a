import pytest
from decimal import Decimal

from app import create_app
from app.database import db_session, get_session, create_all, drop_all
from app.domain.enums import DriverStatus
from app.models import Driver
from app.services.cash_ledger_service import SqlCashLedger
from app.services.driver_registry import SqlDriverStore
from app.services.flow_policy import FlowPolicy
from app.services.lifecycle_service import OrderLifecycleController
from app.services.order_service import create_order
from app.services.order_store import SqlOrderStore


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (in-memory SQLite, no Redis)."""
    app = create_app('config.TestConfig')
    return app


@pytest.fixture(autouse=True)
def _database(app):
    """Fresh schema for every test."""
    with app.app_context():
        create_all()
        yield
        db_session.remove()
        drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture
def policy():
    return FlowPolicy.default()


def _add_driver(session, name, status=DriverStatus.AVAILABLE, is_active=True):
    driver = Driver(name=name, phone='555-0100', zone='Centro', status=status.value, is_active=is_active)
    session.add(driver)
    session.commit()
    session.refresh(driver)
    return driver


@pytest.fixture
def driver(session):
    """An available driver."""
    return _add_driver(session, 'Ana Repartidora')


@pytest.fixture
def second_driver(session):
    return _add_driver(session, 'Bruno Repartidor')


@pytest.fixture
def offline_driver(session):
    return _add_driver(session, 'Carla Libre', status=DriverStatus.OFFLINE)


@pytest.fixture
def make_order(session, policy):
    """Factory: create an order through the intake service."""
    def _make(needs_pickup=False, needs_delivery=False, paid=Decimal('0.00'), **overrides):
        data = {
            'customer_name': 'María Pérez',
            'customer_phone': '555-1234',
            'customer_address': 'Calle Falsa 123',
            'items': [
                {'name': 'Camisa', 'item_type': 'piece', 'quantity': 2, 'unit_price': '25.00'},
                {'name': 'Ropa de cama', 'item_type': 'weight', 'quantity': '1.5', 'unit_price': '40.00'},
            ],
            'needs_pickup': needs_pickup,
            'needs_delivery': needs_delivery,
            'pickup': {'slot': 'morning'},
            'delivery': {'slot': 'afternoon'},
            'pickup_cost': '10.00',
            'delivery_cost': '15.00',
            'paid_amount': str(paid),
        }
        data.update(overrides)
        return create_order(data, session, policy)
    return _make


@pytest.fixture
def make_controller(session, policy):
    """Factory: controller over the SQL stores."""
    def _make(allow_reassignment=False, flow_policy=None, cash_ledger=None):
        return OrderLifecycleController(
            order_store=SqlOrderStore(session),
            driver_store=SqlDriverStore(session),
            cash_ledger=cash_ledger or SqlCashLedger(session),
            flow_policy=flow_policy or policy,
            allow_reassignment=allow_reassignment,
        )
    return _make


@pytest.fixture
def controller(make_controller):
    return make_controller()
