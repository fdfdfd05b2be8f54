"""Fixtures compartidas: BD SQLite temporal, gestor de ordenes y datos base."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select, update

from ordermgr.config import Settings
from ordermgr.core.orders import OrderTransactionManager
from ordermgr.main import create_app
from ordermgr.storage.db import Database
from ordermgr.storage.models import Customer, Order, OrderItem, Product


@pytest.fixture
def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'orders.db'}", pool_size=5, max_overflow=0, pool_timeout=1)
    db.create_schema()
    yield db
    db.dispose()


@pytest.fixture
def manager(database):
    return OrderTransactionManager(database)


@pytest.fixture
def seed(database):
    """Cliente C1 y productos P1 (4.00) y P2 (10.00)."""
    with database.session_scope() as session:
        session.add(Customer(id="C1", name="Ada Lovelace", email="ada@example.com", phone="555-0100"))
        session.add(Customer(id="C2", name="Grace Hopper", email="grace@example.com"))
        session.add(Product(id="P1", name="Coffee beans", unit_price=Decimal("4.00"), units="oz"))
        session.add(Product(id="P2", name="Tea tin", unit_price=Decimal("10.00"), units="each"))
    return {"customers": ["C1", "C2"], "products": ["P1", "P2"]}


@pytest.fixture
def counts(database):
    def _counts():
        with database.session_scope() as session:
            return (
                session.execute(select(func.count()).select_from(Order)).scalar_one(),
                session.execute(select(func.count()).select_from(OrderItem)).scalar_one(),
            )
    return _counts


@pytest.fixture
def client(database):
    settings = Settings(database_url=str(database.url), create_schema=True)
    app = create_app(settings=settings, database=database)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_item():
    def _item(product_id="P1", quantity=2, weight_oz=8, unit_price="4.00"):
        return {
            "product_id": product_id,
            "quantity": quantity,
            "weight_oz": weight_oz,
            "unit_price": unit_price,
        }
    return _item


@pytest.fixture
def set_created_order(database):
    """Fija created_at de las ordenes dadas: una hora entre cada una, en ese orden."""
    def _set(order_ids):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        with database.session_scope() as session:
            for n, order_id in enumerate(order_ids):
                session.execute(
                    update(Order).where(Order.id == order_id).values(created_at=base + timedelta(hours=n))
                )
    return _set
