"""
Pytest configuration and fixtures
"""

import pytest
from sqlalchemy import MetaData, text
from sqlalchemy.pool import StaticPool

from core.database import create_db_engine
from models.ddl import to_metadata
from persistence.manager import EntityManager
from persistence.registry import SchemaRegistry
from tests.records import Document, Order

# In-memory database shared by every connection of one engine
TEST_DATABASE_URL = "sqlite://"


@pytest.fixture(scope="function")
def test_engine():
    """Create test database engine"""
    engine = create_db_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    engine.dispose()


@pytest.fixture
def registry():
    """Registry holding the sample aggregates"""
    registry = SchemaRegistry()
    registry.register(Order, "orders")
    registry.register(Document, "documents")
    return registry


@pytest.fixture
def order_entity(registry):
    return registry.lookup(Order)


@pytest.fixture
def manager(test_engine, registry):
    """Manager bound to a database holding the sample tables"""
    metadata = MetaData()
    for entity in registry.entities():
        to_metadata(entity, metadata)
    metadata.create_all(test_engine)

    manager = EntityManager(registry, test_engine)
    yield manager
    manager.release()


@pytest.fixture
def count_rows(test_engine):
    """Row count of a table"""
    def _count(table_name: str, where: str = "") -> int:
        query = f"SELECT COUNT(*) FROM {table_name}"
        if where:
            query += f" WHERE {where}"
        with test_engine.connect() as conn:
            return conn.execute(text(query)).scalar_one()
    return _count
