"""
Unit tests for SQL statement builders
"""

import pytest

from persistence import statements as sql
from persistence.registry import SchemaRegistry
from tests.records import Document, Order


@pytest.fixture
def tables():
    """(table, ancestor path) of every sample table, by table name"""
    registry = SchemaRegistry()
    registry.register(Order, "orders")
    registry.register(Document, "documents")
    pairs = {}
    for entity in registry.entities():
        for table, path in sql.walk(entity):
            pairs[table.table_name] = (table, path)
    return pairs


class TestWalk:

    def test_preorder_with_paths(self, tables):
        entity = tables["orders"][0]
        walked = [(t.table_name, [a.table_name for a in p]) for t, p in sql.walk(entity)]

        assert walked == [
            ("orders", []),
            ("order_items", ["orders"]),
            ("item_notes", ["orders", "order_items"]),
            ("order_tags", ["orders"]),
            ("order_shipments", ["orders"]),
        ]


class TestSelect:
    """Test select statements"""

    def test_root(self, tables):
        table, path = tables["orders"]
        assert sql.select_query(table, path) == (
            "SELECT id, version, customer, total, paid, created_at, city, zip_code"
            " FROM orders WHERE id = ?"
        )

    def test_child(self, tables):
        table, path = tables["order_items"]
        assert sql.select_query(table, path) == (
            "SELECT t1.id, t1.order_id, t1.sku, t1.qty FROM order_items t1"
            " INNER JOIN orders t0 ON t0.id = t1.order_id"
            " WHERE t1.order_id = ? ORDER BY t1.id"
        )

    def test_grandchild_joins_every_ancestor(self, tables):
        table, path = tables["item_notes"]
        assert sql.select_query(table, path) == (
            "SELECT t2.id, t2.item_id, t2.note_text FROM item_notes t2"
            " INNER JOIN order_items t1 ON t1.id = t2.item_id"
            " INNER JOIN orders t0 ON t0.id = t1.order_id"
            " WHERE t2.item_id = ? ORDER BY t2.id"
        )


class TestInfo:
    """Test key snapshot statements"""

    def test_root_with_token(self, tables):
        table, path = tables["orders"]
        assert sql.info_query(table, path) == "SELECT id, version FROM orders WHERE id = ?"

    def test_root_without_token(self, tables):
        table, path = tables["documents"]
        assert sql.info_query(table, path) == "SELECT doc_key, 0 FROM documents WHERE doc_key = ?"

    def test_child(self, tables):
        table, path = tables["order_items"]
        assert sql.info_query(table, path) == "SELECT t1.id FROM order_items t1 WHERE t1.order_id = ?"

    def test_grandchild_filters_on_root_key(self, tables):
        table, path = tables["item_notes"]
        assert sql.info_query(table, path) == (
            "SELECT t2.id FROM item_notes t2"
            " INNER JOIN order_items t1 ON t1.id = t2.item_id"
            " WHERE t1.order_id = ?"
        )


class TestInsert:
    """Test insert statements"""

    def test_serial_key_omitted(self, tables):
        table, _ = tables["order_items"]
        assert sql.insert_query(table) == (
            "INSERT INTO order_items (order_id, sku, qty) VALUES (?, ?, ?)"
        )

    def test_returning(self, tables):
        table, _ = tables["order_items"]
        assert sql.insert_query(table, returning=True).endswith(") RETURNING id")

    def test_assigned_key_first(self, tables):
        table, _ = tables["documents"]
        assert sql.insert_query(table, returning=True) == (
            "INSERT INTO documents (doc_key, title, ready) VALUES (?, ?, ?)"
        )

    def test_key_shared_with_parent(self, tables):
        table, _ = tables["order_shipments"]
        assert sql.insert_query(table) == (
            "INSERT INTO order_shipments (order_id, carrier, shipped_at) VALUES (?, ?, ?)"
        )


class TestUpdate:
    """Test update statements"""

    def test_guarded_update(self, tables):
        table, _ = tables["order_items"]
        assert sql.update_query(table, "IS") == (
            "UPDATE order_items SET order_id = ?, sku = ?, qty = ? WHERE id = ?"
            " AND NOT (order_id IS ? AND sku IS ? AND qty IS ?)"
        )

    def test_token_not_compared(self, tables):
        table, _ = tables["orders"]
        query = sql.update_query(table)

        assert query.startswith("UPDATE orders SET version = ?, customer = ?,")
        assert " WHERE id = ? AND version = ? AND NOT (" in query
        assert "version IS NOT DISTINCT FROM" not in query
        assert "customer IS NOT DISTINCT FROM ?" in query
        assert [f.column for f in sql.compare_fields(table)] == [
            "customer", "total", "paid", "created_at", "city", "zip_code"
        ]

    def test_touch(self, tables):
        assert sql.touch_query(tables["orders"][0]) == (
            "UPDATE orders SET version = ? WHERE id = ? AND version = ?"
        )
        assert sql.touch_query(tables["documents"][0]) is None


class TestDelete:
    """Test remove and delete-subtree statements"""

    def test_remove_by_own_key(self, tables):
        table, _ = tables["item_notes"]
        assert sql.remove_query(table) == "DELETE FROM item_notes WHERE id = ?"

    def test_root(self, tables):
        table, path = tables["orders"]
        assert sql.delete_query(table, path) == "DELETE FROM orders WHERE id = ?"

    def test_child(self, tables):
        table, path = tables["order_items"]
        assert sql.delete_query(table, path) == "DELETE FROM order_items WHERE order_id = ?"

    def test_grandchild_nests_subqueries(self, tables):
        table, path = tables["item_notes"]
        assert sql.delete_query(table, path) == (
            "DELETE FROM item_notes WHERE item_id IN"
            " (SELECT id FROM order_items WHERE order_id = ?)"
        )
