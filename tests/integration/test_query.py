"""
Integration tests for ad-hoc queries
"""

import pytest

from schemas.query import QueryRequest, WhereCriteria, WhereOperation
from core.exceptions import QueryError
from tests.records import LineItem, Order


@pytest.fixture
def orders(manager):
    """Three stored orders"""
    records = [
        Order(customer="Alice", total=10.5, items=[LineItem(sku="A", qty=1)]),
        Order(customer="Bob", total=25.0, items=[LineItem(sku="B", qty=2), LineItem(sku="C", qty=3)]),
        Order(customer=None, total=40.0, paid=True),
    ]
    for record in records:
        manager.put(record)
    return records


def test_filter_and_sort(manager, orders):
    request = (
        QueryRequest()
        .where(WhereCriteria(field="total", operation=WhereOperation.GREATER, value=15))
        .order_by("total", ascending=False)
    )

    results = manager.query(Order, request)

    assert [r.total for r in results] == [40.0, 25.0]
    assert [item.sku for item in results[1].items] == ["B", "C"]


def test_header_only_skips_children(manager, orders):
    request = QueryRequest(header_only=True).where(WhereCriteria(field="customer", value="Bob"))

    results = manager.query(Order, request)

    assert len(results) == 1
    assert results[0].items == []


def test_or_groups(manager, orders):
    request = (
        QueryRequest()
        .where(WhereCriteria(field="customer", operation=WhereOperation.LIKE, value="Al%"))
        .or_(WhereCriteria(field="paid", value=True))
        .order_by("id")
    )

    results = manager.query(Order, request)

    assert [r.id for r in results] == [orders[0].id, orders[2].id]


def test_null_criteria(manager, orders):
    missing = manager.query_ids(Order, QueryRequest().where(WhereCriteria(field="customer", value=None)))
    present = manager.query_ids(
        Order,
        QueryRequest().where(WhereCriteria(field="customer", value=None, exclude=True)).order_by("id"),
    )

    assert missing == [orders[2].id]
    assert present == [orders[0].id, orders[1].id]


def test_limit_and_offset(manager, orders):
    request = QueryRequest(limit=2, offset=1).order_by("total")

    assert manager.query_ids(Order, request) == [orders[1].id, orders[2].id]


def test_no_criteria_returns_everything(manager, orders):
    assert sorted(manager.query_ids(Order)) == sorted(o.id for o in orders)


def test_unknown_sort_field(manager, orders):
    with pytest.raises(QueryError):
        manager.query(Order, QueryRequest().order_by("missing"))
