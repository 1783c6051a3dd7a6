"""
Unit tests for the dataclass metadata front end
"""

import pytest
from datetime import datetime
from typing import Dict, List, Optional

from models.base import Cardinality, DataType, new_record
from models.table import Field
from persistence.mapping import association_shape, describe, unwrap_optional
from core.exceptions import SchemaError
from tests.records import Address, LineItem, Order, Shipment, Tag


class TestDescribe:
    """Test descriptor extraction"""

    def test_scalar_and_association_descriptors(self):
        descriptors = {d.name: d for d in describe(Order)}

        assert descriptors["id"].primary_key is True
        assert descriptors["version"].token is True
        assert descriptors["customer"].nullable is True
        assert descriptors["customer"].index is True
        assert descriptors["created_at"].native_type is datetime

        items = descriptors["items"]
        assert items.is_association
        assert items.table_name == "order_items"
        assert items.nested_type is LineItem
        assert items.cardinality == Cardinality.ORDERED_MANY

    def test_embedded_records_are_flattened(self):
        descriptors = {d.name: d for d in describe(Order)}

        assert "address" not in descriptors
        assert descriptors["city"].path == ("address", "city")
        assert descriptors["city"].path_types == (Address,)

    def test_declaration_order(self):
        names = [d.name for d in describe(LineItem)]
        assert names == ["id", "order_id", "sku", "qty", "notes"]

    def test_not_a_dataclass(self):
        with pytest.raises(SchemaError):
            describe(int)


class TestAnnotations:
    """Test annotation helpers"""

    def test_unwrap_optional(self):
        assert unwrap_optional(Optional[int]) == (int, True)
        assert unwrap_optional(int) == (int, False)

    @pytest.mark.parametrize("annotation,expected", [
        (List[LineItem], (LineItem, Cardinality.ORDERED_MANY)),
        (Dict[int, Tag], (Tag, Cardinality.KEYED_MANY)),
        (Shipment, (Shipment, Cardinality.SINGLE)),
        (Optional[Shipment], (Shipment, Cardinality.SINGLE)),
        (int, (None, None)),
    ])
    def test_association_shape(self, annotation, expected):
        assert association_shape(annotation) == expected


class TestRecords:
    """Test record instantiation and nested field access"""

    def test_new_record_uses_defaults(self):
        order = new_record(Order)

        assert order.id == 0
        assert order.items == []
        assert order.shipment is None
        assert isinstance(order.address, Address)

    def test_set_value_creates_embedded_record(self):
        field = Field(
            name="city", column="city", data_type=DataType.STRING,
            path=("address", "city"), path_types=(Address,)
        )
        order = Order()
        order.address = None

        field.set_value(order, "Paris")

        assert order.address.city == "Paris"
        assert field.get_value(order) == "Paris"

    def test_get_value_through_missing_embedded_record(self):
        field = Field(
            name="city", column="city", data_type=DataType.STRING,
            path=("address", "city"), path_types=(Address,)
        )
        order = Order()
        order.address = None

        assert field.get_value(order) is None
