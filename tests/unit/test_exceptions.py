"""
Unit tests for the exception hierarchy
"""

from core.exceptions import ConsistencyError, ConversionError, PersistenceException, SchemaError


class TestPersistenceException:
    """Test message formatting and structured output"""

    def test_table_and_operation_lead_the_message(self):
        error = ConsistencyError(
            "UPDATE on orders affected 2 rows, expected at most 1",
            context={"table_name": "orders", "operation": "UPDATE", "rows_affected": 2},
        )

        assert error.table_name == "orders"
        assert error.operation == "UPDATE"
        assert str(error) == (
            "ConsistencyError [orders/UPDATE]: UPDATE on orders affected 2 rows, expected at most 1"
            " | Context: rows_affected=2"
        )

    def test_message_without_table(self):
        error = ConversionError("Cannot convert 'x' to int", context={"column": "qty"})

        assert error.table_name is None
        assert str(error) == "ConversionError: Cannot convert 'x' to int | Context: column='qty'"

    def test_cause_is_chained(self):
        cause = NameError("name 'Order' is not defined")
        error = SchemaError("Cannot resolve annotations of Item", original_exception=cause)

        assert error.__cause__ is cause
        assert str(error).endswith("| Caused by: NameError: name 'Order' is not defined")

    def test_to_dict(self):
        error = ConsistencyError(
            "REMOVE on order_items affected 3 rows",
            context={"table_name": "order_items", "operation": "REMOVE", "rows_affected": 3},
        )

        data = error.to_dict()

        assert data["error_type"] == "ConsistencyError"
        assert data["table_name"] == "order_items"
        assert data["operation"] == "REMOVE"
        assert data["context"]["rows_affected"] == 3
        assert data["original_error"] is None
        assert isinstance(error, PersistenceException)
