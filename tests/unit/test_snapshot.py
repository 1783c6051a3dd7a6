"""
Unit tests for the reconciliation row snapshot
"""

import pytest
from unittest.mock import MagicMock

from persistence.store import RowSnapshot, RowStatus, _check_rowcount
from core.exceptions import ConsistencyError


class TestRowSnapshot:
    """Test sorted (table number, key) bookkeeping"""

    def test_rows_are_sorted(self):
        snapshot = RowSnapshot([(2, 5), (0, 1), (1, 9), (1, 3)])

        assert snapshot.rows == [(0, 1), (1, 3), (1, 9), (2, 5)]

    def test_find(self):
        snapshot = RowSnapshot([(0, 1), (1, 3), (1, 9)])

        assert snapshot.find(1, 9) == 2
        assert snapshot.find(1, 4) == -1
        assert snapshot.has_row(0, 1)
        assert not snapshot.has_row(2, 1)

    def test_string_keys(self):
        snapshot = RowSnapshot([(0, "doc-b"), (0, "doc-a")])

        assert snapshot.has_row(0, "doc-a")
        assert not snapshot.has_row(0, "doc-c")

    def test_mark_counts_outcomes(self):
        snapshot = RowSnapshot([(0, 1), (1, 3), (1, 9)])

        snapshot.mark(0, 1, RowStatus.UPDATED)
        snapshot.mark(1, 3, RowStatus.SKIPPED)
        snapshot.mark(1, 12, RowStatus.INSERTED)

        assert (snapshot.updated, snapshot.skipped, snapshot.inserted) == (1, 1, 1)
        assert snapshot.missed == 0
        assert snapshot.changed

    def test_mark_unknown_row_is_missed(self):
        snapshot = RowSnapshot([(0, 1)])

        snapshot.mark(1, 7, RowStatus.UPDATED)

        assert snapshot.missed == 1

    def test_unvisited_rows_deepest_table_first(self):
        snapshot = RowSnapshot([(0, 1), (1, 3), (1, 9), (2, 4), (3, 8)])
        snapshot.mark(0, 1, RowStatus.SKIPPED)
        snapshot.mark(1, 9, RowStatus.UPDATED)

        assert snapshot.unvisited() == [(3, 8), (2, 4), (1, 3)]

    def test_report(self):
        snapshot = RowSnapshot([(0, 1)])
        snapshot.mark(0, 1, RowStatus.SKIPPED)

        report = snapshot.report(1)

        assert report.primary_key == 1
        assert report.skipped == 1
        assert report.rows_written == 0
        assert report.saved is True


class TestRowCount:

    def test_more_than_one_row_is_fatal(self):
        table = MagicMock(table_name="orders")

        with pytest.raises(ConsistencyError) as exc_info:
            _check_rowcount(table, "UPDATE", 2)

        assert exc_info.value.context["rows_affected"] == 2

    @pytest.mark.parametrize("rowcount", [0, 1, -1, None])
    def test_expected_counts(self, rowcount):
        _check_rowcount(MagicMock(table_name="orders"), "UPDATE", rowcount)
