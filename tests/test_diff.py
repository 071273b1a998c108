"""Test per datalens/diff.py - riconciliazione riga per riga."""
from __future__ import annotations

import pytest

from datalens.diff import (
    align_rows,
    diff_rows,
    iter_diff_pages,
    sort_diff_rows,
    values_differ,
    DiffRow,
)


HEADER = ("id", "label")


class TestValuesDiffer:
    def test_equal_after_trim(self):
        assert not values_differ(" a ", "a")

    def test_numeric_within_tolerance(self):
        assert not values_differ("10", "10.5")
        assert not values_differ("10", "10.0")

    def test_numeric_at_tolerance(self):
        assert values_differ("10", "11")

    def test_custom_tolerance(self):
        assert values_differ("10", "10.5", tolerance=0.1)

    def test_text_change(self):
        assert values_differ("a", "b")

    def test_number_vs_text(self):
        assert values_differ("1", "one")

    def test_missing_compare(self):
        assert values_differ("a", None)
        assert not values_differ(None, None)


class TestDiffRows:
    def test_reference_example(self):
        """Seconda riga modificata sull'id; label invariata."""
        rows, stats = diff_rows(HEADER, [("1", "a"), ("2", "b")], HEADER, [("1", "a"), ("3", "b")])
        by_id = {r.id: r for r in rows}
        assert by_id["row_1"].status == "modified"
        assert by_id["row_1"].changed_columns == ("id",)
        assert "label" not in by_id["row_1"].changed_columns
        assert by_id["row_0"].status == "unchanged"
        assert (stats.added, stats.removed, stats.modified, stats.unchanged) == (0, 0, 1, 1)

    def test_self_diff(self, base_profiled):
        profile, table = base_profiled
        rows, stats = diff_rows(profile.column_names, table.rows, profile.column_names, table.rows)
        assert stats.added == stats.removed == stats.modified == 0
        assert stats.unchanged == table.row_count
        assert all(r.status == "unchanged" for r in rows)

    def test_added_and_removed(self):
        base = [("1", "a"), ("2", "b"), ("3", "c")]
        rows, stats = diff_rows(HEADER, base, HEADER, base[:2])
        assert stats.removed == 1
        assert rows[0].id == "row_2" and rows[0].status == "removed"
        assert rows[0].compare_row is None

        rows, stats = diff_rows(HEADER, base[:2], HEADER, base)
        assert stats.added == 1
        assert rows[0].status == "added" and rows[0].base_row is None

    def test_fixture_versions(self, base_profiled, compare_profiled):
        (bp, bt), (cp, ct) = base_profiled, compare_profiled
        rows, stats = diff_rows(bp.column_names, bt.rows, cp.column_names, ct.rows)
        assert (stats.added, stats.removed, stats.modified, stats.unchanged) == (1, 0, 1, 19)
        assert rows[0].id == "row_1"
        assert rows[0].changed_columns == ("score",)
        assert rows[1].id == "row_20" and rows[1].status == "added"

    def test_missing_compare_column_counts_as_change(self):
        rows, stats = diff_rows(HEADER, [("1", "a")], ("id",), [("1",)])
        assert rows[0].status == "modified"
        assert rows[0].changed_columns == ("label",)

    def test_compare_columns_matched_by_trimmed_name(self):
        rows, stats = diff_rows(
            ("id", "label"), [("1", "a")], (" label", "id "), [("a", "1")]
        )
        assert stats.unchanged == 1

    def test_extra_compare_column_ignored(self):
        rows, stats = diff_rows(("id",), [("1",)], ("id", "new"), [("1", "x")])
        assert stats.unchanged == 1


class TestIdColumn:
    def test_key_column_matches_reordered_rows(self):
        base = [("1", "a"), ("2", "b")]
        compare = [("2", "b"), ("1", "a"), ("3", "c")]
        alignment = align_rows(HEADER, base, HEADER, compare, id_column="id")
        assert alignment.identity == "column"
        assert alignment.conditions == []
        rows, stats = diff_rows(HEADER, base, HEADER, compare, id_column="id")
        assert (stats.added, stats.modified, stats.unchanged) == (1, 0, 2)
        assert rows[0].id == "3"

    def test_duplicate_keys_fall_back_to_positions(self):
        base = [("1", "a"), ("1", "b")]
        alignment = align_rows(HEADER, base, HEADER, base, id_column="id")
        assert alignment.identity == "positional"
        assert alignment.conditions == ["id_column_unusable"]
        assert alignment.keys == ["row_0", "row_1"]

    def test_unknown_key_column(self):
        alignment = align_rows(HEADER, [("1", "a")], HEADER, [("1", "a")], id_column="nope")
        assert alignment.conditions == ["id_column_unusable"]


class TestPaging:
    def _alignment(self, n_base, n_compare):
        base = [(str(i), "x") for i in range(n_base)]
        compare = [(str(i), "x") for i in range(n_compare)]
        return align_rows(HEADER, base, HEADER, compare)

    def test_pages_cover_all_rows(self):
        pages = list(iter_diff_pages(self._alignment(25, 23), page_size=10))
        assert [len(p.rows) for p in pages] == [10, 10, 5]
        assert [p.processed for p in pages] == [10, 20, 25]
        assert pages[-1].is_last
        assert pages[-1].stats.removed == 2
        assert pages[-1].stats.total == 25

    def test_running_counts(self):
        pages = list(iter_diff_pages(self._alignment(4, 4), page_size=2))
        assert [p.stats.unchanged for p in pages] == [2, 4]

    def test_lazy(self):
        gen = iter_diff_pages(self._alignment(10, 10), page_size=3)
        first = next(gen)
        assert first.processed == 3
        assert not first.is_last

    def test_invalid_page_size(self):
        with pytest.raises(ValueError):
            next(iter_diff_pages(self._alignment(1, 1), page_size=0))


def test_sort_order():
    rows = [
        DiffRow("row_3", "unchanged", ("x",), ("x",)),
        DiffRow("row_2", "removed", ("x",), None),
        DiffRow("row_10", "modified", ("x",), ("y",), ("c",)),
        DiffRow("row_1", "added", None, ("x",)),
        DiffRow("row_0", "modified", ("x",), ("y",), ("c",)),
    ]
    ordered = [(r.status, r.id) for r in sort_diff_rows(rows)]
    assert ordered == [
        ("modified", "row_0"),
        ("modified", "row_10"),
        ("added", "row_1"),
        ("removed", "row_2"),
        ("unchanged", "row_3"),
    ]


def test_row_to_dict():
    data = DiffRow("row_0", "modified", ("1", "a"), ("1", "b"), ("label",)).to_dict()
    assert data == {
        "id": "row_0",
        "status": "modified",
        "base_row": ["1", "a"],
        "compare_row": ["1", "b"],
        "changed_columns": ["label"],
    }
