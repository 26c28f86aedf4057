"""
Unit tests for duplicate grouping and Keep/End decisions.
"""
import pandas as pd

from listing_dedupe.columns import ColumnMap
from listing_dedupe.grouper import (
    ANNOTATION_HEADERS,
    Decision,
    DuplicateGrouper,
    Item,
    annotate,
    detect_duplicates,
    order_by_start_date,
    parse_start_date,
)


def ids(group):
    return [item.item_id for item in group.members]


class TestDetectDuplicates:
    """Tests for detection over a parsed table."""

    def test_case_variants_grouped(self):
        rows = [["Item ID", "Title"], ["1", "Widget A"], ["2", "widget a"], ["3", "Widget B"]]
        result = detect_duplicates(rows)
        assert result.success
        assert result.duplicate_groups == 1
        assert result.duplicate_items == 2
        assert sorted(ids(result.groups[0])) == ["1", "2"]

    def test_no_duplicates_is_success(self, unique_csv):
        rows = [line.split(",") for line in unique_csv.split("\n")]
        result = detect_duplicates(rows)
        assert result.success is True
        assert result.duplicate_groups == 0
        assert result.groups == []
        assert "0" in result.message

    def test_most_recent_listing_kept(self, listing_rows):
        result = detect_duplicates(listing_rows)
        group = result.groups[0]
        assert ids(group) == ["1002", "1001", "1004"]
        assert [m.decision for m in group.members] == [Decision.KEEP, Decision.END, Decision.END]

    def test_header_only_is_success(self):
        result = detect_duplicates([["Item ID", "Title"]])
        assert result.success
        assert result.duplicate_groups == 0

    def test_no_rows_is_failure(self):
        result = detect_duplicates([])
        assert not result.success

    def test_missing_columns_is_failure(self):
        result = detect_duplicates([["only"], ["x"]])
        assert not result.success
        assert "not found" in result.message

    def test_rows_without_title_or_id_skipped(self):
        rows = [["Item ID", "Title"], ["1", "Lamp"], ["", "Lamp"], ["3", ""], ["4", "lamp"]]
        result = detect_duplicates(rows)
        assert ids(result.groups[0]) == ["1", "4"]

    def test_site_filter(self):
        rows = [
            ["Item ID", "Title", "Start date", "Site"],
            ["1", "Lamp", "2024-01-01", "US"],
            ["2", "Lamp", "2024-01-02", "UK"],
            ["3", "lamp", "2024-01-03", "us"],
        ]
        result = detect_duplicates(rows, site_filter="US")
        assert result.duplicate_groups == 1
        assert ids(result.groups[0]) == ["3", "1"]

    def test_largest_groups_first(self):
        rows = [["Item ID", "Title"]] + [
            ["1", "Pair"], ["2", "Triple"], ["3", "Pair"],
            ["4", "Triple"], ["5", "Triple"], ["6", "Other Pair"], ["7", "Other Pair"],
        ]
        result = detect_duplicates(rows)
        assert [g.normalized_title for g in result.groups] == ["triple", "pair", "other pair"]


class TestStartDateOrdering:
    """Tests for ordering within a group."""

    def make_items(self, dates):
        columns = ColumnMap(title=1, item_id=0, start_date=2)
        return [Item.from_row([str(i), "Lamp", d], columns, "lamp") for i, d in enumerate(dates, 1)]

    def test_undated_item_keeps_its_slot(self):
        items = self.make_items(["2024-01-01", "2024-03-01", "invalid"])
        ordered = order_by_start_date(items)
        assert [i.item_id for i in ordered] == ["2", "1", "3"]

    def test_undated_item_in_middle(self):
        items = self.make_items(["2024-01-01", "", "2024-03-01"])
        ordered = order_by_start_date(items)
        assert [i.item_id for i in ordered] == ["3", "2", "1"]

    def test_relative_date_does_not_win_keep(self):
        items = self.make_items(["2024-01-01", "now", "2024-03-01"])
        assert [i.item_id for i in order_by_start_date(items)] == ["3", "2", "1"]

    def test_equal_dates_keep_input_order(self):
        items = self.make_items(["2024-01-01", "2024-01-01"])
        assert [i.item_id for i in order_by_start_date(items)] == ["1", "2"]

    def test_all_undated_unchanged(self):
        items = self.make_items(["", "n/a"])
        assert [i.item_id for i in order_by_start_date(items)] == ["1", "2"]


class TestParseStartDate:
    """Tests for start-date parsing."""

    def test_iso_date(self):
        assert parse_start_date("2024-03-01") == pd.Timestamp("2024-03-01")

    def test_unparseable(self):
        assert parse_start_date("not a date") is None
        assert parse_start_date("") is None
        assert parse_start_date(None) is None

    def test_relative_words_rejected(self):
        for text in ("now", "Today", " yesterday ", "tomorrow"):
            assert parse_start_date(text) is None

    def test_timezone_dropped(self):
        ts = parse_start_date("2024-03-01T10:00:00+02:00")
        assert ts.tzinfo is None
        assert ts.hour == 8


class TestIncrementalGrouping:
    """Tests for grouping spread across several add_rows calls."""

    def test_chunks_match_single_pass(self, listing_rows):
        columns = ColumnMap(title=1, item_id=0, start_date=2)
        data = listing_rows[1:]

        single = DuplicateGrouper(columns).group(data)

        chunked = DuplicateGrouper(columns)
        chunked.add_rows(data[:2], offset=0)
        restored = DuplicateGrouper.from_index(columns, chunked.export_index())
        restored.add_rows(data[2:], offset=2)

        assert restored.duplicate_group_count == len(single) == 1
        assert restored.duplicate_item_count == 3
        assert [ids(g) for g in restored.duplicate_groups(data)] == [ids(g) for g in single]


class TestAnnotate:
    """Tests for the flattened duplicate table."""

    def test_annotated_rows(self, listing_rows):
        result = detect_duplicates(listing_rows)
        table = annotate(result.groups, listing_rows[0], result.columns)

        assert table.header == ANNOTATION_HEADERS + listing_rows[0]
        assert table.rows[0][:3] == ["Group 1", "1 of 3", "Keep"]
        assert [r[2] for r in table.rows] == ["Keep", "End", "End"]
        assert table.columns.title == 4
        assert ColumnMap.cell(table.rows[0], table.columns.item_id) == "1002"

    def test_no_groups(self, listing_rows):
        table = annotate([], listing_rows[0], ColumnMap(title=1, item_id=0))
        assert table.rows == []
