"""
Unit tests for feed item grouping.

Tests for ItemGrouper merging recurring occurrences into one item.
"""

from datetime import datetime

import pytest

from event_importer.ingestion.grouping import ItemGrouper, extract_date_pairs


@pytest.fixture
def grouper():
    return ItemGrouper()


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestItemGrouper:
    """Tests for ItemGrouper.group."""

    def test_merges_occurrences(self, grouper, create_destination_item):
        """Occurrences of one id should collapse into a single spanning item."""
        items = [
            create_destination_item("E1", start="2024-05-03T10:00:00", end="2024-05-03T12:00:00"),
            create_destination_item("E1", start="2024-05-01T10:00:00", end="2024-05-01T12:00:00"),
        ]

        grouped = grouper.group(items, "global_id")

        assert list(grouped) == ["E1"]
        item = grouped["E1"]
        assert item.computed_start == datetime(2024, 5, 1, 10, 0)
        assert item.computed_end == datetime(2024, 5, 3, 12, 0)
        assert item.occurrences == 2

    def test_recurring_event_spans_all_dates(self, grouper, create_destination_item):
        """Two occurrences over different days should merge into one four-day range."""
        items = [
            create_destination_item("E1", start="2024-05-01T00:00:00", end="2024-05-02T00:00:00"),
            create_destination_item("E1", start="2024-05-03T00:00:00", end="2024-05-04T00:00:00"),
        ]

        grouped = grouper.group(items, "global_id")

        assert len(grouped) == 1
        assert grouped["E1"].computed_start == datetime(2024, 5, 1)
        assert grouped["E1"].computed_end == datetime(2024, 5, 4)

    def test_first_occurrence_is_base(self, grouper, create_destination_item):
        """Non-date fields should come from the first occurrence."""
        items = [
            create_destination_item("E1", title="First"),
            create_destination_item("E1", title="Second"),
        ]
        assert grouper.group(items, "global_id")["E1"].get("title") == "First"

    def test_preserves_first_seen_order(self, grouper, create_destination_item):
        items = [
            create_destination_item("B"),
            create_destination_item("A"),
            create_destination_item("B"),
        ]
        assert list(grouper.group(items, "global_id")) == ["B", "A"]

    def test_drops_items_without_identifier(self, grouper, create_destination_item):
        """Items lacking the id field, or with a blank id, should be dropped."""
        items = [
            create_destination_item(None),
            create_destination_item("  "),
            "not a dict",
            create_destination_item("E1"),
        ]
        assert list(grouper.group(items, "global_id")) == ["E1"]

    def test_numeric_ids_become_strings(self, grouper, create_split_item):
        grouped = grouper.group([create_split_item(101)], "articleId")
        assert list(grouped) == ["101"]

    def test_unparseable_dates_ignored(self, grouper, create_destination_item):
        """Unparseable dates should not affect the computed range."""
        items = [
            create_destination_item("E1", start="someday", end="never"),
            create_destination_item("E1", start="2024-05-01T10:00:00", end="2024-05-01T12:00:00"),
        ]
        item = grouper.group(items, "global_id")["E1"]
        assert item.computed_start == datetime(2024, 5, 1, 10, 0)
        assert item.computed_end == datetime(2024, 5, 1, 12, 0)

    def test_no_dates(self, grouper, create_destination_item):
        item = grouper.group([create_destination_item("E1", start=None)], "global_id")["E1"]
        assert item.computed_start is None
        assert item.computed_end is None

    def test_grouping_is_idempotent(self, grouper, create_destination_item):
        """Grouping the same feed twice should give the same ranges."""
        items = [
            create_destination_item("E1", start="2024-05-03T10:00:00", end="2024-05-03T12:00:00"),
            create_destination_item("E1", start="2024-05-01T10:00:00", end="2024-05-01T12:00:00"),
        ]
        first = grouper.group(items, "global_id")["E1"]
        second = grouper.group(items, "global_id")["E1"]
        assert (first.computed_start, first.computed_end) == (
            second.computed_start,
            second.computed_end,
        )


class TestExtractDatePairs:
    """Tests for extract_date_pairs."""

    def test_reads_all_locations(self):
        item = {
            "attributes": [
                {"key": "interval_start", "value": "2024-01-01T10:00:00"},
                {"key": "interval_end", "value": "2024-01-01T12:00:00"},
            ],
            "timeIntervals": [{"start": "2024-02-01T10:00:00", "end": "2024-02-01T12:00:00"}],
            "eventInfo": {"startDateUTC": "2024-03-01T10:00:00", "endDateUTC": None},
        }
        assert extract_date_pairs(item) == [
            ("2024-01-01T10:00:00", "2024-01-01T12:00:00"),
            ("2024-02-01T10:00:00", "2024-02-01T12:00:00"),
            ("2024-03-01T10:00:00", None),
        ]

    def test_empty_item(self):
        assert extract_date_pairs({}) == []
