"""Unit tests for server record parsing and client-side models."""

import logging

import pytest
from pydantic import ValidationError

from ocrbatch.models import (
    UNAVAILABLE,
    BatchItem,
    DetailRecord,
    ItemStatus,
    ResultRecord,
    Statistics,
    UIState,
    clamp_batch_size,
    parse_detail,
    parse_result_list,
    parse_statistics,
)


class TestResultRecord:
    """Tests for lenient result parsing."""

    def test_full_record(self):
        record = ResultRecord.model_validate(
            {
                "original_filename": "a.png",
                "status": "success",
                "stem": "a",
                "timestamp": "2024-01-01T10:00:00",
                "processing_time": "1.25",
                "blocks_count": 12,
                "text_length": 340.0,
            }
        )

        assert record.status == ItemStatus.SUCCESS
        assert record.processing_time == 1.25
        assert record.blocks_count == 12
        assert record.text_length == 340

    def test_unknown_status_is_absent(self):
        assert ResultRecord(status="exploded").status is None
        assert ResultRecord(status=3).status is None
        assert ResultRecord(status=" SUCCESS ").status == ItemStatus.SUCCESS

    def test_unusable_numbers_are_unavailable(self):
        """Test non-numeric, boolean and non-finite values become the unavailable marker."""
        record = ResultRecord(processing_time="fast", blocks_count=True, text_length=float("nan"))

        assert record.processing_time is UNAVAILABLE
        assert record.blocks_count is UNAVAILABLE
        assert record.text_length is UNAVAILABLE

    def test_non_text_fields_dropped(self):
        record = ResultRecord(original_filename=["a"], error={"msg": "x"}, stem=42)

        assert record.original_filename is None
        assert record.error is None
        assert record.stem == "42"

    def test_extra_fields_ignored(self):
        record = ResultRecord.model_validate({"original_filename": "a.png", "pdf_path": "/x"})

        assert record.original_filename == "a.png"


class TestParsers:
    """Tests for response body parsers."""

    def test_result_list_keeps_positions(self, caplog):
        """Test a non-object entry becomes a blank record instead of shifting indexes."""
        with caplog.at_level(logging.WARNING):
            records = parse_result_list({"results": [{"original_filename": "a"}, "junk", {"original_filename": "c"}]})

        assert [r.original_filename for r in records] == ["a", None, "c"]
        assert "entry 1 is not an object" in caplog.text

    @pytest.mark.parametrize("payload", [None, [], {"results": "x"}, {"data": []}])
    def test_result_list_without_array(self, payload):
        assert parse_result_list(payload) == []

    def test_detail_blocks_normalized(self):
        detail = parse_detail({"stem": "s", "blocks": [{"bbox": [1, 2, 3, 4], "text": "hi"}, "junk"]})

        assert detail.stem == "s"
        assert len(detail.blocks) == 2
        assert detail.blocks[1].bbox is None

    def test_detail_non_list_blocks(self):
        assert parse_detail({"stem": "s", "blocks": None}).blocks == []
        assert parse_detail("nope") == DetailRecord()

    def test_statistics_defaults(self):
        stats = parse_statistics({"total": "4", "success": None, "avg_time": "n/a"})

        assert stats == Statistics(total=4)
        assert parse_statistics([]) == Statistics()


class TestStatistics:
    """Tests for derived rates."""

    def test_rates(self):
        stats = Statistics(total=8, success=6, failed=2)

        assert stats.success_rate == 75.0
        assert stats.failure_rate == 25.0

    def test_rates_with_no_results(self):
        assert Statistics().success_rate == 0.0
        assert Statistics().failure_rate == 0.0


class TestClientModels:
    """Tests for BatchItem and UIState."""

    def test_batch_item_defaults(self):
        item = BatchItem(id="1-0", name="a.png")

        assert item.status == ItemStatus.PENDING
        assert item.progress == 0
        assert not item.is_terminal

    @pytest.mark.parametrize("progress", [-1, 101])
    def test_progress_bounds(self, progress):
        with pytest.raises(ValidationError):
            BatchItem(id="1-0", name="a.png", progress=progress)

    @pytest.mark.parametrize("status", [ItemStatus.SUCCESS, ItemStatus.FAILED, ItemStatus.SKIPPED])
    def test_terminal_statuses(self, status):
        assert BatchItem(id="1-0", name="a", status=status).is_terminal

    def test_ui_state_clamps_batch_size(self):
        assert UIState(batch_size=0).batch_size == 1
        assert UIState(batch_size=25).batch_size == 10

    def test_ui_state_rejects_unknown_tab(self):
        with pytest.raises(ValidationError):
            UIState(active_tab="settings")

    def test_clamp(self):
        assert [clamp_batch_size(v) for v in (-3, 1, 5, 10, 11)] == [1, 1, 5, 10, 10]
