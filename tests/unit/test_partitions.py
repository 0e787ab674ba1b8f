"""
Unit tests for partition layout helpers
"""

import pytest
from datetime import date
from pathlib import Path
from core.exceptions import ConfigurationError
from ingestion.partitions import (
    date_range,
    iter_parquet_files,
    parse_partition_date,
    partition_date_for_file,
    partition_dir,
    resolve_dates,
)


class TestPartitionDates:
    """Test date parsing and ranges"""

    def test_parse_valid_date(self):
        assert parse_partition_date("2009-01-03") == date(2009, 1, 3)

    @pytest.mark.parametrize("text", ["2009-1-3", "20090103", "2009/01/03", "2009-02-30", ""])
    def test_parse_invalid_date(self, text):
        with pytest.raises(ConfigurationError):
            parse_partition_date(text)

    def test_date_range_is_inclusive(self):
        days = date_range(date(2024, 2, 28), date(2024, 3, 1))
        assert days == [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]

    def test_date_range_single_day(self):
        assert date_range(date(2024, 1, 1), date(2024, 1, 1)) == [date(2024, 1, 1)]

    def test_date_range_end_before_start(self):
        with pytest.raises(ConfigurationError):
            date_range(date(2024, 1, 2), date(2024, 1, 1))


class TestPartitionPaths:
    """Test local layout"""

    def test_partition_dir(self, tmp_path):
        assert partition_dir(tmp_path, "blocks", date(2024, 1, 1)) == tmp_path / "btc" / "blocks" / "2024-01-01"

    def test_partition_date_for_file(self):
        path = Path("out/btc/transactions/2024-05-06/part-1.snappy.parquet")
        assert partition_date_for_file(path) == date(2024, 5, 6)

    def test_partition_date_for_hive_style_directory(self):
        path = Path("mirror/transactions/date=2024-05-06/part-1.snappy.parquet")
        assert partition_date_for_file(path) == date(2024, 5, 6)

    def test_partition_date_requires_date_directory(self):
        with pytest.raises(ConfigurationError) as exc_info:
            partition_date_for_file(Path("out/btc/blocks/latest/part-1.parquet"))
        assert exc_info.value.context["directory"] == "latest"

    def test_iter_parquet_files_sorted_and_filtered(self, tmp_path):
        (tmp_path / "b").mkdir()
        (tmp_path / "b" / "2.parquet").write_bytes(b"x")
        (tmp_path / "1.parquet").write_bytes(b"x")
        (tmp_path / "1.parquet.status.json").write_text("{}")
        (tmp_path / "3.snappy.parquet.tmp").write_bytes(b"x")

        files = iter_parquet_files(tmp_path)

        assert files == [tmp_path / "1.parquet", tmp_path / "b" / "2.parquet"]

    def test_iter_parquet_files_missing_directory(self, tmp_path):
        assert iter_parquet_files(tmp_path / "missing") == []


class TestResolveDates:
    """Test command-line date selection"""

    def test_single_date(self):
        assert resolve_dates(single="2024-01-01") == [date(2024, 1, 1)]

    def test_range(self):
        assert len(resolve_dates(start="2024-01-01", end="2024-01-10")) == 10

    def test_latest_uses_today(self):
        assert resolve_dates(latest=True, today=date(2025, 6, 1)) == [date(2025, 6, 1)]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {},
            {"single": "2024-01-01", "start": "2024-01-01", "end": "2024-01-02"},
            {"start": "2024-01-01"},
            {"end": "2024-01-01"},
            {"latest": True, "single": "2024-01-01"},
            {"start": "2024-01-05", "end": "2024-01-01"},
        ],
    )
    def test_invalid_combinations(self, kwargs):
        with pytest.raises(ConfigurationError):
            resolve_dates(**kwargs)
