"""
Unit tests for the S3 partition fetcher
"""

import pytest
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock
from botocore.exceptions import ClientError
from core.exceptions import ConfigurationError, DownloadError
from ingestion.extractors.s3_fetcher import S3PartitionFetcher


def make_client(keys_by_prefix):
    """Mock S3 client whose paginator lists the given keys per prefix"""
    client = MagicMock()

    def paginate(Bucket, Prefix):
        return [{"Contents": [{"Key": key} for key in keys_by_prefix.get(Prefix, [])]}]

    client.get_paginator.return_value.paginate.side_effect = paginate

    def download_file(bucket, key, filename):
        Path(filename).write_bytes(b"PAR1")

    client.download_file.side_effect = download_file
    return client


PREFIX = "v1.0/btc/"
BLOCKS_PREFIX = f"{PREFIX}blocks/date=2024-01-01/"
TX_PREFIX = f"{PREFIX}transactions/date=2024-01-01/"


class TestS3PartitionFetcher:
    """Test listing, skipping and downloading partition files"""

    def test_downloads_missing_parquet_files(self, tmp_path):
        client = make_client({
            BLOCKS_PREFIX: [f"{BLOCKS_PREFIX}part-0.snappy.parquet", f"{BLOCKS_PREFIX}_SUCCESS"],
            TX_PREFIX: [f"{TX_PREFIX}part-0.snappy.parquet", f"{TX_PREFIX}part-1.snappy.parquet"],
        })
        fetcher = S3PartitionFetcher(out_dir=str(tmp_path), bucket="bucket", prefix=PREFIX, dry_run=False, s3_client=client)

        counts = fetcher.ensure_partition(date(2024, 1, 1))

        assert counts == {"blocks": 1, "transactions": 2}
        assert (tmp_path / "btc" / "blocks" / "2024-01-01" / "part-0.snappy.parquet").exists()
        assert (tmp_path / "btc" / "transactions" / "2024-01-01" / "part-1.snappy.parquet").exists()
        assert not list(tmp_path.rglob("*.tmp"))
        client.get_paginator.assert_called_with("list_objects_v2")

    def test_skips_existing_files(self, tmp_path):
        existing = tmp_path / "btc" / "blocks" / "2024-01-01" / "part-0.snappy.parquet"
        existing.parent.mkdir(parents=True)
        existing.write_bytes(b"already here")
        client = make_client({BLOCKS_PREFIX: [f"{BLOCKS_PREFIX}part-0.snappy.parquet"]})
        fetcher = S3PartitionFetcher(out_dir=str(tmp_path), bucket="bucket", prefix=PREFIX, dry_run=False, s3_client=client)

        counts = fetcher.ensure_partition(date(2024, 1, 1))

        assert counts == {"blocks": 0, "transactions": 0}
        client.download_file.assert_not_called()
        assert existing.read_bytes() == b"already here"

    def test_dry_run_downloads_nothing(self, tmp_path):
        client = make_client({BLOCKS_PREFIX: [f"{BLOCKS_PREFIX}part-0.snappy.parquet"]})
        fetcher = S3PartitionFetcher(out_dir=str(tmp_path), bucket="bucket", prefix=PREFIX, dry_run=True, s3_client=client)

        counts = fetcher.ensure_partition(date(2024, 1, 1))

        assert counts["blocks"] == 1
        client.download_file.assert_not_called()
        assert not (tmp_path / "btc").exists()

    def test_download_failure_cleans_up_temp_file(self, tmp_path):
        client = make_client({BLOCKS_PREFIX: [f"{BLOCKS_PREFIX}part-0.snappy.parquet"]})

        def failing_download(bucket, key, filename):
            Path(filename).write_bytes(b"partial")
            raise ClientError({"Error": {"Code": "500", "Message": "Internal"}}, "GetObject")

        client.download_file.side_effect = failing_download
        fetcher = S3PartitionFetcher(out_dir=str(tmp_path), bucket="bucket", prefix=PREFIX, dry_run=False, s3_client=client)

        with pytest.raises(DownloadError) as exc_info:
            fetcher.ensure_partition(date(2024, 1, 1))

        assert exc_info.value.context["key"] == f"{BLOCKS_PREFIX}part-0.snappy.parquet"
        assert not list(tmp_path.rglob("*.tmp"))
        assert not list(tmp_path.rglob("*.parquet"))

    def test_listing_failure_raises_download_error(self, tmp_path):
        client = MagicMock()
        client.get_paginator.return_value.paginate.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "Denied"}}, "ListObjectsV2"
        )
        fetcher = S3PartitionFetcher(out_dir=str(tmp_path), bucket="bucket", prefix=PREFIX, dry_run=False, s3_client=client)

        with pytest.raises(DownloadError) as exc_info:
            fetcher.ensure_partition(date(2024, 1, 1))

        assert exc_info.value.context["date"] == "2024-01-01"

    def test_unsupported_chain(self, tmp_path):
        with pytest.raises(ConfigurationError):
            S3PartitionFetcher(out_dir=str(tmp_path), chain="ethereum", s3_client=MagicMock())
