"""
Download Bitcoin partitions from the AWS public blockchain bucket
"""

import logging
import os
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

import boto3
import botocore
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from core.config import settings
from core.exceptions import ConfigurationError, DownloadError
from ingestion.partitions import DATE_DIR_PREFIX, format_partition_date, partition_dir
from models.base import DatasetKind

logger = logging.getLogger(__name__)

PARQUET_SUFFIX = ".snappy.parquet"
SUPPORTED_CHAINS = ("btc", "bitcoin")


def create_s3_client(region: Optional[str] = None) -> Any:
    """Create a boto3 S3 client that sends unsigned requests (public bucket)"""
    session = boto3.session.Session(region_name=region or settings.AWS_REGION)
    return session.client("s3", config=BotoConfig(signature_version=botocore.UNSIGNED))


class S3PartitionFetcher:
    """
    Make sure a date's block and transaction files exist locally.

    Objects already present under ``<out_dir>/btc/<dataset>/<date>/`` are
    never downloaded again. Each download goes to a temporary sibling and
    is renamed into place once complete. In dry-run mode nothing is written.
    """

    def __init__(
        self,
        out_dir: Optional[str] = None,
        bucket: Optional[str] = None,
        prefix: Optional[str] = None,
        chain: Optional[str] = None,
        dry_run: Optional[bool] = None,
        s3_client: Any = None,
    ):
        self.chain = (chain or settings.CHAIN).lower()
        if self.chain not in SUPPORTED_CHAINS:
            raise ConfigurationError(
                f"Unsupported chain: {self.chain}",
                context={"chain": self.chain, "supported": list(SUPPORTED_CHAINS)},
            )
        self.out_dir = Path(out_dir or settings.OUT_DIR)
        self.bucket = bucket or settings.AWS_S3_BUCKET
        self.prefix = prefix if prefix is not None else settings.AWS_S3_BTC_PREFIX
        self.dry_run = settings.DRY_RUN if dry_run is None else dry_run
        self._client = s3_client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = create_s3_client()
        return self._client

    def ensure_partition(self, day: date) -> Dict[str, int]:
        """
        Download any missing block and transaction files for a date.

        Returns:
            Number of files downloaded (or that would be, in dry-run mode) per dataset

        Raises:
            DownloadError: If listing or downloading fails
        """
        return {
            kind.value: self.fetch_dataset(kind.value, day)
            for kind in (DatasetKind.BLOCKS, DatasetKind.TRANSACTIONS)
        }

    def fetch_dataset(self, dataset: str, day: date) -> int:
        date_str = format_partition_date(day)
        s3_prefix = f"{self.prefix}{dataset}/{DATE_DIR_PREFIX}{date_str}/"
        local_dir = partition_dir(self.out_dir, dataset, day)

        if not self.dry_run:
            local_dir.mkdir(parents=True, exist_ok=True)

        downloaded = 0
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=s3_prefix):
                for obj in page.get("Contents", []):
                    key = obj["Key"]
                    if not key.endswith(PARQUET_SUFFIX):
                        continue

                    local_path = local_dir / Path(key).name
                    if local_path.exists():
                        logger.info(f"Skipping existing file: {local_path}")
                        continue

                    if self.dry_run:
                        logger.info(f"[DRY RUN] Would download: {key} -> {local_path}")
                        downloaded += 1
                        continue

                    self._download(key, local_path)
                    downloaded += 1
                    logger.info(f"Downloaded: {local_path}")
        except (BotoCoreError, ClientError) as e:
            raise DownloadError(
                f"Failed to fetch {dataset} for {date_str}",
                context={"bucket": self.bucket, "prefix": s3_prefix, "date": date_str},
                original_exception=e,
            )

        if self.dry_run:
            logger.info(f"[DRY RUN] Would download {downloaded} files for {dataset}/{date_str}")
        else:
            logger.info(f"Downloaded {downloaded} files for {dataset}/{date_str}")
        return downloaded

    def _download(self, key: str, local_path: Path) -> None:
        tmp_path = local_path.with_name(f"{local_path.name}.tmp")
        try:
            self.client.download_file(self.bucket, key, str(tmp_path))
            os.replace(tmp_path, local_path)
        except (BotoCoreError, ClientError, OSError) as e:
            raise DownloadError(
                f"Failed to download {key}",
                context={"bucket": self.bucket, "key": key, "local_path": str(local_path)},
                original_exception=e,
            )
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
