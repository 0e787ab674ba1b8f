"""
Ingestion pipeline: fetch, read, batch and load Bitcoin Parquet partitions.

Modules:
    retry: Bounded retry with linear backoff
    progress: Per-file resumption state beside each source file
    batching: Fixed-capacity row buffers
    partitions: Local and remote partition layout helpers
    runner: Date / directory / file orchestration
    scheduler: Interval job syncing the current date

Subpackages:
    extractors: Parquet reader and S3 partition fetcher
    loaders: Entities, SQL batch writer and the record loader

Usage:
    from ingestion.runner import IngestionRunner
    from ingestion.loaders.record_loader import RecordLoader
"""

__all__ = [
    "IngestionRunner",
    "RecordLoader",
    "ProgressStore",
    "BatchBuffer",
    "retry_with_backoff",
    "SyncScheduler",
]
