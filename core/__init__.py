"""
Core utilities and configuration for the chain sync system.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Async engine and session factory construction
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import build_engine, build_session_maker
    from core.exceptions import SeekError, RetryExhaustedError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Get database session
    engine = build_engine()
    async with build_session_maker(engine)() as session:
        # Perform database operations
        pass
"""

__all__ = [
    "settings",
    "build_engine",
    "build_session_maker",
    "setup_logging",
    # Exceptions
    "ETLException",
    "ExtractionError",
    "SourceFileError",
    "SeekError",
    "DownloadError",
    "LoadError",
    "DatabaseError",
    "StatementClosedError",
    "BatchShapeError",
    "RetryExhaustedError",
    "CheckpointError",
    "ConfigurationError",
    "IngestionCancelled",
    "PartitionSyncError",
    "RetryableError",
    "NonRetryableError",
]
