"""
Custom exceptions for the ingestion pipeline with structured error context.

This module provides the exception hierarchy used throughout the sync
pipeline. Each exception carries context information (file path, partition
date, attempt count, ...) so that a failed run can be diagnosed and safely
re-run: every write path is idempotent.

Exception Hierarchy:
    ETLException (base)
    ├── ExtractionError
    │   ├── SourceFileError
    │   ├── SeekError
    │   └── DownloadError
    ├── LoadError
    │   ├── DatabaseError
    │   ├── StatementClosedError
    │   ├── BatchShapeError
    │   └── RetryExhaustedError
    ├── CheckpointError
    ├── ConfigurationError
    ├── IngestionCancelled
    ├── PartitionSyncError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ETLException(Exception):
    """
    Base exception for all ingestion errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (file path, date, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        # Add timestamp to context
        self.context["error_timestamp"] = self.timestamp.isoformat()

        # Chain original exception if provided
        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(ETLException):
    """
    Mixin for errors that may succeed when the operation is repeated.

    Use this for transient errors like:
    - Dropped database connections
    - Lock wait timeouts and deadlocks
    - Network timeouts while listing or downloading objects
    """
    pass


class NonRetryableError(ETLException):
    """
    Mixin for errors that must NOT trigger retry logic.

    The retry executor re-raises these immediately. Use this for
    permanent conditions like:
    - Seeking to an invalid row position
    - Invalid configuration or partition layout
    - Cooperative cancellation
    """
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(ETLException):
    """Base exception for source data failures."""
    pass


class SourceFileError(ExtractionError):
    """
    Exception raised when a Parquet source file cannot be opened, read or decoded.

    Context should include:
        - file_path: Path to the Parquet file
        - row: Row position where the fault occurred (if applicable)
    """
    pass


class SeekError(NonRetryableError, ExtractionError):
    """
    Exception raised when a reader cannot be positioned at a resume row.

    Seeking past a corrupt or truncated position is not a transient
    condition, so this error is fatal for the file.

    Context should include:
        - file_path: Path to the Parquet file
        - row: Requested row
        - total_rows: Row count declared by the file
    """
    pass


class DownloadError(ExtractionError):
    """
    Exception raised when fetching a partition from object storage fails.

    Context should include:
        - bucket: Source bucket
        - key / prefix: Object key or listing prefix
        - date: Partition date
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(ETLException):
    """Base exception for data loading failures."""
    pass


class DatabaseError(RetryableError, LoadError):
    """
    Exception raised when a database operation fails.

    Context should include:
        - operation: Type of database operation (PREPARE, INSERT)
        - table_name: Name of the table
        - row_count: Number of rows in the statement
    """
    pass


class StatementClosedError(NonRetryableError, LoadError):
    """Exception raised when a released batch statement is executed."""
    pass


class BatchShapeError(NonRetryableError, LoadError):
    """
    Exception raised when a batch statement is sized or bound with the wrong
    number of rows. Repeating the call cannot succeed.

    Context should include:
        - table_name: Name of the table
        - expected: Row count the statement was built for (if applicable)
        - row_count: Row count supplied
    """
    pass


class RetryExhaustedError(LoadError):
    """
    Exception raised after every attempt of a guarded operation failed.

    Context should include:
        - operation: Label of the guarded operation
        - attempts: Number of attempts made
    """
    pass


# ============================================================================
# Progress / Checkpoint Errors
# ============================================================================

class CheckpointError(ETLException):
    """
    Exception raised when resumption state cannot be read or written.

    Context should include:
        - status_path: Path of the status file
        - operation: Operation that failed (read, write)
    """
    pass


# ============================================================================
# Driver Errors
# ============================================================================

class ConfigurationError(NonRetryableError):
    """Invalid settings, CLI options or partition layout."""
    pass


class IngestionCancelled(NonRetryableError):
    """Raised when a cancellation request is observed between chunks."""
    pass


class PartitionSyncError(ETLException):
    """
    Exception raised when one or more files of a partition failed to sync.

    Context should include:
        - date: Partition date
        - failed_files: Paths of the files that failed
    """
    pass
