"""
Per-file resumption state persisted as JSON beside each source file.

A file ``.../blocks/2024-01-01/part-0.snappy.parquet`` keeps its state in
``.../blocks/2024-01-01/part-0.snappy.parquet.status.json``. Writes go to a
temporary sibling first and are then renamed over the target, so a crash
never leaves a half-written status file behind.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from core.exceptions import CheckpointError
from schemas.progress import ResumptionState

logger = logging.getLogger(__name__)

STATUS_SUFFIX = ".status.json"

PathLike = Union[str, Path]


def status_path_for(file_path: PathLike) -> Path:
    """Return the status file path for a source file"""
    return Path(f"{file_path}{STATUS_SUFFIX}")


def is_complete(state: ResumptionState) -> bool:
    """A file is complete once its cursor reached a known, non-zero row count"""
    return state.total_rows > 0 and state.cursor >= state.total_rows


class ProgressStore:
    """
    Load and save ResumptionState for source files.

    Missing state is not an error: a file that was never seen starts from
    row zero. Unreadable or corrupt state raises CheckpointError and lets
    the caller decide whether to continue.
    """

    def load(self, file_path: PathLike) -> ResumptionState:
        """
        Load the resumption state for a source file.

        Args:
            file_path: Path of the source Parquet file

        Returns:
            Stored state, or an empty state if none was saved yet

        Raises:
            CheckpointError: If the status file exists but cannot be read or parsed
        """
        status_path = status_path_for(file_path)

        try:
            raw = status_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ResumptionState()
        except OSError as e:
            raise CheckpointError(
                "Failed to read status file",
                context={"status_path": str(status_path), "operation": "read"},
                original_exception=e,
            )

        try:
            return ResumptionState.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            raise CheckpointError(
                "Failed to parse status file",
                context={"status_path": str(status_path), "operation": "read"},
                original_exception=e,
            )

    def save(self, file_path: PathLike, state: ResumptionState) -> None:
        """
        Persist the resumption state for a source file.

        Stamps ``updated_at`` with the current UTC time, creates the parent
        directory when absent and replaces the status file atomically.

        Raises:
            CheckpointError: If the directory or file cannot be written
        """
        status_path = status_path_for(file_path)
        tmp_path = Path(f"{status_path}.tmp")

        state.updated_at = datetime.now(timezone.utc)
        payload = state.model_dump(mode="json", by_alias=True)

        try:
            status_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp_path, status_path)
        except OSError as e:
            raise CheckpointError(
                "Failed to write status file",
                context={"status_path": str(status_path), "operation": "write"},
                original_exception=e,
            )

        logger.debug(
            f"Saved status for {file_path}: {state.cursor}/{state.total_rows}"
        )
