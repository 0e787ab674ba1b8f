"""
Partition layout helpers.

Local files are laid out as ``<out_dir>/btc/<dataset>/<YYYY-MM-DD>/*.parquet``;
the public bucket uses ``<prefix><dataset>/date=<YYYY-MM-DD>/``. The partition
date of a record always comes from this layout, never from the record.
"""

from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Union

from core.exceptions import ConfigurationError

DATE_FORMAT = "%Y-%m-%d"
DATE_DIR_PREFIX = "date="
CHAIN_DIR = "btc"


def parse_partition_date(text: str) -> date:
    """
    Parse a strict ``YYYY-MM-DD`` partition date.

    Raises:
        ConfigurationError: If the text is not a valid date in that format
    """
    if len(text) != 10 or text[4] != "-" or text[7] != "-":
        raise ConfigurationError(
            f"Invalid date format, expected YYYY-MM-DD, got: {text}",
            context={"value": text},
        )
    try:
        return datetime.strptime(text, DATE_FORMAT).date()
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid date: {text}",
            context={"value": text},
            original_exception=e,
        )


def format_partition_date(day: date) -> str:
    return day.strftime(DATE_FORMAT)


def date_range(start: date, end: date) -> List[date]:
    """
    Every date from start to end, both inclusive.

    Raises:
        ConfigurationError: If end is before start
    """
    if end < start:
        raise ConfigurationError(
            "End date must be after or equal to start date",
            context={"start": format_partition_date(start), "end": format_partition_date(end)},
        )
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def partition_dir(out_dir: Union[str, Path], dataset: str, day: date) -> Path:
    """Local directory holding one dataset's files for one date"""
    return Path(out_dir) / CHAIN_DIR / dataset / format_partition_date(day)


def partition_date_for_file(file_path: Union[str, Path]) -> date:
    """
    Derive the partition date of a source file from its parent directory.

    Both ``.../2024-01-01/file.parquet`` and ``.../date=2024-01-01/file.parquet``
    are accepted.

    Raises:
        ConfigurationError: If the parent directory is not a date
    """
    name = Path(file_path).parent.name
    if name.startswith(DATE_DIR_PREFIX):
        name = name[len(DATE_DIR_PREFIX):]
    try:
        return parse_partition_date(name)
    except ConfigurationError as e:
        raise ConfigurationError(
            "Cannot derive partition date from file location",
            context={"file_path": str(file_path), "directory": Path(file_path).parent.name},
            original_exception=e,
        )


def iter_parquet_files(directory: Union[str, Path]) -> List[Path]:
    """All ``*.parquet`` files below a directory, in sorted walk order"""
    root = Path(directory)
    if not root.is_dir():
        return []
    return sorted(path for path in root.rglob("*.parquet") if path.is_file())


def resolve_dates(
    single: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    latest: bool = False,
    today: Optional[date] = None,
) -> List[date]:
    """
    Turn command-line date options into the list of dates to process.

    Exactly one of ``single``, ``start``/``end`` (both) or ``latest`` must be
    given. ``latest`` means today's UTC date.

    Raises:
        ConfigurationError: On missing, conflicting or invalid options
    """
    if latest:
        if single or start or end:
            raise ConfigurationError("Cannot combine --latest with --date or --start/--end")
        return [today or datetime.now(timezone.utc).date()]

    if single and (start or end):
        raise ConfigurationError("Cannot specify both --date and --start/--end")
    if bool(start) != bool(end):
        raise ConfigurationError("Both --start and --end must be specified for a date range")
    if single:
        return [parse_partition_date(single)]
    if start and end:
        return date_range(parse_partition_date(start), parse_partition_date(end))

    raise ConfigurationError("Must specify either --date, both --start and --end, or --latest")
