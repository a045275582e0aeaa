"""
Logging configuration for music-soup.

This module sets up the logging system with multiple outputs:
    - Console: Real-time progress with tqdm-compatible, colored formatting
    - log_full.log: Complete log of all events (DEBUG and above)
    - log_errors.log: Only ERROR and CRITICAL level messages
    - metadata_gaps.log: Tracks whose source record lacked optional fields
    - sync_failures.log: Tracks that could not be written to Notion

The logging system follows the principle: everything to screen is also saved
to file, then filtered into specialized report files.

Log File Locations:
    All log files are created in the logging directory from config.yaml.
    Every run writes new files with a timestamp in their name.

Usage:
    from music_soup.core.logger import setup_logging, get_logger

    setup_logging(config.logging.directory)  # Call once at startup
    logger = get_logger(__name__)             # Get logger for each module

    logger.info("Starting sync")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

import colorama
from colorama import Fore, Style
from tqdm import tqdm

if TYPE_CHECKING:
    from music_soup.sync.models import RunSummary


# Log file name prefixes (a timestamp and ".log" are appended)
LOG_FULL_PREFIX = "log_full"
LOG_ERRORS_PREFIX = "log_errors"
METADATA_GAPS_PREFIX = "metadata_gaps"
SYNC_FAILURES_PREFIX = "sync_failures"

# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that adds colors to console output.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bright Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Fore.BLUE,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Style.BRIGHT + Fore.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Fore.WHITE)
        return f"{color}{record.levelname}{Style.RESET_ALL}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking tqdm progress bars.

    Uses tqdm.write(), which prints above any active progress bar instead of
    overwriting it.
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class ReportFileHandler(logging.Handler):
    """
    Base handler for the plain-text report files.

    A report handler only reacts to records that carry its marker attribute
    (passed through the `extra` argument of the logging call) and writes a
    short human-readable block for each of them. Every other record is
    ignored.

    Subclasses set `marker` and implement `format_entry()`.

    Attributes:
        report_path: Path to the report file.
        report_file: Open file handle, or None before open() / after close().
    """

    marker = ""

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """
        Open the report file for writing.

        Called by setup_logging() after the handler is created.
        """
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def format_entry(self, record: logging.LogRecord) -> str:
        raise NotImplementedError

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, self.marker):
            return

        if self.report_file is None:
            return

        try:
            self.report_file.write(self.format_entry(record))
            self.report_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """
        Close the report file handle.

        Safe to call multiple times.
        """
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class MetadataGapHandler(ReportFileHandler):
    """
    Captures tracks whose source record lacked optional fields.

    Format:
        Spotify 4cOdK2wGLETKBW3PvgPWqT  Bohemian Rhapsody
        missing: isrc, album

    Usage:
        log_metadata_gap(logger, track_title, source, source_id, ["isrc"])
    """

    marker = "metadata_gap_source_id"

    def format_entry(self, record: logging.LogRecord) -> str:
        source = getattr(record, "metadata_gap_source", "")
        source_id = getattr(record, "metadata_gap_source_id", "")
        title = getattr(record, "metadata_gap_title", "")
        missing = getattr(record, "metadata_gap_fields", [])
        return f"{source} {source_id}  {title}\nmissing: {', '.join(missing)}\n\n"


class SyncFailureHandler(ReportFileHandler):
    """
    Captures tracks that failed to normalize or to be written to Notion.

    Format:
        Apple Music 1440833098  Song Title
        Notion API error: validation_error
    """

    marker = "sync_failed_source_id"

    def format_entry(self, record: logging.LogRecord) -> str:
        source = getattr(record, "sync_failed_source", "")
        source_id = getattr(record, "sync_failed_source_id", "")
        title = getattr(record, "sync_failed_title", "")
        reason = getattr(record, "sync_failed_reason", "")
        return f"{source} {source_id}  {title}\n{reason}\n\n"


class ErrorOnlyFilter(logging.Filter):
    """Filter that only allows ERROR and CRITICAL level records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(log_dir: Path, level: str = "INFO") -> None:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before any other operations.

    Args:
        log_dir: Directory where log files will be created.
        level: Console level name ("DEBUG", "INFO", ...). Files always
               receive DEBUG and above.

    Behavior:
        1. Create log_dir if it doesn't exist
        2. Generate timestamp for this run's log files
        3. Configure root logger level to DEBUG and drop old handlers
        4. Console handler (TqdmLoggingHandler) at the requested level
        5. log_full_{timestamp}.log at DEBUG
        6. log_errors_{timestamp}.log filtered to ERROR+
        7. metadata_gaps_{timestamp}.log report
        8. sync_failures_{timestamp}.log report
    """
    colorama.init()

    log_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    file_formatter = logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT)

    full_handler = logging.FileHandler(
        log_dir / f"{LOG_FULL_PREFIX}_{timestamp}.log", mode="w", encoding="utf-8"
    )
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(file_formatter)
    root_logger.addHandler(full_handler)

    error_handler = logging.FileHandler(
        log_dir / f"{LOG_ERRORS_PREFIX}_{timestamp}.log", mode="w", encoding="utf-8"
    )
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(file_formatter)
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    gaps_handler = MetadataGapHandler(log_dir / f"{METADATA_GAPS_PREFIX}_{timestamp}.log")
    gaps_handler.open()
    root_logger.addHandler(gaps_handler)

    failures_handler = SyncFailureHandler(log_dir / f"{SYNC_FAILURES_PREFIX}_{timestamp}.log")
    failures_handler.open()
    root_logger.addHandler(failures_handler)

    # Third-party clients are chatty at DEBUG
    for noisy in ("urllib3", "spotipy", "aiohttp"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Returns:
        logging.Logger: A logger configured by setup_logging().

    Note:
        Loggers obtained before setup_logging() is called propagate to an
        unconfigured root logger and produce no file output.
    """
    return logging.getLogger(name)


def log_metadata_gap(
    logger: logging.Logger,
    track_title: str,
    source: str,
    source_id: str,
    missing_fields: list[str]
) -> None:
    """
    Log a track whose source record lacked optional fields.

    Logs a WARNING and attaches the extra fields MetadataGapHandler
    writes to metadata_gaps.log. A gap is never an error.

    Example:
        log_metadata_gap(logger, "Intro", "Spotify", "4cOdK2wGLETKBW3PvgPWqT", ["isrc"])
    """
    logger.warning(
        f"Metadata gap for {source} track '{track_title}' ({source_id}): "
        f"missing {', '.join(missing_fields)}",
        extra={
            "metadata_gap_title": track_title,
            "metadata_gap_source": source,
            "metadata_gap_source_id": source_id,
            "metadata_gap_fields": list(missing_fields),
        }
    )


def log_sync_failure(
    logger: logging.Logger,
    track_title: str,
    source: str,
    source_id: str,
    error_message: str
) -> None:
    """
    Log a track that could not be synced.

    Logs an ERROR with the title and source id and attaches the extra
    fields SyncFailureHandler writes to sync_failures.log.
    """
    logger.error(
        f"Failed to sync {source} track '{track_title}' ({source_id}): {error_message}",
        extra={
            "sync_failed_title": track_title,
            "sync_failed_source": source,
            "sync_failed_source_id": source_id,
            "sync_failed_reason": error_message,
        }
    )


def log_sync_summary(logger: logging.Logger, summary: "RunSummary") -> None:
    """
    Log the final summary of a run, one line per source plus totals.

    Example output:
        Spotify: 3 created, 12 updated
        Apple Music: No changes
        Cleanup: 2 marked as removed, 0 errors
        Sync finished in 14.2s (DRY RUN)
    """
    for source, stats in summary.by_source.items():
        logger.info(f"{source.value}: {stats.summary}")

    if summary.cleanup is not None:
        logger.info(
            f"Cleanup: {summary.cleanup.marked} marked as removed, "
            f"{summary.cleanup.errors} errors"
        )

    suffix = " (DRY RUN)" if summary.dry_run else ""
    message = f"Sync finished in {summary.total_duration:.1f}s{suffix}"
    if summary.total_errors:
        logger.warning(f"{message} with {summary.total_errors} errors")
    else:
        logger.info(message)


def shutdown_logging() -> None:
    """
    Flush and close all handlers of the root logger.

    Typically called in a finally block at application exit.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except OSError:
            pass
        root_logger.removeHandler(handler)
