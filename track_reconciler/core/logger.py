"""
Logging configuration for track-reconciler.

This module sets up the logging system with multiple outputs:
    - Console: Real-time messages with tqdm-compatible formatting
    - log_full.log: Complete log of all events (DEBUG and above)
    - log_errors.log: Only ERROR and CRITICAL level messages
    - unmatched_tracks.log: Source tracks with no destination match
    - ambiguous_matches.log: Tracks whose best match had a near-tie,
      listed with the ranked candidates for manual review

Everything shown on screen is also saved to file, then filtered into
the specialized report files.

Log File Locations:
    All log files are created in output_dir/logs, one set per run,
    suffixed with the run timestamp.

Usage:
    from track_reconciler.core.logger import setup_logging, get_logger

    setup_logging(output_dir)  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Starting reconciliation")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


# Log file name prefixes (suffixed with the run timestamp)
LOG_FULL_FILENAME = "log_full"
LOG_ERRORS_FILENAME = "log_errors"
UNMATCHED_TRACKS_FILENAME = "unmatched_tracks"
AMBIGUOUS_MATCHES_FILENAME = "ambiguous_matches"

# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

RUN_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

SPOTIFY_TRACK_URL = "https://open.spotify.com/track/{}"


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that prefixes each console line with a colored level name.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        return f"{color}{record.levelname}{Colors.RESET}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to the console without breaking progress bars.

    Uses tqdm.write(), which prints above any active bar instead of
    interleaving with its carriage-return updates.

    Attributes:
        stream: The output stream. None means whatever sys.stderr is at
                emit time.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream or sys.stderr)
        except Exception:
            self.handleError(record)


class ReportFileHandler(logging.Handler):
    """
    Base class for handlers that turn tagged log records into a report file.

    A record is written only when it carries the subclass's marker
    attribute (passed via ``extra=``); every other record is ignored.
    The file is opened explicitly by open() and overwritten on each run.

    Subclasses set MARKER and implement write_entry().

    Attributes:
        report_path: Path of the report file.
        report_file: Open file handle, or None before open()/after close().
    """

    MARKER = ""

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file for writing (overwrites existing content)."""
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, self.MARKER):
            return

        if self.report_file is None:
            return

        try:
            self.write_entry(record, self.report_file)
            self.report_file.flush()
        except Exception:
            self.handleError(record)

    def write_entry(self, record: logging.LogRecord, out: TextIO) -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Close the report file handle. Safe to call multiple times."""
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class UnmatchedTrackHandler(ReportFileHandler):
    """
    Writes source tracks that found no destination match.

    Format:

        Artist Name - Song Title (Album)
        https://open.spotify.com/track/xxxxx

    Looks for these extra fields:
        - 'unmatched_track_title'
        - 'unmatched_track_artist'
        - 'unmatched_track_album'
        - 'unmatched_track_id'
    """

    MARKER = "unmatched_track_title"

    def write_entry(self, record: logging.LogRecord, out: TextIO) -> None:
        title = getattr(record, "unmatched_track_title", "Unknown")
        artist = getattr(record, "unmatched_track_artist", "Unknown")
        album = getattr(record, "unmatched_track_album", "")
        track_id = getattr(record, "unmatched_track_id", "")

        heading = f"{artist} - {title}"
        if album:
            heading += f" ({album})"

        out.write(f"{heading}\n")
        out.write(f"{SPOTIFY_TRACK_URL.format(track_id)}\n\n")


class AmbiguousMatchHandler(ReportFileHandler):
    """
    Writes matches that were accepted but had a close competitor.

    Format:

        Artist Name - Song Title
        Source: https://open.spotify.com/track/xxxxx
        Selected: Song Title - Artist [Album] id=abc (score: 0.91)
        Candidates:
          - Song Title - Artist [Other Album] id=def (score: 0.90)
        Multiple close matches found. Verify if correct.

    Looks for these extra fields:
        - 'ambiguous_track_title'
        - 'ambiguous_track_artist'
        - 'ambiguous_track_id'
        - 'ambiguous_selected': (label, candidate_id, score)
        - 'ambiguous_candidates': list of (label, candidate_id, score)
    """

    MARKER = "ambiguous_track_title"

    def write_entry(self, record: logging.LogRecord, out: TextIO) -> None:
        title = getattr(record, "ambiguous_track_title", "Unknown")
        artist = getattr(record, "ambiguous_track_artist", "Unknown")
        track_id = getattr(record, "ambiguous_track_id", "")
        selected = getattr(record, "ambiguous_selected", None)
        candidates = getattr(record, "ambiguous_candidates", [])

        out.write(f"{artist} - {title}\n")
        out.write(f"Source: {SPOTIFY_TRACK_URL.format(track_id)}\n")

        if selected is not None:
            label, candidate_id, score = selected
            out.write(f"Selected: {label} id={candidate_id} (score: {score:.2f})\n")

        if candidates:
            out.write("Candidates:\n")
            for label, candidate_id, score in candidates:
                out.write(f"  - {label} id={candidate_id} (score: {score:.2f})\n")

        out.write("Multiple close matches found. Verify if correct.\n\n")


class ErrorOnlyFilter(logging.Filter):
    """Filter that only allows ERROR and CRITICAL level records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(output_dir: Path) -> Path:
    """
    Configure the logging system for the application.

    Call ONCE at startup, after the configuration is loaded and before
    any matching starts.

    Args:
        output_dir: Directory where log files will be created.
                    Logs are stored in a 'logs' subdirectory.

    Returns:
        Path of the logs directory for this run.

    Behavior:
        1. Create output_dir/logs if it doesn't exist
        2. Generate a timestamp for this run's log files
        3. Set root logger level to DEBUG and drop existing handlers
        4. Console handler (TqdmLoggingHandler), level INFO, colored
        5. Full log file handler, level DEBUG
        6. Error log file handler, filtered to ERROR+
        7. Unmatched tracks report handler
        8. Ambiguous matches report handler

    Thread Safety:
        NOT thread-safe. Call from the main thread before starting workers.
    """
    logs_dir = output_dir / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime(RUN_TIMESTAMP_FORMAT)

    def run_file(prefix: str) -> Path:
        return logs_dir / f"{prefix}_{timestamp}.log"

    console = TqdmLoggingHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(ColoredConsoleFormatter())

    full_log = _plain_file_handler(run_file(LOG_FULL_FILENAME))

    error_log = _plain_file_handler(run_file(LOG_ERRORS_FILENAME))
    error_log.addFilter(ErrorOnlyFilter())

    reports = [
        UnmatchedTrackHandler(run_file(UNMATCHED_TRACKS_FILENAME)),
        AmbiguousMatchHandler(run_file(AMBIGUOUS_MATCHES_FILENAME)),
    ]
    for report in reports:
        report.open()

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()
    for handler in [console, full_log, error_log, *reports]:
        root.addHandler(handler)

    return logs_dir


def _plain_file_handler(path: Path) -> logging.FileHandler:
    """DEBUG-level file handler with the detailed file format, truncated per run."""
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    return handler


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Returns:
        logging.Logger configured by setup_logging(). Loggers obtained
        before setup_logging() runs produce no output until it does.
    """
    return logging.getLogger(name)


def format_matched_message(artist: str, title: str, candidate_label: str, score: float) -> str:
    """Format a 'Matched' console message with colors."""
    return (
        f"{Colors.GREEN}Matched{Colors.RESET}: "
        f"{artist} - {title} -> "
        f"{Colors.CYAN}{candidate_label}{Colors.RESET} ({score:.2f})"
    )


def format_ambiguous_message(artist: str, title: str, score: float) -> str:
    """Format a 'Multiple close matches' console warning with colors."""
    return (
        f"{Colors.YELLOW}Multiple close matches{Colors.RESET} for: "
        f"{artist} - {title} "
        f"(selected score: {Colors.YELLOW}{score:.2f}{Colors.RESET})"
    )


def format_no_match_message(artist: str, title: str) -> str:
    """Format a 'No match' console message with colors."""
    return f"{Colors.RED}No match{Colors.RESET}: {artist} - {title}"


def format_statistics_message(
    total: int,
    matched: int,
    ambiguous: int,
    unmatched: int
) -> str:
    """
    Format an end-of-run summary line.

    Args:
        total: Number of source tracks.
        matched: Tracks with status matched.
        ambiguous: Tracks with status ambiguous.
        unmatched: Tracks with no match.

    Returns:
        Colored message string.
    """
    return (
        f"Reconciled {total} tracks "
        f"(matched: {Colors.GREEN}{matched}{Colors.RESET}, "
        f"ambiguous: {Colors.YELLOW}{ambiguous}{Colors.RESET}, "
        f"unmatched: {Colors.RED}{unmatched}{Colors.RESET})"
    )


def log_unmatched_track(
    logger: logging.Logger,
    track_id: str,
    title: str,
    artist: str,
    album: str = ""
) -> None:
    """
    Log a source track that found no destination match.

    Logs at WARNING and attaches the extra fields UnmatchedTrackHandler
    writes to unmatched_tracks.log.

    Example:
        log_unmatched_track(
            logger,
            track_id="4iV5W9uYEdYUVa79Axb7Rh",
            title="Song Title",
            artist="Artist Name",
            album="Album Name"
        )
    """
    logger.warning(
        format_no_match_message(artist, title),
        extra={
            "unmatched_track_title": title,
            "unmatched_track_artist": artist,
            "unmatched_track_album": album,
            "unmatched_track_id": track_id,
        }
    )


def log_ambiguous_match(
    logger: logging.Logger,
    track_id: str,
    title: str,
    artist: str,
    selected: tuple[str, str, float],
    candidates: list[tuple[str, str, float]]
) -> None:
    """
    Log a match whose best candidate had a near-tie.

    Logs at WARNING and attaches the extra fields AmbiguousMatchHandler
    writes to ambiguous_matches.log.

    Args:
        logger: The logger to use for the message.
        track_id: Source track id.
        title: Source track title.
        artist: Source track artist display string.
        selected: (label, candidate_id, score) of the selected candidate.
        candidates: (label, candidate_id, score) of the other ranked
                    candidates, best first.

    Note:
        Only call this for ambiguous results, not for every match.
    """
    logger.warning(
        format_ambiguous_message(artist, title, selected[2]),
        extra={
            "ambiguous_track_title": title,
            "ambiguous_track_artist": artist,
            "ambiguous_track_id": track_id,
            "ambiguous_selected": selected,
            "ambiguous_candidates": candidates,
        }
    )


def shutdown_logging() -> None:
    """
    Flush, close and detach every root handler.

    Call at application exit, typically from a finally block.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        handler.flush()
        handler.close()
        root_logger.removeHandler(handler)
