"""Test logging setup and report files"""

import logging

import pytest

from track_reconciler.core.logger import (
    format_statistics_message,
    get_logger,
    log_ambiguous_match,
    log_unmatched_track,
    setup_logging,
    shutdown_logging,
)


@pytest.fixture
def logs_dir(temp_dir):
    logs_dir = setup_logging(temp_dir)
    yield logs_dir
    shutdown_logging()


def read_report(logs_dir, prefix):
    shutdown_logging()
    (path,) = logs_dir.glob(f"{prefix}_*.log")
    return path.read_text(encoding="utf-8")


class TestSetupLogging:
    """Test setup_logging"""

    def test_creates_log_files(self, temp_dir, logs_dir):
        assert logs_dir == temp_dir / "logs"
        for prefix in ("log_full", "log_errors", "unmatched_tracks", "ambiguous_matches"):
            assert len(list(logs_dir.glob(f"{prefix}_*.log"))) == 1

    def test_error_log_filters_levels(self, logs_dir):
        logger = get_logger("track_reconciler.test")
        logger.info("just info")
        logger.error("something broke")

        errors = read_report(logs_dir, "log_errors")
        assert "something broke" in errors
        assert "just info" not in errors

    def test_full_log_has_debug(self, logs_dir):
        get_logger("track_reconciler.test").debug("debug detail")

        assert "debug detail" in read_report(logs_dir, "log_full")

    def test_shutdown_removes_handlers(self, logs_dir):
        shutdown_logging()

        assert logging.getLogger().handlers == []


class TestReports:
    """Test the unmatched and ambiguous report files"""

    def test_unmatched_report(self, logs_dir):
        log_unmatched_track(
            get_logger("track_reconciler.test"),
            track_id="abc123",
            title="Yesterday",
            artist="The Beatles",
            album="Help!",
        )

        report = read_report(logs_dir, "unmatched_tracks")

        assert report == (
            "The Beatles - Yesterday (Help!)\n"
            "https://open.spotify.com/track/abc123\n\n"
        )

    def test_unmatched_report_without_album(self, logs_dir):
        log_unmatched_track(get_logger("track_reconciler.test"), "abc123", "Yesterday", "The Beatles")

        assert read_report(logs_dir, "unmatched_tracks").startswith("The Beatles - Yesterday\n")

    def test_ambiguous_report(self, logs_dir):
        log_ambiguous_match(
            get_logger("track_reconciler.test"),
            track_id="hello",
            title="Hello",
            artist="Adele",
            selected=("Hello - Adele [Hello Single]", "yt_single", 0.9),
            candidates=[("Hello - Adele [Hello EP]", "yt_ep", 0.89)],
        )

        report = read_report(logs_dir, "ambiguous_matches")

        assert "Adele - Hello\n" in report
        assert "Source: https://open.spotify.com/track/hello\n" in report
        assert "Selected: Hello - Adele [Hello Single] id=yt_single (score: 0.90)\n" in report
        assert "  - Hello - Adele [Hello EP] id=yt_ep (score: 0.89)\n" in report
        assert "Multiple close matches found. Verify if correct." in report

    def test_plain_records_not_in_reports(self, logs_dir):
        get_logger("track_reconciler.test").warning("plain warning")

        assert read_report(logs_dir, "unmatched_tracks") == ""
        assert read_report(logs_dir, "ambiguous_matches") == ""


def test_format_statistics_message():
    message = format_statistics_message(total=10, matched=7, ambiguous=1, unmatched=2)

    assert message.startswith("Reconciled 10 tracks")
    assert "7" in message and "1" in message and "2" in message
