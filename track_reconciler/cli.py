"""
Command-line interface for track-reconciler.

This module implements the CLI using Click, with rich-click for the
output colors. One command reconciles a Spotify playlist against
YouTube Music and caches the outcome per playlist.

Commands:
    reconcile --url <playlist_url>          Reconcile a playlist
    reconcile --url <url> --force           Re-run even if the playlist is unchanged
    reconcile --clear-expired               Drop cache records older than max_age_days
    reconcile --forget <playlist_url>       Drop the cache record of one playlist

Usage:
    # First run matches every track
    reconcile --url "https://open.spotify.com/playlist/..."

    # Later runs match only tracks added since the cached snapshot
    reconcile --url "https://open.spotify.com/playlist/..."

    # Override matching options for one run
    reconcile --url "https://..." --concurrency 8 --threshold 0.85

Configuration:
    The CLI requires a config.yaml file in the current directory (or the
    path given with --config) with:
    - Spotify API credentials (client_id, client_secret)
    - Output directory path (logs/ and cache.db)
    - Optional matching and cache sections

Exit Codes:
    0   success
    1   configuration error or unexpected error
    2   cache error
    3   Spotify error
    4   other reconciler error
    130 interrupted
"""

import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.OPTION_GROUPS = {
    "reconcile": [
        {
            "name": "Input Source",
            "options": ["--url", "--config"],
        },
        {
            "name": "Matching Options",
            "options": ["--concurrency", "--threshold"],
        },
        {
            "name": "Cache Options",
            "options": ["--force", "--no-cache", "--clear-expired", "--forget"],
        },
        {
            "name": "Info",
            "options": ["--version", "--help"],
        },
    ],
}

from track_reconciler import __version__
from track_reconciler.cache.export_cache import (
    ExportCache,
    PlaylistSnapshot,
    build_snapshot,
    calculate_diff,
    is_up_to_date,
)
from track_reconciler.catalog.base import Catalog
from track_reconciler.catalog.ytmusic import YTMusicCatalog
from track_reconciler.core.config import Config, load_config
from track_reconciler.core.database import CacheStore, MemoryCacheStore, SqliteCacheStore
from track_reconciler.core.exceptions import (
    CacheError,
    ConfigError,
    ReconcilerError,
    SourceError,
)
from track_reconciler.core.logger import (
    format_matched_message,
    format_statistics_message,
    get_logger,
    log_ambiguous_match,
    log_unmatched_track,
    setup_logging,
    shutdown_logging,
)
from track_reconciler.core.progress import MatchingProgressBar
from track_reconciler.matching.batch import BatchMatcher
from track_reconciler.matching.models import (
    MatchingOptions,
    MatchResult,
    MatchStatistics,
    MatchStatus,
    MatchStrategy,
)
from track_reconciler.spotify.client import SpotifyClient, extract_playlist_id

logger = get_logger(__name__)


@click.command(name="reconcile")
@click.option(
    "--url",
    type=str,
    default=None,
    metavar="<spotify-url>",
    help="Spotify playlist URL"
)
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml)"
)
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=None,
    help="Tracks matched in parallel (overrides config)"
)
@click.option(
    "--threshold",
    type=click.FloatRange(min=0.0, max=1.0),
    default=None,
    help="Fuzzy acceptance threshold (overrides config)"
)
@click.option(
    "--force",
    is_flag=True,
    help="Re-match even if the cached snapshot is up to date"
)
@click.option(
    "--no-cache",
    is_flag=True,
    help="Do not read or write the cache for this run"
)
@click.option(
    "--clear-expired",
    is_flag=True,
    help="Remove cache records older than cache.max_age_days"
)
@click.option(
    "--forget",
    type=str,
    default=None,
    metavar="<spotify-url>",
    help="Remove the cache record of a playlist"
)
@click.option(
    "--version",
    is_flag=True,
    help="Show version and exit."
)
@click.pass_context
def cli(
    ctx: click.Context,
    url: Optional[str],
    config_path: Optional[Path],
    concurrency: Optional[int],
    threshold: Optional[float],
    force: bool,
    no_cache: bool,
    clear_expired: bool,
    forget: Optional[str],
    version: bool
) -> None:
    """
    track-reconciler: Match Spotify playlists against YouTube Music.

    Resolves every track of a playlist to a YouTube Music song through
    ISRC, strict and fuzzy matching, and caches the outcome so later runs
    only match tracks that are new.

    \b
    BASIC USAGE:
        reconcile --url "https://open.spotify.com/playlist/..."

    \b
    CACHE:
        reconcile --url "https://..." --force     # Ignore an up-to-date snapshot
        reconcile --url "https://..." --no-cache  # Match everything, save nothing
        reconcile --clear-expired                 # Drop old snapshots
        reconcile --forget "https://..."          # Drop one playlist's snapshot
    """
    if version:
        click.echo(f"track-reconciler {__version__}")
        ctx.exit(0)

    if not url and not clear_expired and not forget:
        click.echo(ctx.get_help())
        ctx.exit(0)

    if no_cache and (clear_expired or forget):
        raise click.UsageError("--no-cache cannot be combined with --clear-expired or --forget")

    if no_cache and force:
        raise click.UsageError("--force has no effect with --no-cache")

    if url and "playlist" not in url and ("spotify.com" in url or url.startswith("spotify:")):
        raise click.UsageError("--url must be a Spotify playlist URL (containing '/playlist/')")

    _run_cli({
        "url": url,
        "config_path": config_path,
        "concurrency": concurrency,
        "threshold": threshold,
        "force": force,
        "no_cache": no_cache,
        "clear_expired": clear_expired,
        "forget": forget,
    })


def _run_cli(options: dict) -> None:
    """
    Execute the workflow selected by the CLI options.

    1. Loads configuration
    2. Sets up logging
    3. Opens the cache store
    4. Runs cache maintenance, then reconciliation
    5. Reports results

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    store: CacheStore | None = None

    try:
        config = load_config(options["config_path"])
        config = replace(
            config,
            matching=_apply_overrides(config.matching, options["concurrency"], options["threshold"])
        )

        logs_dir = setup_logging(config.output.directory)
        logger.info(f"track-reconciler {__version__} starting")
        logger.debug(f"Writing logs to {logs_dir}")

        store = _open_store(config, options["no_cache"])
        cache = ExportCache(store)

        if options["clear_expired"]:
            _run_clear_expired(cache, config.cache.max_age_days)

        if options["forget"]:
            _run_forget(cache, options["forget"])

        if options["url"]:
            source = SpotifyClient.from_credentials(
                config.spotify.client_id,
                config.spotify.client_secret
            )
            statistics = _run_reconcile(
                url=options["url"],
                source=source,
                catalog=YTMusicCatalog(),
                cache=cache,
                options=config.matching,
                force=options["force"],
            )
            _print_statistics(statistics)

        logger.info("track-reconciler completed successfully")

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except CacheError as e:
        click.echo(f"Cache error: {e.message}", err=True)
        logger.error(f"Cache error: {e.message}", exc_info=True)
        sys.exit(2)

    except SourceError as e:
        click.echo(f"Spotify error: {e.message}", err=True)
        if e.is_auth_error:
            click.echo("Check your client_id and client_secret in config.yaml", err=True)
        logger.error(f"Spotify error: {e.message}", exc_info=True)
        sys.exit(3)

    except ReconcilerError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        if store is not None:
            store.close()
        shutdown_logging()


def _apply_overrides(
    matching: MatchingOptions,
    concurrency: int | None,
    threshold: float | None
) -> MatchingOptions:
    """
    Apply command-line overrides to the configured matching options.

    Raises:
        ConfigError: If the resulting options are out of range.
    """
    changes = {}
    if concurrency is not None:
        changes["concurrency"] = concurrency
    if threshold is not None:
        changes["fuzzy_threshold"] = threshold

    if not changes:
        return matching

    overridden = replace(matching, **changes)
    overridden.validate()
    return overridden


def _open_store(config: Config, no_cache: bool) -> CacheStore:
    """
    Open the cache store for this run.

    With no_cache an in-memory store is used, so nothing outlives the run.

    Raises:
        CacheError: If the SQLite cache cannot be opened.
    """
    if no_cache:
        logger.info("Cache disabled for this run")
        return MemoryCacheStore()
    return SqliteCacheStore(config.output.cache_path)


def _run_clear_expired(cache: ExportCache, max_age_days: int) -> int:
    removed = cache.clear_expired(max_age_days)
    if not removed:
        logger.info(f"No cache records older than {max_age_days} days")
    return removed


def _run_forget(cache: ExportCache, url: str) -> None:
    """
    Remove one playlist's snapshot.

    Raises:
        SourceError: If the value is not a playlist URL or id.
    """
    try:
        playlist_id = extract_playlist_id(url)
    except ValueError as e:
        raise SourceError(str(e), details={"playlist_url": url}) from e

    if cache.load(playlist_id) is None:
        logger.info(f"No cached snapshot for {playlist_id}")
        return

    cache.delete(playlist_id)
    logger.info(f"Removed cached snapshot for {playlist_id}")


def _run_reconcile(
    url: str,
    source: SpotifyClient,
    catalog: Catalog,
    cache: ExportCache,
    options: MatchingOptions,
    force: bool = False
) -> MatchStatistics:
    """
    Reconcile one playlist.

    Args:
        url: Playlist URL, URI or id.
        source: Client the playlist is fetched with.
        catalog: Destination catalog to match against.
        cache: Export cache holding earlier snapshots.
        options: Matching options.
        force: Re-match every track, ignoring the cached snapshot.

    Returns:
        Statistics of the playlist after this run.

    Behavior:
        - Snapshot at the current version and not forced: report the
          cached statistics without matching anything, unless some
          cached fuzzy scores fall below the current threshold.
        - Cached fuzzy outcomes scored below the threshold are matched
          again rather than reused.
        - Otherwise: match the tracks missing from the snapshot, reuse
          the cached outcome of the others, and save a new snapshot.
          Tracks removed from the playlist drop out of the snapshot.
    """
    logger.info("=" * 60)
    logger.info("Fetching playlist from Spotify")
    logger.info("=" * 60)

    playlist = source.fetch_playlist(url)
    logger.info(f"Playlist '{playlist.name}': {len(playlist.tracks)} tracks")

    previous = None if force else cache.load(playlist.id)
    below_threshold = _fuzzy_below_threshold(previous, options.fuzzy_threshold)

    if is_up_to_date(previous, playlist.snapshot_id) and not below_threshold:
        logger.info("Playlist unchanged since the last run, using cached results")
        return previous.statistics

    diff = calculate_diff(list(playlist.tracks), previous)
    if previous is not None:
        logger.info(
            f"{len(diff.new_tracks)} new, {len(diff.unchanged_tracks)} cached, "
            f"{len(diff.removed_track_ids)} removed"
        )

    logger.info("=" * 60)
    logger.info("Matching tracks on YouTube Music")
    logger.info("=" * 60)

    matcher = BatchMatcher(catalog, options)
    cached_entries = {
        track.id: entry for track, entry in diff.unchanged_tracks
        if track.id not in below_threshold
    }
    rematched = len(diff.unchanged_tracks) - len(cached_entries)
    if rematched:
        logger.info(
            f"Re-matching {rematched} cached fuzzy matches "
            f"scored below the threshold of {options.fuzzy_threshold:.2f}"
        )

    with MatchingProgressBar(total=len(playlist.tracks)) as progress_bar:
        result = matcher.match_tracks_differential(
            list(playlist.tracks),
            cached_entries,
            on_progress=progress_bar.update,
        )

    _log_problem_tracks(result.matches)

    snapshot = build_snapshot(
        container_id=playlist.id,
        version_marker=playlist.snapshot_id,
        matches=result.matches,
        playlist_name=playlist.name,
        previous=previous,
    )
    cache.save(snapshot)

    return snapshot.statistics


def _fuzzy_below_threshold(snapshot: PlaylistSnapshot | None, threshold: float) -> set[str]:
    """Ids of cached fuzzy outcomes that the current threshold would reject."""
    if snapshot is None:
        return set()
    return {
        track_id for track_id, entry in snapshot.tracks.items()
        if entry.strategy == MatchStrategy.FUZZY and entry.score < threshold
    }


def _log_problem_tracks(matches: tuple[MatchResult, ...]) -> None:
    """Write unmatched and ambiguous tracks to their report logs."""
    for result in matches:
        track = result.source_track

        if result.status == MatchStatus.MATCHED:
            logger.debug(format_matched_message(
                track.artist_display, track.title, result.matched_candidate.label, result.score
            ))

        elif result.status == MatchStatus.UNMATCHED:
            log_unmatched_track(
                logger,
                track_id=track.id,
                title=track.title,
                artist=track.artist_display,
                album=track.album,
            )

        elif result.status == MatchStatus.AMBIGUOUS:
            selected = result.matched_candidate
            others = [
                (scored.candidate.label, scored.candidate.id, scored.score)
                for scored in result.candidates
                if scored.candidate.id != selected.id
            ]
            log_ambiguous_match(
                logger,
                track_id=track.id,
                title=track.title,
                artist=track.artist_display,
                selected=(selected.label, selected.id, result.score),
                candidates=others,
            )


def _print_statistics(statistics: MatchStatistics) -> None:
    """
    Print final statistics.

    Output:
        A summary line followed by a per-strategy breakdown.
    """
    logger.info("=" * 60)
    logger.info("FINAL STATISTICS")
    logger.info("=" * 60)
    logger.info(
        format_statistics_message(
            statistics.total,
            statistics.matched,
            statistics.ambiguous,
            statistics.unmatched,
        )
    )
    for strategy, count in statistics.by_strategy.items():
        logger.info(f"  {strategy:<12} {count}")
    logger.info("=" * 60)


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `reconcile` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()
