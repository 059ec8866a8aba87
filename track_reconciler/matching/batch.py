"""
Batch matching over a list of source tracks.

BatchMatcher drives the MatchOrchestrator over many tracks with bounded
concurrency and reports progress through a callback.

Execution Model:
    Tracks are split into chunks of `concurrency` tracks. Chunks run one
    after another; the tracks inside a chunk run concurrently on a
    ThreadPoolExecutor. After each chunk the callback receives a new
    immutable BatchProgress folded from the previous one, so with
    concurrency 1 it fires once per track.

Failure Model:
    An exception while matching one track turns that track into an
    unmatched result; the batch carries on.

Cancellation:
    A threading.Event passed as cancel_event is checked before each
    chunk. Once it is set no further chunk starts, and the result holds
    only the tracks processed so far, with cancelled=True.

Usage:
    matcher = BatchMatcher(catalog, options)
    result = matcher.match_tracks(tracks, on_progress=progress_bar.update)
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Mapping

from track_reconciler.cache.export_cache import CachedEntry
from track_reconciler.catalog.base import Catalog
from track_reconciler.core.logger import get_logger
from track_reconciler.matching.models import (
    BatchProgress,
    BatchResult,
    DifferentialResult,
    MatchingOptions,
    MatchResult,
    MatchStatistics,
    SourceTrack,
)
from track_reconciler.matching.orchestrator import MatchOrchestrator


logger = get_logger(__name__)


ProgressCallback = Callable[[BatchProgress], None]


def get_match_statistics(matches: Iterable[MatchResult]) -> MatchStatistics:
    """Aggregate counts by status and by strategy."""
    return MatchStatistics.from_matches(matches)


class BatchMatcher:
    """
    Matches lists of tracks against a catalog.

    Example:
        matcher = BatchMatcher(YTMusicCatalog(), MatchingOptions(concurrency=4))
        result = matcher.match_tracks(tracks)
        print(result.statistics.matched, "of", result.statistics.total)
    """

    def __init__(self, catalog: Catalog, options: MatchingOptions | None = None) -> None:
        """
        Args:
            catalog: Destination catalog, shared by all worker threads.
            options: Matching options. Defaults to MatchingOptions().

        Raises:
            ConfigError: If options are out of range. Raised here, before
                         any track is matched.
        """
        self.options = options or MatchingOptions()
        self.options.validate()
        self._orchestrator = MatchOrchestrator(catalog, self.options)

    @property
    def orchestrator(self) -> MatchOrchestrator:
        return self._orchestrator

    def _match_one(self, track: SourceTrack) -> MatchResult:
        try:
            return self._orchestrator.match(track)
        except Exception as e:
            logger.error(f"Error matching {track.artist_display} - {track.title}: {e}")
            return MatchResult.unmatched(track)

    def match_tracks(
        self,
        tracks: list[SourceTrack],
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None
    ) -> BatchResult:
        """
        Match every track, preserving input order.

        Args:
            tracks: Source tracks to match.
            on_progress: Called with a BatchProgress after each chunk.
            cancel_event: Set it to stop before the next chunk.

        Returns:
            BatchResult with one result per processed track, in input order.
        """
        matches: list[MatchResult] = []
        progress = BatchProgress.initial(len(tracks))
        concurrency = self.options.concurrency
        cancelled = False

        if tracks:
            with ThreadPoolExecutor(max_workers=concurrency) as executor:
                for start in range(0, len(tracks), concurrency):
                    if cancel_event is not None and cancel_event.is_set():
                        cancelled = True
                        logger.info(f"Matching cancelled after {len(matches)}/{len(tracks)} tracks")
                        break

                    chunk = tracks[start:start + concurrency]
                    chunk_results = list(executor.map(self._match_one, chunk))
                    matches.extend(chunk_results)

                    progress = progress.advance(chunk_results)
                    if on_progress is not None:
                        on_progress(progress)

        return BatchResult(
            matches=tuple(matches),
            statistics=get_match_statistics(matches),
            cancelled=cancelled,
        )

    def match_tracks_differential(
        self,
        tracks: list[SourceTrack],
        cached_entries: Mapping[str, CachedEntry],
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None
    ) -> DifferentialResult:
        """
        Match only tracks missing from the cache; reuse the rest.

        Cached tracks are rebuilt from their CachedEntry without touching
        the catalog. Results are merged back into input order. The
        progress callback fires once, at the end, with the merged totals.

        Args:
            tracks: Current source tracks.
            cached_entries: Cached entries keyed by source track id.
            on_progress: Called once with the merged BatchProgress.
            cancel_event: Forwarded to match_tracks() for the fresh tracks.

        Returns:
            DifferentialResult. Unless cancelled, matches holds exactly one
            result per input track, in input order. When cancelled, tracks
            that were neither cached nor matched are left out.
        """
        merged: list[MatchResult | None] = [None] * len(tracks)
        fresh_positions: list[int] = []
        cached_count = 0

        for position, track in enumerate(tracks):
            entry = cached_entries.get(track.id)
            if entry is None:
                fresh_positions.append(position)
                continue
            merged[position] = entry.to_match_result(track)
            cached_count += 1

        logger.debug(
            f"Differential match: {len(fresh_positions)} new, {cached_count} from cache"
        )

        fresh_tracks = [tracks[position] for position in fresh_positions]
        batch = self.match_tracks(fresh_tracks, cancel_event=cancel_event)

        for position, result in zip(fresh_positions, batch.matches):
            merged[position] = result

        matches = tuple(result for result in merged if result is not None)

        if on_progress is not None:
            on_progress(BatchProgress.initial(len(tracks)).advance(matches))

        return DifferentialResult(
            matches=matches,
            statistics=get_match_statistics(matches),
            new_tracks=len(fresh_tracks),
            cached_matches=cached_count,
            cancelled=batch.cancelled,
        )
