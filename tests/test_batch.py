"""Test batch matching"""

import threading

import pytest

from track_reconciler.cache.export_cache import CachedEntry
from track_reconciler.core.exceptions import ConfigError
from track_reconciler.matching.batch import BatchMatcher, get_match_statistics
from track_reconciler.matching.models import (
    MatchingOptions,
    MatchResult,
    MatchStatus,
    MatchStrategy,
)

from conftest import FakeCatalog, make_candidate, make_track


def make_tracks(count):
    """Tracks t0..tN; even ones exist in the catalog, odd ones do not"""
    return [make_track(track_id=f"t{i}", title=f"Song {i}", artists=("Band",)) for i in range(count)]


def make_catalog(count):
    results = {
        f"band song {i}": [make_candidate(f"yt{i}", f"Song {i}", "Band")]
        for i in range(0, count, 2)
    }
    return FakeCatalog(results)


class TestMatchTracks:
    """Test BatchMatcher.match_tracks"""

    @pytest.mark.parametrize("concurrency", [1, 3, 8])
    def test_preserves_order(self, concurrency):
        tracks = make_tracks(10)
        matcher = BatchMatcher(make_catalog(10), MatchingOptions(concurrency=concurrency))

        result = matcher.match_tracks(tracks)

        assert [r.source_track.id for r in result.matches] == [t.id for t in tracks]
        for i, match in enumerate(result.matches):
            if i % 2 == 0:
                assert match.matched_candidate.id == f"yt{i}"
            else:
                assert match.status == MatchStatus.UNMATCHED

    def test_statistics(self):
        result = BatchMatcher(make_catalog(5)).match_tracks(make_tracks(5))

        assert result.statistics.total == 5
        assert result.statistics.matched == 3
        assert result.statistics.unmatched == 2
        assert result.statistics.by_strategy["strict"] == 3
        assert result.statistics.by_strategy["none"] == 2
        assert not result.cancelled

    def test_progress_per_track(self):
        snapshots = []

        BatchMatcher(make_catalog(4)).match_tracks(make_tracks(4), on_progress=snapshots.append)

        assert [s.current for s in snapshots] == [1, 2, 3, 4]
        assert [s.percent for s in snapshots] == [25, 50, 75, 100]
        assert snapshots[-1].matched == 2
        assert snapshots[-1].unmatched == 2

    def test_progress_per_chunk(self):
        snapshots = []
        matcher = BatchMatcher(make_catalog(7), MatchingOptions(concurrency=3))

        matcher.match_tracks(make_tracks(7), on_progress=snapshots.append)

        assert [s.current for s in snapshots] == [3, 6, 7]
        assert all(s.total == 7 for s in snapshots)

    def test_empty_batch(self):
        snapshots = []

        result = BatchMatcher(FakeCatalog()).match_tracks([], on_progress=snapshots.append)

        assert result.matches == ()
        assert result.statistics.total == 0
        assert snapshots == []

    def test_failing_track_becomes_unmatched(self, monkeypatch):
        tracks = make_tracks(3)
        matcher = BatchMatcher(make_catalog(3))
        original = matcher.orchestrator.match

        def flaky_match(track):
            if track.id == "t0":
                raise RuntimeError("boom")
            return original(track)

        monkeypatch.setattr(matcher.orchestrator, "match", flaky_match)

        result = matcher.match_tracks(tracks)

        assert [r.status for r in result.matches] == [
            MatchStatus.UNMATCHED,
            MatchStatus.UNMATCHED,
            MatchStatus.MATCHED,
        ]

    def test_cancel_before_start(self):
        cancel = threading.Event()
        cancel.set()
        catalog = make_catalog(3)

        result = BatchMatcher(catalog).match_tracks(make_tracks(3), cancel_event=cancel)

        assert result.cancelled
        assert result.matches == ()
        assert catalog.queries == []

    def test_cancel_between_chunks(self):
        cancel = threading.Event()

        result = BatchMatcher(make_catalog(5)).match_tracks(
            make_tracks(5),
            on_progress=lambda progress: cancel.set(),
            cancel_event=cancel,
        )

        assert result.cancelled
        assert [r.source_track.id for r in result.matches] == ["t0"]

    def test_invalid_options(self):
        with pytest.raises(ConfigError):
            BatchMatcher(FakeCatalog(), MatchingOptions(concurrency=0))


class TestMatchTracksDifferential:
    """Test BatchMatcher.match_tracks_differential"""

    def _cached(self, track, candidate_id):
        result = MatchResult.matched(
            track,
            make_candidate(candidate_id, track.title, "Band"),
            1.0,
            MatchStrategy.STRICT,
        )
        return CachedEntry.from_match_result(result, matched_at="2024-01-01T00:00:00+00:00")

    def test_reuses_cached_entries(self):
        tracks = make_tracks(4)
        catalog = make_catalog(4)
        cached = {"t1": self._cached(tracks[1], "yt_cached")}

        result = BatchMatcher(catalog).match_tracks_differential(tracks, cached)

        assert [r.source_track.id for r in result.matches] == ["t0", "t1", "t2", "t3"]
        assert result.matches[1].matched_candidate.id == "yt_cached"
        assert result.new_tracks == 3
        assert result.cached_matches == 1
        assert "band song 1" not in catalog.queries
        assert result.statistics.total == 4

    def test_all_cached_makes_no_queries(self):
        tracks = make_tracks(2)
        catalog = make_catalog(2)
        cached = {t.id: self._cached(t, f"yt_{t.id}") for t in tracks}

        result = BatchMatcher(catalog).match_tracks_differential(tracks, cached)

        assert catalog.queries == []
        assert result.new_tracks == 0
        assert result.statistics.matched == 2

    def test_progress_fires_once(self):
        tracks = make_tracks(3)
        snapshots = []
        cached = {"t0": self._cached(tracks[0], "yt_cached")}

        BatchMatcher(make_catalog(3)).match_tracks_differential(
            tracks, cached, on_progress=snapshots.append
        )

        assert len(snapshots) == 1
        assert snapshots[0].current == 3
        assert snapshots[0].total == 3
        assert snapshots[0].percent == 100

    def test_cancelled_run_omits_unprocessed(self):
        tracks = make_tracks(3)
        cancel = threading.Event()
        cancel.set()
        cached = {"t1": self._cached(tracks[1], "yt_cached")}

        result = BatchMatcher(make_catalog(3)).match_tracks_differential(
            tracks, cached, cancel_event=cancel
        )

        assert result.cancelled
        assert [r.source_track.id for r in result.matches] == ["t1"]


def test_get_match_statistics():
    track = make_track()
    matches = [
        MatchResult.matched(track, make_candidate(), 1.0, MatchStrategy.IDENTIFIER),
        MatchResult.ambiguous(track, make_candidate(), 0.9, ()),
        MatchResult.unmatched(track),
    ]

    statistics = get_match_statistics(matches)

    assert (statistics.total, statistics.matched, statistics.ambiguous, statistics.unmatched) == (3, 1, 1, 1)
    assert statistics.by_strategy == {
        "identifier": 1,
        "strict": 0,
        "fuzzy": 1,
        "manual": 0,
        "none": 1,
    }
