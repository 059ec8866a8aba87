"""Test the command-line interface"""

from unittest.mock import Mock

import pytest
from click.testing import CliRunner

from track_reconciler import __version__
from track_reconciler.cache.export_cache import ExportCache, build_snapshot
from track_reconciler.cli import (
    _apply_overrides,
    _run_clear_expired,
    _run_forget,
    _run_reconcile,
    cli,
)
from track_reconciler.core.database import MemoryCacheStore
from track_reconciler.core.exceptions import ConfigError, SourceError
from track_reconciler.matching.models import MatchingOptions, MatchStrategy
from track_reconciler.spotify.client import SourcePlaylist

from conftest import FakeCatalog, make_candidate, make_track


PLAYLIST_URL = "https://open.spotify.com/playlist/road_trip"


def band_track(index):
    return make_track(track_id=f"t{index}", title=f"Song {index}", artists=("Band",))


def band_catalog(count):
    return FakeCatalog({
        f"band song {i}": [make_candidate(f"yt{i}", f"Song {i}", "Band")]
        for i in range(count)
    })


def playlist(tracks, snapshot_id="snap1"):
    return SourcePlaylist(id="road_trip", name="Road Trip", snapshot_id=snapshot_id, tracks=tuple(tracks))


def source_returning(*playlists):
    source = Mock()
    source.fetch_playlist.side_effect = list(playlists)
    return source


@pytest.fixture
def cache():
    return ExportCache(MemoryCacheStore())


class TestCommandLine:
    """Test option handling"""

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert f"track-reconciler {__version__}" in result.output

    def test_no_arguments_prints_help(self):
        result = CliRunner().invoke(cli, [])

        assert result.exit_code == 0
        assert "--url" in result.output

    def test_no_cache_with_forget(self):
        result = CliRunner().invoke(cli, ["--no-cache", "--forget", PLAYLIST_URL])

        assert result.exit_code == 2

    def test_no_cache_with_force(self):
        result = CliRunner().invoke(cli, ["--url", PLAYLIST_URL, "--no-cache", "--force"])

        assert result.exit_code == 2

    def test_track_url_rejected(self):
        result = CliRunner().invoke(cli, ["--url", "https://open.spotify.com/track/abc"])

        assert result.exit_code == 2

    def test_threshold_out_of_range(self):
        result = CliRunner().invoke(cli, ["--url", PLAYLIST_URL, "--threshold", "1.5"])

        assert result.exit_code == 2

    def test_invalid_config(self, temp_dir):
        config_path = temp_dir / "config.yaml"
        config_path.write_text("spotify: [unclosed\n", encoding="utf-8")

        result = CliRunner().invoke(cli, ["--url", PLAYLIST_URL, "--config", str(config_path)])

        assert result.exit_code == 1

    def test_full_run(self, temp_dir, monkeypatch):
        config_path = temp_dir / "config.yaml"
        config_path.write_text(
            "spotify:\n"
            "  client_id: abc\n"
            "  client_secret: def\n"
            "output:\n"
            f"  directory: {temp_dir}\n",
            encoding="utf-8",
        )
        source = source_returning(playlist([band_track(0), band_track(1)]))
        spotify_client = Mock()
        spotify_client.from_credentials.return_value = source
        catalog = band_catalog(1)
        monkeypatch.setattr("track_reconciler.cli.SpotifyClient", spotify_client)
        monkeypatch.setattr("track_reconciler.cli.YTMusicCatalog", lambda: catalog)

        result = CliRunner().invoke(cli, ["--url", PLAYLIST_URL, "--config", str(config_path)])

        assert result.exit_code == 0
        spotify_client.from_credentials.assert_called_once_with("abc", "def")
        assert (temp_dir / "cache.db").exists()
        assert len(list((temp_dir / "logs").glob("unmatched_tracks_*.log"))) == 1

    def test_source_error_exit_code(self, temp_dir, monkeypatch):
        config_path = temp_dir / "config.yaml"
        config_path.write_text(
            "spotify:\n"
            "  client_id: abc\n"
            "  client_secret: def\n"
            "output:\n"
            f"  directory: {temp_dir}\n",
            encoding="utf-8",
        )
        spotify_client = Mock()
        spotify_client.from_credentials.side_effect = SourceError("bad credentials", is_auth_error=True)
        monkeypatch.setattr("track_reconciler.cli.SpotifyClient", spotify_client)

        result = CliRunner().invoke(cli, ["--url", PLAYLIST_URL, "--config", str(config_path)])

        assert result.exit_code == 3


class TestApplyOverrides:
    """Test _apply_overrides"""

    def test_no_overrides_returns_same_options(self):
        options = MatchingOptions()

        assert _apply_overrides(options, None, None) is options

    def test_overrides(self):
        options = _apply_overrides(MatchingOptions(), 8, 0.9)

        assert options.concurrency == 8
        assert options.fuzzy_threshold == 0.9

    def test_invalid_override(self):
        with pytest.raises(ConfigError):
            _apply_overrides(MatchingOptions(), 0, None)


class TestRunReconcile:
    """Test _run_reconcile against a mocked source"""

    def test_first_run(self, cache):
        catalog = band_catalog(2)
        source = source_returning(playlist([band_track(0), band_track(1), band_track(2)]))

        statistics = _run_reconcile(PLAYLIST_URL, source, catalog, cache, MatchingOptions())

        assert statistics.total == 3
        assert statistics.matched == 2
        assert statistics.unmatched == 1
        snapshot = cache.load("road_trip")
        assert snapshot.version_marker == "snap1"
        assert snapshot.playlist_name == "Road Trip"
        assert set(snapshot.tracks) == {"t0", "t1", "t2"}

    def test_unchanged_playlist_uses_cache(self, cache):
        tracks = [band_track(0), band_track(1)]
        source = source_returning(playlist(tracks), playlist(tracks))
        _run_reconcile(PLAYLIST_URL, source, band_catalog(2), cache, MatchingOptions())
        catalog = band_catalog(2)

        statistics = _run_reconcile(PLAYLIST_URL, source, catalog, cache, MatchingOptions())

        assert catalog.queries == []
        assert statistics.matched == 2

    def test_only_new_tracks_matched(self, cache):
        source = source_returning(
            playlist([band_track(0), band_track(1)], "snap1"),
            playlist([band_track(1), band_track(2)], "snap2"),
        )
        _run_reconcile(PLAYLIST_URL, source, band_catalog(3), cache, MatchingOptions())
        catalog = band_catalog(3)

        statistics = _run_reconcile(PLAYLIST_URL, source, catalog, cache, MatchingOptions())

        assert "band song 1" not in catalog.queries
        assert "band song 2" in catalog.queries
        assert statistics.total == 2
        snapshot = cache.load("road_trip")
        assert snapshot.version_marker == "snap2"
        assert set(snapshot.tracks) == {"t1", "t2"}

    def test_force_rematches(self, cache):
        tracks = [band_track(0)]
        source = source_returning(playlist(tracks), playlist(tracks))
        _run_reconcile(PLAYLIST_URL, source, band_catalog(1), cache, MatchingOptions())
        catalog = band_catalog(1)

        _run_reconcile(PLAYLIST_URL, source, catalog, cache, MatchingOptions(), force=True)

        assert "band song 0" in catalog.queries

    def test_cached_fuzzy_match_kept_at_same_threshold(self, cache, yesterday_track, yesterday_candidates):
        source = source_returning(playlist([yesterday_track]), playlist([yesterday_track]))
        _run_reconcile(PLAYLIST_URL, source, FakeCatalog(default=yesterday_candidates), cache, MatchingOptions())
        catalog = FakeCatalog(default=yesterday_candidates)

        statistics = _run_reconcile(PLAYLIST_URL, source, catalog, cache, MatchingOptions())

        assert catalog.queries == []
        assert statistics.matched == 1

    def test_raised_threshold_rematches_weak_fuzzy_matches(self, cache, yesterday_track, yesterday_candidates):
        source = source_returning(playlist([yesterday_track]), playlist([yesterday_track]))
        _run_reconcile(PLAYLIST_URL, source, FakeCatalog(default=yesterday_candidates), cache, MatchingOptions())
        assert cache.load("road_trip").tracks[yesterday_track.id].strategy == MatchStrategy.FUZZY
        catalog = FakeCatalog(default=yesterday_candidates)

        statistics = _run_reconcile(
            PLAYLIST_URL, source, catalog, cache, MatchingOptions(fuzzy_threshold=0.95)
        )

        assert catalog.queries != []
        assert statistics.matched == 0
        assert statistics.unmatched == 1
        assert cache.load("road_trip").tracks[yesterday_track.id].strategy == MatchStrategy.NONE

    def test_source_error_propagates(self, cache):
        source = Mock()
        source.fetch_playlist.side_effect = SourceError("Playlist not found: road_trip")

        with pytest.raises(SourceError):
            _run_reconcile(PLAYLIST_URL, source, FakeCatalog(), cache, MatchingOptions())

        assert cache.load("road_trip") is None


class TestCacheMaintenance:
    """Test --forget and --clear-expired"""

    def test_forget(self, cache):
        cache.save(build_snapshot("road_trip", "snap1", []))

        _run_forget(cache, PLAYLIST_URL)

        assert cache.load("road_trip") is None

    def test_forget_unknown_playlist(self, cache):
        _run_forget(cache, PLAYLIST_URL)

        assert cache.load("road_trip") is None

    def test_forget_rejects_track_url(self, cache):
        with pytest.raises(SourceError):
            _run_forget(cache, "https://open.spotify.com/track/abc")

    def test_clear_expired(self, cache):
        cache.save(build_snapshot("old", "v1", [], exported_at="2000-01-01T00:00:00+00:00"))
        cache.save(build_snapshot("recent", "v1", []))

        assert _run_clear_expired(cache, 90) == 1
        assert cache.load("recent") is not None

    def test_strategy_keys_present(self, cache):
        source = source_returning(playlist([band_track(0)]))

        statistics = _run_reconcile(PLAYLIST_URL, source, band_catalog(1), cache, MatchingOptions())

        assert statistics.by_strategy[MatchStrategy.STRICT.value] == 1
