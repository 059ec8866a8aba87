"""Test configuration and fixtures"""

import threading
import tempfile
from pathlib import Path

import pytest

from track_reconciler.catalog.base import Catalog
from track_reconciler.matching.models import CandidateTrack, SourceTrack


class FakeCatalog(Catalog):
    """Scripted catalog that records every query it receives"""

    def __init__(self, results=None, default=None, error=None):
        self.results = results or {}
        self.default = default or []
        self.error = error
        self.queries = []
        self._lock = threading.Lock()

    def search(self, query, song_count=20):
        with self._lock:
            self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.results.get(query, self.default))[:song_count]


def make_track(track_id="t1", title="Yesterday", artists=("The Beatles",), album="",
               duration_ms=125000, isrc=None):
    """Build a SourceTrack with sensible defaults"""
    return SourceTrack(
        id=track_id,
        title=title,
        artists=tuple(artists),
        album=album,
        duration_ms=duration_ms,
        isrc=isrc,
    )


def make_candidate(candidate_id="c1", title="Yesterday", artist="The Beatles", album="",
                   duration_seconds=125, isrc=(), is_compilation=None):
    """Build a CandidateTrack with sensible defaults"""
    return CandidateTrack(
        id=candidate_id,
        title=title,
        artist=artist,
        album=album,
        duration_seconds=duration_seconds,
        isrc=tuple(isrc),
        is_compilation=is_compilation,
    )


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def yesterday_track():
    """Remastered title whose strict form differs from the catalog's"""
    return make_track(title="Yesterday - Remastered 2009")


@pytest.fixture
def yesterday_candidates():
    """The right recording plus a cover by another artist"""
    return [
        make_candidate("yt_beatles", "Yesterday", "The Beatles", duration_seconds=125),
        make_candidate("yt_cover", "Yesterday", "Boyz II Men", duration_seconds=190),
    ]


@pytest.fixture
def hello_track():
    """Track whose album appears under two equally plausible releases"""
    return make_track(
        track_id="hello",
        title="Hello",
        artists=("Adele",),
        album="25",
        duration_ms=295000,
    )


@pytest.fixture
def hello_candidates():
    return [
        make_candidate("yt_single", "Hello", "Adele", album="Hello Single", duration_seconds=295),
        make_candidate("yt_ep", "Hello", "Adele", album="Hello EP", duration_seconds=295),
    ]


@pytest.fixture
def sample_track_data():
    """Sample Spotify playlist item for testing"""
    return {
        'track': {
            'id': 'test_track_123',
            'name': 'Test Song',
            'type': 'track',
            'is_local': False,
            'artists': [
                {'id': 'artist_123', 'name': 'Test Artist'},
                {'id': 'artist_456', 'name': 'Guest Artist'},
            ],
            'album': {
                'id': 'album_123',
                'name': 'Test Album',
                'album_type': 'album',
            },
            'duration_ms': 210000,  # 3:30
            'external_ids': {'isrc': 'USUM71703861'},
        }
    }
