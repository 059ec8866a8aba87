"""
track-reconciler: Match Spotify playlists against YouTube Music.

Each track of a source playlist is resolved to a track in the destination
catalog by a cascade of strategies, and the outcome is cached per playlist
so later runs only match what changed.

Architecture:
    Matching cascade (matching/):
        - Identifier: search the ISRC, accept a candidate carrying it
        - Strict: exact normalized artist and title
        - Fuzzy: weighted similarity, album preference, ambiguity check
    
    Batch runs (matching/batch.py):
        - Bounded concurrency, order preserved, progress callback
        - Differential mode reuses cached outcomes
    
    Export cache (cache/):
        - One snapshot per playlist, keyed by playlist id
        - Snapshot id as version marker, diff by track id
        - SQLite or in-memory store (core/database.py)

Modules:
    core/       - Configuration, stores, logging, exceptions, progress
    matching/   - Normalization, scoring, strategies, batch matcher
    cache/      - Playlist snapshots and diffs
    catalog/    - Catalog interface and YouTube Music adapter
    spotify/    - Spotify playlist source
    cli.py      - Command-line interface

Usage:
    Command Line:
        reconcile --url "https://open.spotify.com/playlist/..."
        reconcile --url "https://..." --force
        reconcile --clear-expired
    
    Python API:
        from track_reconciler import BatchMatcher, MatchingOptions, YTMusicCatalog
        
        matcher = BatchMatcher(YTMusicCatalog(), MatchingOptions(concurrency=4))
        result = matcher.match_tracks(tracks)

Dependencies:
    - spotipy: Spotify API client
    - ytmusicapi: YouTube Music API client
    - rapidfuzz: Edit distance
    - click / rich-click: CLI
    - rich, tqdm: Progress bars and console logging
    - pyyaml: Configuration file parsing
"""

__version__ = "0.1.0"
__author__ = "track-reconciler"
__license__ = "MIT"

# Convenience imports for common usage
from track_reconciler.core import (
    CacheError,
    CatalogError,
    Config,
    ConfigError,
    ReconcilerError,
    SourceError,
    SqliteCacheStore,
    get_logger,
    load_config,
    setup_logging,
)
from track_reconciler.matching import (
    BatchMatcher,
    CandidateTrack,
    MatchingOptions,
    MatchOrchestrator,
    MatchResult,
    SourceTrack,
)
from track_reconciler.cache import ExportCache
from track_reconciler.catalog import Catalog, YTMusicCatalog
from track_reconciler.spotify import SpotifyClient

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "SqliteCacheStore",
    "setup_logging",
    "get_logger",
    # Exceptions
    "ReconcilerError",
    "ConfigError",
    "CacheError",
    "CatalogError",
    "SourceError",
    # Matching
    "SourceTrack",
    "CandidateTrack",
    "MatchResult",
    "MatchingOptions",
    "MatchOrchestrator",
    "BatchMatcher",
    # Cache, catalog, source
    "ExportCache",
    "Catalog",
    "YTMusicCatalog",
    "SpotifyClient",
]
