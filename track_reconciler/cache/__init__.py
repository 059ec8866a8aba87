"""
Export cache: per-playlist snapshots of match outcomes.

Usage:
    from track_reconciler.cache import ExportCache, calculate_diff

    cache = ExportCache(SqliteCacheStore(path))
    snapshot = cache.load(playlist_id)
    diff = calculate_diff(tracks, snapshot)
"""

from track_reconciler.cache.export_cache import (
    CachedEntry,
    CandidateInfo,
    DiffResult,
    ExportCache,
    PlaylistSnapshot,
    build_snapshot,
    calculate_diff,
    is_up_to_date,
)

__all__ = [
    "CachedEntry",
    "CandidateInfo",
    "DiffResult",
    "ExportCache",
    "PlaylistSnapshot",
    "build_snapshot",
    "calculate_diff",
    "is_up_to_date",
]
