"""
Matching engine for track-reconciler.

Components:
    - models: Tracks, candidates, results and statistics
    - normalizer: Text normalization per field kind
    - similarity: Per-field similarity and the composite score
    - ranker: Album preference, ordering and ambiguity detection
    - strategies: Identifier, strict and fuzzy stages
    - orchestrator: Runs the stages for one track
    - batch: Bounded-concurrency matching of many tracks

Usage:
    from track_reconciler.matching import BatchMatcher, MatchingOptions

    matcher = BatchMatcher(catalog, MatchingOptions(concurrency=4))
    result = matcher.match_tracks(tracks)
    print(f"Matched {result.statistics.matched}/{result.statistics.total} tracks")
"""

from track_reconciler.matching.models import (
    BatchProgress,
    BatchResult,
    CandidateTrack,
    DifferentialResult,
    MatchingOptions,
    MatchResult,
    MatchStatistics,
    MatchStatus,
    MatchStrategy,
    ScoredCandidate,
    SourceTrack,
)
from track_reconciler.matching.normalizer import normalize
from track_reconciler.matching.similarity import score_candidate
from track_reconciler.matching.ranker import RankingResult, rank_candidates
from track_reconciler.matching.orchestrator import MatchOrchestrator
from track_reconciler.matching.batch import BatchMatcher, get_match_statistics

__all__ = [
    # Models
    "SourceTrack",
    "CandidateTrack",
    "ScoredCandidate",
    "MatchResult",
    "MatchStatus",
    "MatchStrategy",
    "MatchStatistics",
    "MatchingOptions",
    "BatchProgress",
    "BatchResult",
    "DifferentialResult",
    # Algorithms
    "normalize",
    "score_candidate",
    "rank_candidates",
    "RankingResult",
    # Runners
    "MatchOrchestrator",
    "BatchMatcher",
    "get_match_statistics",
]
