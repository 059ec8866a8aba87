"""
Data models for the matching engine.

This module defines the immutable value types that flow through a
reconciliation pass: the source track being matched, the destination
candidates a catalog search returns, and the classified outcome.

Design:
    Every model is a frozen dataclass. Results are built through factory
    classmethods (MatchResult.matched(), .ambiguous(), ...) which enforce
    the status/strategy/score invariants in one place.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable

from track_reconciler.core.exceptions import ConfigError


# Score given to exact (identifier, strict, manual) matches
EXACT_MATCH_SCORE = 1.0


class MatchStrategy(str, Enum):
    """Which stage of the cascade produced a result."""
    IDENTIFIER = "identifier"
    STRICT = "strict"
    FUZZY = "fuzzy"
    MANUAL = "manual"
    NONE = "none"


class MatchStatus(str, Enum):
    """Classification of a match outcome."""
    MATCHED = "matched"
    AMBIGUOUS = "ambiguous"
    UNMATCHED = "unmatched"


# Strategies whose matches are exact by construction
_EXACT_STRATEGIES = frozenset({
    MatchStrategy.IDENTIFIER,
    MatchStrategy.STRICT,
    MatchStrategy.MANUAL,
})


@dataclass(frozen=True)
class SourceTrack:
    """
    Immutable representation of a track in the source playlist.

    Attributes:
        id: Opaque external id (e.g. the Spotify track id).
        title: Track title as tagged at the source.
        artists: Credited artists, in credit order. Never empty in
                 practice, but the engine tolerates an empty tuple.
        album: Album name (may be empty).
        duration_ms: Duration in milliseconds, >= 0.
        isrc: International Standard Recording Code, if known.
    """
    id: str
    title: str
    artists: tuple[str, ...]
    album: str = ""
    duration_ms: int = 0
    isrc: str | None = None

    @property
    def primary_artist(self) -> str:
        """First credited artist, or "" when there is none."""
        return self.artists[0] if self.artists else ""

    @property
    def artist_display(self) -> str:
        """All artists joined for display."""
        return ", ".join(self.artists)


@dataclass(frozen=True)
class CandidateTrack:
    """
    Immutable representation of one destination catalog search result.

    Attributes:
        id: Destination track id (e.g. a YouTube Music videoId).
        title: Title as listed in the catalog.
        artist: Primary artist string as listed in the catalog.
        album: Album name, "" when the catalog has none.
        duration_seconds: Duration in seconds, 0 when unknown.
        isrc: ISRCs the catalog associates with this track, if exposed.
        is_compilation: True when the catalog flags the release as a
                        compilation, None when it does not say.
    """
    id: str
    title: str
    artist: str
    album: str = ""
    duration_seconds: int = 0
    isrc: tuple[str, ...] = ()
    is_compilation: bool | None = None

    @property
    def label(self) -> str:
        """Human-readable "Title - Artist [Album]" string for reports."""
        text = f"{self.title} - {self.artist}"
        if self.album:
            text += f" [{self.album}]"
        return text

    def has_isrc(self, isrc: str) -> bool:
        """Case-insensitive membership test against this candidate's ISRCs."""
        wanted = isrc.strip().upper()
        return any(code.strip().upper() == wanted for code in self.isrc)


@dataclass(frozen=True)
class ScoredCandidate:
    """
    A candidate together with the numbers the ranker used to order it.

    Attributes:
        candidate: The destination track.
        score: Composite similarity score in [0, 1].
        duration_diff_ms: |source duration - candidate duration| in ms.
        album_similarity: Album component of the score.
        album_preference: Tie-break preference (higher is better).
    """
    candidate: CandidateTrack
    score: float
    duration_diff_ms: int = 0
    album_similarity: float = 0.0
    album_preference: float = 0.0


@dataclass(frozen=True)
class MatchResult:
    """
    Classified outcome of matching one source track.

    Build instances through the factory classmethods; the constructor
    validates the invariants and raises ValueError on a violation.

    Invariants:
        - matched/ambiguous: matched_candidate is set, 0 < score <= 1
        - matched via identifier/strict/manual: score == 1.0
        - unmatched: no candidate, score == 0, strategy == none

    Attributes:
        source_track: The track that was matched.
        matched_candidate: The selected destination track, if any.
        score: Confidence in [0, 1].
        strategy: Stage that produced the result.
        status: matched, ambiguous or unmatched.
        candidates: Ranked alternatives (best first). Populated only when
                    the result is ambiguous or several candidates cleared
                    the acceptance threshold.
    """
    source_track: SourceTrack
    matched_candidate: CandidateTrack | None
    score: float
    strategy: MatchStrategy
    status: MatchStatus
    candidates: tuple[ScoredCandidate, ...] = ()

    def __post_init__(self) -> None:
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(f"score out of range: {self.score}")

        if self.status == MatchStatus.UNMATCHED:
            if (
                self.matched_candidate is not None
                or self.score != 0.0
                or self.strategy != MatchStrategy.NONE
            ):
                raise ValueError("unmatched result must have no candidate, score 0, strategy none")
            return

        if self.matched_candidate is None:
            raise ValueError(f"{self.status.value} result requires a matched candidate")
        if self.strategy == MatchStrategy.NONE:
            raise ValueError(f"{self.status.value} result requires a strategy")
        if (
            self.status == MatchStatus.MATCHED
            and self.strategy in _EXACT_STRATEGIES
            and self.score != EXACT_MATCH_SCORE
        ):
            raise ValueError(f"{self.strategy.value} match must have score 1.0")

    @classmethod
    def matched(
        cls,
        track: SourceTrack,
        candidate: CandidateTrack,
        score: float,
        strategy: MatchStrategy,
        candidates: tuple[ScoredCandidate, ...] = ()
    ) -> "MatchResult":
        return cls(
            source_track=track,
            matched_candidate=candidate,
            score=score,
            strategy=strategy,
            status=MatchStatus.MATCHED,
            candidates=candidates,
        )

    @classmethod
    def ambiguous(
        cls,
        track: SourceTrack,
        candidate: CandidateTrack,
        score: float,
        candidates: tuple[ScoredCandidate, ...]
    ) -> "MatchResult":
        """Fuzzy match whose runner-up is too close to call."""
        return cls(
            source_track=track,
            matched_candidate=candidate,
            score=score,
            strategy=MatchStrategy.FUZZY,
            status=MatchStatus.AMBIGUOUS,
            candidates=candidates,
        )

    @classmethod
    def unmatched(cls, track: SourceTrack) -> "MatchResult":
        return cls(
            source_track=track,
            matched_candidate=None,
            score=0.0,
            strategy=MatchStrategy.NONE,
            status=MatchStatus.UNMATCHED,
        )

    @classmethod
    def manual(cls, track: SourceTrack, candidate: CandidateTrack) -> "MatchResult":
        """Record an operator's choice of candidate for a track."""
        return cls.matched(track, candidate, EXACT_MATCH_SCORE, MatchStrategy.MANUAL)

    @property
    def is_matched(self) -> bool:
        """True for matched and ambiguous results (a candidate was selected)."""
        return self.matched_candidate is not None


@dataclass(frozen=True)
class MatchStatistics:
    """
    Aggregate counts over a list of results.

    Attributes:
        total: Number of results.
        matched: Results with status matched.
        ambiguous: Results with status ambiguous.
        unmatched: Results with status unmatched.
        by_strategy: Count per MatchStrategy value; every strategy is
                     present, zero when unused.
    """
    total: int = 0
    matched: int = 0
    ambiguous: int = 0
    unmatched: int = 0
    by_strategy: dict[str, int] = field(
        default_factory=lambda: {strategy.value: 0 for strategy in MatchStrategy}
    )

    @classmethod
    def from_matches(cls, matches: Iterable[MatchResult]) -> "MatchStatistics":
        by_status = {status: 0 for status in MatchStatus}
        by_strategy = {strategy.value: 0 for strategy in MatchStrategy}
        total = 0

        for result in matches:
            total += 1
            by_status[result.status] += 1
            by_strategy[result.strategy.value] += 1

        return cls(
            total=total,
            matched=by_status[MatchStatus.MATCHED],
            ambiguous=by_status[MatchStatus.AMBIGUOUS],
            unmatched=by_status[MatchStatus.UNMATCHED],
            by_strategy=by_strategy,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "matched": self.matched,
            "ambiguous": self.ambiguous,
            "unmatched": self.unmatched,
            "by_strategy": dict(self.by_strategy),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MatchStatistics":
        by_strategy = {strategy.value: 0 for strategy in MatchStrategy}
        by_strategy.update({
            str(key): int(value)
            for key, value in (data.get("by_strategy") or {}).items()
        })
        return cls(
            total=int(data.get("total", 0)),
            matched=int(data.get("matched", 0)),
            ambiguous=int(data.get("ambiguous", 0)),
            unmatched=int(data.get("unmatched", 0)),
            by_strategy=by_strategy,
        )


@dataclass(frozen=True)
class BatchProgress:
    """
    Cumulative progress of a batch, one immutable snapshot per step.

    Attributes:
        current: Tracks processed so far.
        total: Tracks in the batch.
        percent: Integer percentage of current over total (100 for an
                 empty batch).
        matched: Processed tracks with status matched.
        unmatched: Processed tracks with status unmatched.
        ambiguous: Processed tracks with status ambiguous.
    """
    current: int
    total: int
    percent: int
    matched: int = 0
    unmatched: int = 0
    ambiguous: int = 0

    @classmethod
    def initial(cls, total: int) -> "BatchProgress":
        return cls(current=0, total=total, percent=_percent(0, total))

    def advance(self, results: Iterable[MatchResult]) -> "BatchProgress":
        """Return a new snapshot with results folded in. self is unchanged."""
        current = self.current
        matched = self.matched
        unmatched = self.unmatched
        ambiguous = self.ambiguous

        for result in results:
            current += 1
            if result.status == MatchStatus.MATCHED:
                matched += 1
            elif result.status == MatchStatus.AMBIGUOUS:
                ambiguous += 1
            else:
                unmatched += 1

        return replace(
            self,
            current=current,
            percent=_percent(current, self.total),
            matched=matched,
            unmatched=unmatched,
            ambiguous=ambiguous,
        )


def _percent(current: int, total: int) -> int:
    if total <= 0:
        return 100
    return round(current * 100 / total)


@dataclass(frozen=True)
class MatchingOptions:
    """
    Options controlling the strategy cascade and batch execution.

    Attributes:
        enable_isrc: Run the identifier (ISRC) stage.
        enable_strict: Run the strict normalized-equality stage.
        enable_fuzzy: Run the fuzzy ranking stage.
        fuzzy_threshold: Minimum composite score a fuzzy candidate needs.
        max_search_results: song_count passed to catalog searches.
        concurrency: Tracks matched concurrently per chunk.
    """
    enable_isrc: bool = True
    enable_strict: bool = True
    enable_fuzzy: bool = True
    fuzzy_threshold: float = 0.8
    max_search_results: int = 20
    concurrency: int = 1

    def validate(self) -> None:
        """
        Raise ConfigError if any option is out of range.

        Called before a batch starts so a bad value never reaches a
        half-finished run.
        """
        if not 0.0 <= self.fuzzy_threshold <= 1.0:
            raise ConfigError(
                "'matching.fuzzy_threshold' must be between 0 and 1",
                details={"field": "matching.fuzzy_threshold", "value": self.fuzzy_threshold}
            )
        if self.max_search_results < 1:
            raise ConfigError(
                "'matching.max_search_results' must be a positive integer",
                details={"field": "matching.max_search_results", "value": self.max_search_results}
            )
        if self.concurrency < 1:
            raise ConfigError(
                "'matching.concurrency' must be a positive integer",
                details={"field": "matching.concurrency", "value": self.concurrency}
            )


@dataclass(frozen=True)
class BatchResult:
    """
    Output of BatchMatcher.match_tracks().

    Attributes:
        matches: One result per processed track, in input order.
        statistics: Aggregate counts over matches.
        cancelled: True if the run stopped early; matches then covers
                   only the tracks processed before cancellation.
    """
    matches: tuple[MatchResult, ...]
    statistics: MatchStatistics
    cancelled: bool = False


@dataclass(frozen=True)
class DifferentialResult:
    """
    Output of BatchMatcher.match_tracks_differential().

    Attributes:
        matches: Merged results in input order.
        statistics: Aggregate counts over matches.
        new_tracks: Number of tracks that went through the catalog.
        cached_matches: Number of tracks materialized from the cache.
        cancelled: True if the fresh-matching part was cancelled.
    """
    matches: tuple[MatchResult, ...]
    statistics: MatchStatistics
    new_tracks: int
    cached_matches: int
    cancelled: bool = False
