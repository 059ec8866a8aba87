"""
Match strategies: the stages of the matching cascade.

Each strategy answers one question for a source track through the same
interface, attempt_match(track), returning a MatchResult when it accepts
a candidate and None when it does not apply or finds nothing:

    IdentifierStrategy: the catalog knows the track's ISRC
    StrictStrategy:     a result has exactly the same artist and title
    FuzzyStrategy:      a result scores above the fuzzy threshold

Catalog failures never escape a strategy. They are logged at WARNING and
the search counts as having returned nothing, so one flaky query cannot
abort the cascade.

Strategies hold no mutable state and are safe to share across threads.
"""

from abc import ABC, abstractmethod

from track_reconciler.catalog.base import Catalog
from track_reconciler.core.logger import get_logger
from track_reconciler.matching.models import (
    EXACT_MATCH_SCORE,
    CandidateTrack,
    MatchingOptions,
    MatchResult,
    MatchStrategy,
    SourceTrack,
)
from track_reconciler.matching.normalizer import normalize
from track_reconciler.matching.ranker import rank_candidates


logger = get_logger(__name__)


class BaseStrategy(ABC):
    """
    One stage of the cascade.

    Attributes:
        strategy: The MatchStrategy value this stage records on its results.
    """

    strategy: MatchStrategy = MatchStrategy.NONE

    def __init__(self, catalog: Catalog, options: MatchingOptions) -> None:
        self._catalog = catalog
        self._options = options

    @abstractmethod
    def attempt_match(self, track: SourceTrack) -> MatchResult | None:
        """Return an accepted result, or None to let the next stage try."""
        pass

    def _safe_search(self, query: str) -> list[CandidateTrack]:
        try:
            return list(self._catalog.search(query, song_count=self._options.max_search_results))
        except Exception as e:
            logger.warning(f"{self.strategy.value} search failed for '{query}': {e}")
            return []


class IdentifierStrategy(BaseStrategy):
    """
    Match by ISRC.

    Searches the catalog with the ISRC itself and accepts the first
    candidate whose own ISRC list contains it (case-insensitive).
    Not applicable when the source track has no ISRC, or when the
    catalog does not report ISRCs on its results.
    """

    strategy = MatchStrategy.IDENTIFIER

    def attempt_match(self, track: SourceTrack) -> MatchResult | None:
        isrc = (track.isrc or "").strip()
        if not isrc or not self._catalog.supports_isrc:
            return None

        for candidate in self._safe_search(isrc):
            if candidate.has_isrc(isrc):
                logger.debug(f"ISRC match for {track.id}: {candidate.id}")
                return MatchResult.matched(track, candidate, EXACT_MATCH_SCORE, self.strategy)

        return None


class StrictStrategy(BaseStrategy):
    """
    Match by exact normalized artist and title.

    Query: "<all artists> <title>", both in plain text normalization.
    A candidate is accepted when its normalized title equals the source
    title and its normalized artist equals either the joined source
    artists or one of them.
    """

    strategy = MatchStrategy.STRICT

    def attempt_match(self, track: SourceTrack) -> MatchResult | None:
        title = normalize("text", track.title)
        joined_artists = normalize("text", " ".join(track.artists))
        if not title or not joined_artists:
            return None

        accepted_artists = {joined_artists}
        accepted_artists.update(normalize("text", artist) for artist in track.artists)
        accepted_artists.discard("")

        for candidate in self._safe_search(f"{joined_artists} {title}"):
            if (
                normalize("text", candidate.title) == title
                and normalize("text", candidate.artist) in accepted_artists
            ):
                logger.debug(f"Strict match for {track.id}: {candidate.id}")
                return MatchResult.matched(track, candidate, EXACT_MATCH_SCORE, self.strategy)

        return None


class FuzzyStrategy(BaseStrategy):
    """
    Match by similarity score.

    Issues two queries, "<primary artist> <title>" then "<title>" alone
    (titles in title normalization), merges the results de-duplicated by
    candidate id, and ranks them with rank_candidates().

    Returns:
        - ambiguous result when the top two cannot be separated
        - matched result otherwise
        - None when no candidate clears the fuzzy threshold
    """

    strategy = MatchStrategy.FUZZY

    def attempt_match(self, track: SourceTrack) -> MatchResult | None:
        title = normalize("title", track.title)
        if not title:
            return None

        queries = []
        artist = normalize("text", track.primary_artist)
        if artist:
            queries.append(f"{artist} {title}")
        queries.append(title)

        candidates: list[CandidateTrack] = []
        seen_ids: set[str] = set()
        for query in queries:
            for candidate in self._safe_search(query):
                if candidate.id in seen_ids:
                    continue
                seen_ids.add(candidate.id)
                candidates.append(candidate)

        ranking = rank_candidates(track, candidates, threshold=self._options.fuzzy_threshold)
        best = ranking.best_match
        if best is None:
            return None

        if ranking.has_ambiguous:
            return MatchResult.ambiguous(track, best.candidate, best.score, ranking.matches)

        alternatives = ranking.matches if len(ranking.matches) > 1 else ()
        return MatchResult.matched(track, best.candidate, best.score, self.strategy, alternatives)
