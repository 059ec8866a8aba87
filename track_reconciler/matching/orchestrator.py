"""
Per-track match orchestration.

MatchOrchestrator runs the enabled strategies in a fixed order,
identifier -> strict -> fuzzy, and returns the first result any of them
produces. When none does, the track is unmatched.

The order does not depend on which stages are enabled: disabling a stage
removes it from the cascade without reordering the others.

Usage:
    orchestrator = MatchOrchestrator(catalog, options)
    result = orchestrator.match(track)
"""

from track_reconciler.catalog.base import Catalog
from track_reconciler.core.logger import get_logger
from track_reconciler.matching.models import (
    CandidateTrack,
    MatchingOptions,
    MatchResult,
    SourceTrack,
)
from track_reconciler.matching.strategies import (
    BaseStrategy,
    FuzzyStrategy,
    IdentifierStrategy,
    StrictStrategy,
)


logger = get_logger(__name__)


class MatchOrchestrator:
    """
    Runs the strategy cascade for one track at a time.

    Stateless between calls; one instance serves all batch workers.

    Attributes:
        strategies: The enabled stages, in cascade order.
    """

    def __init__(self, catalog: Catalog, options: MatchingOptions | None = None) -> None:
        """
        Args:
            catalog: Destination catalog to search.
            options: Matching options. Defaults to MatchingOptions().

        Raises:
            ConfigError: If options are out of range.
        """
        self._catalog = catalog
        self._options = options or MatchingOptions()
        self._options.validate()
        self.strategies = self._build_strategies()

    def _build_strategies(self) -> list[BaseStrategy]:
        strategies: list[BaseStrategy] = []
        if self._options.enable_isrc:
            strategies.append(IdentifierStrategy(self._catalog, self._options))
        if self._options.enable_strict:
            strategies.append(StrictStrategy(self._catalog, self._options))
        if self._options.enable_fuzzy:
            strategies.append(FuzzyStrategy(self._catalog, self._options))
        return strategies

    def match(self, track: SourceTrack) -> MatchResult:
        """
        Match one source track.

        Returns:
            The first stage's result, or MatchResult.unmatched(track).
        """
        for strategy in self.strategies:
            result = strategy.attempt_match(track)
            if result is not None:
                logger.debug(
                    f"{track.artist_display} - {track.title}: "
                    f"{result.status.value} via {result.strategy.value} ({result.score:.2f})"
                )
                return result

        logger.debug(f"{track.artist_display} - {track.title}: unmatched")
        return MatchResult.unmatched(track)

    def search_manual(self, title: str, artist: str = "", album: str = "") -> list[CandidateTrack]:
        """
        Free-text catalog search for resolving a track by hand.

        Empty fields are left out of the query. Catalog errors propagate so
        the operator sees them.

        Returns:
            Candidates in catalog order, or [] if every field is empty.

        Example:
            candidates = orchestrator.search_manual("Yesterday", "The Beatles")
            chosen = MatchResult.manual(track, candidates[0])
        """
        query = " ".join(part.strip() for part in (artist, title, album) if part and part.strip())
        if not query:
            return []
        return list(self._catalog.search(query, song_count=self._options.max_search_results))
