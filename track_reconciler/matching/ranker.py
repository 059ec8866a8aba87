"""
Candidate ranking and ambiguity detection.

Scores every candidate, keeps those at or above the threshold, and
orders them best first. Candidates whose scores are within CLOSE_RANGE
of each other are re-ordered by album preference, which favors the
canonical album release over compilations and singles.

The top two results are ambiguous only when neither the raw score
(gap < AMBIGUOUS_SCORE_GAP) nor the album preference
(gap < AMBIGUOUS_PREFERENCE_GAP) can separate them.
"""

from dataclasses import dataclass
from functools import cmp_to_key

from track_reconciler.matching.models import CandidateTrack, ScoredCandidate, SourceTrack
from track_reconciler.matching.similarity import album_similarity, score_candidate


# =============================================================================
# Constants
# =============================================================================

DEFAULT_THRESHOLD = 0.8

# Scores this close are re-ranked by album preference
CLOSE_RANGE = 0.08
# Preference differences at or below this fall back to raw score
PREFERENCE_TIE = 0.1

AMBIGUOUS_SCORE_GAP = 0.05
AMBIGUOUS_PREFERENCE_GAP = 0.15

COMPILATION_MARKERS = ("various artists", "various", "v/a", "v.a.", "compilation", "sampler")

EXACT_ALBUM_BONUS = 0.3
FLAGGED_COMPILATION_PENALTY = 0.5
COMPILATION_NAME_PENALTY = 0.3
ARTIST_ALBUM_BONUS = 0.2


@dataclass(frozen=True)
class RankingResult:
    """
    Output of rank_candidates().

    Attributes:
        matches: Candidates at or above the threshold, best first.
        best_match: matches[0], or None when nothing cleared the threshold.
        has_ambiguous: True when the top two cannot be told apart.
    """
    matches: tuple[ScoredCandidate, ...]
    best_match: ScoredCandidate | None
    has_ambiguous: bool


def album_preference(source: SourceTrack, candidate: CandidateTrack) -> float:
    """
    Tie-break preference of a candidate's album (higher is better).

    +album similarity, +0.3 if that similarity is above 0.8, -0.5 if the
    catalog flags the release as a compilation, -0.3 if the album name
    looks like one, +0.2 if it contains the source's primary artist
    (names of three or more characters only).
    """
    similarity = album_similarity(source.album, candidate.album)
    preference = similarity

    if similarity > 0.8:
        preference += EXACT_ALBUM_BONUS

    if candidate.is_compilation:
        preference -= FLAGGED_COMPILATION_PENALTY

    album_lower = candidate.album.lower()
    if any(marker in album_lower for marker in COMPILATION_MARKERS):
        preference -= COMPILATION_NAME_PENALTY

    artist_name = source.primary_artist.lower()
    if len(artist_name) > 2 and artist_name in album_lower:
        preference += ARTIST_ALBUM_BONUS

    return preference


def rank_candidates(
    source: SourceTrack,
    candidates: list[CandidateTrack] | tuple[CandidateTrack, ...],
    threshold: float = DEFAULT_THRESHOLD
) -> RankingResult:
    """
    Rank candidates for a source track.

    Args:
        source: The track being matched.
        candidates: Destination search results, in any order.
        threshold: Minimum composite score to keep a candidate.

    Returns:
        RankingResult. A single surviving candidate is never ambiguous.

    Example:
        ranking = rank_candidates(track, results, threshold=0.8)
        if ranking.best_match and not ranking.has_ambiguous:
            accept(ranking.best_match.candidate)
    """
    scored = []
    for candidate in candidates:
        breakdown = score_candidate(source, candidate)
        if breakdown.score < threshold:
            continue
        scored.append(ScoredCandidate(
            candidate=candidate,
            score=breakdown.score,
            duration_diff_ms=breakdown.duration_diff_ms,
            album_similarity=breakdown.album,
            album_preference=album_preference(source, candidate),
        ))

    if not scored:
        return RankingResult(matches=(), best_match=None, has_ambiguous=False)

    scored.sort(key=lambda item: item.score, reverse=True)

    if len(scored) > 1:
        scored.sort(key=cmp_to_key(_compare))

    has_ambiguous = False
    if len(scored) > 1:
        best, runner_up = scored[0], scored[1]
        score_gap = best.score - runner_up.score
        preference_gap = best.album_preference - runner_up.album_preference
        has_ambiguous = (
            score_gap < AMBIGUOUS_SCORE_GAP
            and abs(preference_gap) < AMBIGUOUS_PREFERENCE_GAP
        )

    return RankingResult(matches=tuple(scored), best_match=scored[0], has_ambiguous=has_ambiguous)


def _compare(a: ScoredCandidate, b: ScoredCandidate) -> float:
    """Negative when a ranks before b."""
    score_diff = b.score - a.score
    if abs(score_diff) > CLOSE_RANGE:
        return score_diff

    preference_diff = b.album_preference - a.album_preference
    if abs(preference_diff) > PREFERENCE_TIE:
        return preference_diff

    return score_diff
