"""
Similarity scoring between a source track and a destination candidate.

All component scores are in [0, 1]. The composite score weights them as:

    artist 0.25 + title 0.35 + duration 0.25 + album 0.15

with two overrides:
    - Exact title (title similarity == 1.0): re-weighted toward title and
      duration, floored at 0.85 when the artist at least loosely agrees
      (>= 0.3), else at 0.75.
    - Boosts: +0.1 when the durations agree (>= 0.9), +0.05 when the
      albums agree (>= 0.8) and title or artist moderately agree. The
      total boost is at most 0.1 and a boosted score never exceeds 0.95.

Edit distance is rapidfuzz's Levenshtein implementation.
"""

from dataclasses import dataclass

from rapidfuzz.distance import Levenshtein

from track_reconciler.matching.models import CandidateTrack, SourceTrack
from track_reconciler.matching.normalizer import normalize


# =============================================================================
# Constants
# =============================================================================

ARTIST_WEIGHT = 0.25
TITLE_WEIGHT = 0.35
DURATION_WEIGHT = 0.25
ALBUM_WEIGHT = 0.15

# Duration differences below this count as "same length" (floor 0.9)
DURATION_TOLERANCE_MS = 3000
DURATION_FLOOR = 0.9
# Duration similarity reaches 0 at this difference
DURATION_MAX_DIFF_MS = 60000

# Token overlap never scores as high as an exact album match
ALBUM_OVERLAP_FACTOR = 0.8

EXACT_TITLE_ARTIST_MIN = 0.3
EXACT_TITLE_FLOOR = 0.85
EXACT_TITLE_WEAK_ARTIST_FLOOR = 0.75

DURATION_BOOST = 0.1
ALBUM_BOOST = 0.05
MAX_TOTAL_BOOST = 0.1
BOOSTED_SCORE_CAP = 0.95


@dataclass(frozen=True)
class SimilarityBreakdown:
    """
    Every component of a candidate's score.

    Attributes:
        artist: Best artist similarity over the source's artists.
        title: Title similarity.
        duration: Duration similarity.
        album: Album similarity (0 when either side has no album).
        score: Composite score.
        duration_diff_ms: Absolute duration difference in milliseconds.
    """
    artist: float
    title: float
    duration: float
    album: float
    score: float
    duration_diff_ms: int


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _normalized_similarity(a: str, b: str) -> float:
    if a == b:
        return 1.0
    longest = max(len(a), len(b))
    return _clamp(1.0 - Levenshtein.distance(a, b) / longest)


def string_similarity(a: str, b: str, kind: str = "text") -> float:
    """
    1 - edit distance / longer length, over normalized strings.

    Equal normalized strings (including two empty ones) score 1.0.
    Symmetric in a and b.
    """
    return _normalized_similarity(normalize(kind, a), normalize(kind, b))


def title_similarity(source_title: str, candidate_title: str) -> float:
    return string_similarity(source_title, candidate_title, kind="title")


def artist_similarity(source_artists: tuple[str, ...] | list[str], candidate_artist: str) -> float:
    """
    Best similarity between the candidate's artist and any source artist.

    Catalogs disagree on which of several credited artists is listed
    first, so a candidate credited to the second artist still scores.
    """
    normalized_candidate = normalize("artist", candidate_artist)
    if not source_artists:
        return _normalized_similarity("", normalized_candidate)

    return max(
        _normalized_similarity(normalize("artist", artist), normalized_candidate)
        for artist in source_artists
    )


def duration_similarity(source_ms: int, candidate_seconds: int | float) -> float:
    """
    Compare a millisecond duration against a second duration.

    Below 3 s difference the score stays in [0.9, 1.0]; beyond that it
    decays linearly to 0 at 60 s.
    """
    diff = abs(source_ms - candidate_seconds * 1000)

    if diff < DURATION_TOLERANCE_MS:
        return max(1.0 - diff / DURATION_TOLERANCE_MS, DURATION_FLOOR)

    return 1.0 - min(diff / DURATION_MAX_DIFF_MS, 1.0)


def album_similarity(source_album: str, candidate_album: str) -> float:
    """
    Album similarity.

    Returns:
        0.0 if either normalized album is empty (no signal),
        1.0 for an exact normalized match,
        otherwise the share of source tokens found in (or containing) a
        candidate token, over the larger token count, times 0.8.
    """
    source = normalize("album", source_album)
    candidate = normalize("album", candidate_album)

    if not source or not candidate:
        return 0.0
    if source == candidate:
        return 1.0

    source_tokens = source.split()
    candidate_tokens = candidate.split()

    overlapping = sum(
        1 for token in source_tokens
        if any(token in other or other in token for other in candidate_tokens)
    )

    return overlapping / max(len(source_tokens), len(candidate_tokens)) * ALBUM_OVERLAP_FACTOR


def composite_score(artist: float, title: float, duration: float, album: float) -> float:
    """Combine component similarities into one score in [0, 1]."""
    if title == 1.0:
        if artist >= EXACT_TITLE_ARTIST_MIN:
            return max(
                artist * 0.2 + title * 0.4 + duration * 0.3 + album * 0.1,
                EXACT_TITLE_FLOOR,
            )
        return max(
            artist * 0.15 + title * 0.45 + duration * 0.3 + album * 0.1,
            EXACT_TITLE_WEAK_ARTIST_FLOOR,
        )

    base = (
        artist * ARTIST_WEIGHT
        + title * TITLE_WEIGHT
        + duration * DURATION_WEIGHT
        + album * ALBUM_WEIGHT
    )

    boost = 0.0
    if duration >= DURATION_FLOOR:
        boost += DURATION_BOOST
    if album >= 0.8 and (title >= 0.6 or artist >= 0.4):
        boost += ALBUM_BOOST
    boost = min(boost, MAX_TOTAL_BOOST)

    if boost == 0.0:
        return base
    return max(base, min(base + boost, BOOSTED_SCORE_CAP))


def score_candidate(source: SourceTrack, candidate: CandidateTrack) -> SimilarityBreakdown:
    """
    Score one candidate against a source track.

    Example:
        breakdown = score_candidate(track, candidate)
        if breakdown.score >= 0.8:
            ...
    """
    artist = artist_similarity(source.artists, candidate.artist)
    title = title_similarity(source.title, candidate.title)
    duration = duration_similarity(source.duration_ms, candidate.duration_seconds)
    album = album_similarity(source.album, candidate.album)

    return SimilarityBreakdown(
        artist=artist,
        title=title,
        duration=duration,
        album=album,
        score=_clamp(composite_score(artist, title, duration, album)),
        duration_diff_ms=int(abs(source.duration_ms - candidate.duration_seconds * 1000)),
    )
