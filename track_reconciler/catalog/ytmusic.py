"""
YouTube Music catalog adapter.

Wraps ytmusicapi.YTMusic.search(filter="songs") behind the Catalog
interface, converting raw result dicts into CandidateTrack objects.

Transient failures (rate limits, timeouts, 5xx, empty JSON bodies) are
retried with exponential backoff and jitter. When retries run out, or
on a non-transient failure, CatalogError is raised.

ISRC:
    Search results carry no ISRC, so supports_isrc is False and the
    identifier stage skips this catalog instead of trusting whatever an
    ISRC-shaped query happens to return.

Usage:
    catalog = YTMusicCatalog()
    candidates = catalog.search("the beatles yesterday", song_count=20)
"""

import random
import time
from typing import Any

from ytmusicapi import YTMusic

from track_reconciler.catalog.base import DEFAULT_SONG_COUNT, Catalog
from track_reconciler.core.exceptions import CatalogError
from track_reconciler.core.logger import get_logger
from track_reconciler.matching.models import CandidateTrack


logger = get_logger(__name__)


# =============================================================================
# RETRY CONFIGURATION FOR TRANSIENT ERRORS
# =============================================================================

# Maximum number of attempts for one search
MAX_SEARCH_RETRIES = 8

# Base delay between retries (seconds), doubled each attempt
RETRY_DELAY_BASE = 2.0

# Maximum delay between retries (seconds)
RETRY_DELAY_MAX = 30.0

# Jitter factor (±30%) so concurrent workers do not retry in lockstep
RETRY_JITTER_FACTOR = 0.3

# Extra delay multiplier when a rate limit is detected (429 errors)
RATE_LIMIT_DELAY_MULTIPLIER = 2.0

TRANSIENT_ERROR_PATTERNS = (
    # JSON/parsing errors (empty or malformed response)
    "expecting value",
    "json",
    "decode",

    # Rate limiting
    "429",
    "rate",
    "too many",
    "quota",
    "throttl",

    # Connection errors
    "connection",
    "timeout",
    "timed out",
    "reset",
    "refused",
    "ssl",
    "certificate",

    # Server errors
    "500",
    "502",
    "503",
    "504",
    "temporarily",
    "unavailable",
    "server error",
    "internal error",

    # Network errors
    "network",
    "unreachable",
    "dns",
)

RATE_LIMIT_PATTERNS = ("429", "rate", "too many", "quota")


def _parse_duration(duration_str: str | None) -> int:
    """
    Parse a "M:SS" or "H:MM:SS" duration string to seconds.

    Returns 0 if the string is missing or malformed.

    Examples:
        "3:33" -> 213
        "1:02:15" -> 3735
        None -> 0
    """
    if not duration_str:
        return 0

    try:
        parts = [int(part) for part in duration_str.split(":")]
    except (ValueError, TypeError):
        return 0

    if len(parts) == 2:
        minutes, seconds = parts
        return minutes * 60 + seconds
    if len(parts) == 3:
        hours, minutes, seconds = parts
        return hours * 3600 + minutes * 60 + seconds
    return 0


def candidate_from_ytmusic_result(result: dict[str, Any]) -> CandidateTrack | None:
    """
    Convert one ytmusicapi search result to a CandidateTrack.

    Args:
        result: Dictionary from YTMusic.search().

    Returns:
        CandidateTrack, or None if the result has no videoId.

    Field Mapping:
        videoId                         -> id
        title                           -> title
        artists[0].name                 -> artist
        album.name (or album as string) -> album
        duration / duration_seconds     -> duration_seconds
    """
    video_id = result.get("videoId")
    if not video_id:
        return None

    artists_data = result.get("artists") or []
    artist_names = [
        a.get("name", "") for a in artists_data
        if isinstance(a, dict) and a.get("name")
    ]

    duration_seconds = _parse_duration(result.get("duration"))
    if duration_seconds == 0 and "duration_seconds" in result:
        try:
            duration_seconds = int(result["duration_seconds"])
        except (ValueError, TypeError):
            duration_seconds = 0

    album_data = result.get("album")
    album = ""
    if isinstance(album_data, dict):
        album = album_data.get("name") or ""
    elif isinstance(album_data, str):
        album = album_data

    return CandidateTrack(
        id=video_id,
        title=result.get("title") or "",
        artist=artist_names[0] if artist_names else "",
        album=album,
        duration_seconds=duration_seconds,
    )


def is_transient_error(error_str: str) -> bool:
    """
    Check if a lower-cased error message looks temporary.

    Transient errors come from the API or network, not from the query.
    """
    return any(pattern in error_str for pattern in TRANSIENT_ERROR_PATTERNS)


class YTMusicCatalog(Catalog):
    """
    Catalog backed by YouTube Music.

    Attributes:
        max_retries: Attempts per search before giving up.

    Thread Safety:
        YTMusic.search() keeps no per-call state on the client, so one
        instance is shared by all batch workers.
    """

    # Song results have no ISRC field
    supports_isrc = False

    def __init__(
        self,
        client: YTMusic | None = None,
        max_retries: int = MAX_SEARCH_RETRIES
    ) -> None:
        """
        Initialize the catalog.

        Args:
            client: Existing YTMusic client. If None, an unauthenticated
                    English-language client is created.
            max_retries: Attempts per search (at least 1).
        """
        self._ytmusic = client if client is not None else YTMusic(language="en")
        self.max_retries = max(1, max_retries)

    def search(self, query: str, song_count: int = DEFAULT_SONG_COUNT) -> list[CandidateTrack]:
        raw_results = self._search_with_retry(query, song_count)

        candidates = []
        seen_ids = set()
        for raw in raw_results:
            candidate = candidate_from_ytmusic_result(raw)
            if candidate is None or candidate.id in seen_ids:
                continue
            seen_ids.add(candidate.id)
            candidates.append(candidate)
            if len(candidates) >= song_count:
                break

        logger.debug(f"Search '{query}' returned {len(candidates)} candidates")
        return candidates

    def _search_with_retry(self, query: str, song_count: int) -> list[dict[str, Any]]:
        """
        Run YTMusic.search() with retry logic for transient errors.

        Retry Strategy:
            - Exponential backoff: 2s -> 4s -> 8s -> 16s -> 30s (capped)
            - Jitter: ±30% randomization
            - Rate limit detection: 2x delay multiplier

        Raises:
            CatalogError: When retries are exhausted (is_transient=True)
                          or the error is not transient (is_transient=False).
        """
        for attempt in range(self.max_retries):
            try:
                return self._ytmusic.search(
                    query,
                    filter="songs",
                    ignore_spelling=True,
                    limit=song_count
                ) or []
            except Exception as e:
                error_str = str(e).lower()

                if not is_transient_error(error_str):
                    raise CatalogError(
                        f"Search failed: {e}",
                        details={"query": query, "original_error": str(e)},
                        is_transient=False
                    ) from e

                if attempt == self.max_retries - 1:
                    raise CatalogError(
                        f"Search failed after {self.max_retries} attempts: {e}",
                        details={"query": query, "original_error": str(e)},
                        is_transient=True
                    ) from e

                base_delay = min(RETRY_DELAY_BASE * (2 ** attempt), RETRY_DELAY_MAX)

                is_rate_limit = any(pattern in error_str for pattern in RATE_LIMIT_PATTERNS)
                if is_rate_limit:
                    base_delay = min(base_delay * RATE_LIMIT_DELAY_MULTIPLIER, RETRY_DELAY_MAX)

                jitter = base_delay * RETRY_JITTER_FACTOR * (2 * random.random() - 1)
                delay = max(0.5, base_delay + jitter)

                log_msg = (
                    f"Search attempt {attempt + 1}/{self.max_retries} failed: {e}. "
                    f"Retrying in {delay:.1f}s"
                )
                if is_rate_limit:
                    logger.warning(log_msg + " (rate limit detected)")
                else:
                    logger.debug(log_msg)

                time.sleep(delay)

        return []
