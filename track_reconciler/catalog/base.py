"""
Destination catalog contract.

A catalog is anything that can answer a free-text query with a list of
CandidateTrack objects. The matching engine only depends on this
interface; YTMusicCatalog is the shipped implementation and tests use a
scripted fake.
"""

from abc import ABC, abstractmethod

from track_reconciler.matching.models import CandidateTrack


DEFAULT_SONG_COUNT = 20


class Catalog(ABC):
    """
    Searchable destination music library.

    Implementations must be safe to call from several threads at once;
    the batch matcher issues searches concurrently.

    Attributes:
        supports_isrc: True when candidates carry the ISRCs the catalog
                       itself reports. The identifier stage is skipped
                       for catalogs that cannot back a match with one.
    """

    supports_isrc: bool = True

    @abstractmethod
    def search(self, query: str, song_count: int = DEFAULT_SONG_COUNT) -> list[CandidateTrack]:
        """
        Search the catalog.

        Args:
            query: Free-text query (artist and title, or an ISRC).
            song_count: Maximum number of results wanted.

        Returns:
            Up to song_count candidates, in the catalog's relevance order.

        Raises:
            CatalogError: If the catalog cannot be reached. Callers in the
                          matching engine treat this as "no candidates".
        """
        pass
