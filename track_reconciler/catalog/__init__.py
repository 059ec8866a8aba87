"""
Destination catalogs searched by the matcher.

Components:
    - Catalog: Interface every catalog implements
    - YTMusicCatalog: YouTube Music search with retry on transient errors
"""

from track_reconciler.catalog.base import Catalog
from track_reconciler.catalog.ytmusic import YTMusicCatalog

__all__ = ["Catalog", "YTMusicCatalog"]
