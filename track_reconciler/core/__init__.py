"""
Core module for track-reconciler.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - logger: Logging system with console, file and report outputs
    - config: Configuration loading and validation
    - database: Key-value stores backing the export cache
    - progress: Rich progress bar for batch matching

Usage:
    from track_reconciler.core import (
        Config, load_config,
        SqliteCacheStore,
        setup_logging, get_logger,
        ReconcilerError, ConfigError, CacheError
    )
"""

from track_reconciler.core.exceptions import (
    CacheError,
    CatalogError,
    ConfigError,
    ReconcilerError,
    SourceError,
)
from track_reconciler.core.logger import (
    get_logger,
    log_ambiguous_match,
    log_unmatched_track,
    setup_logging,
    shutdown_logging,
)
from track_reconciler.core.config import (
    CacheConfig,
    Config,
    OutputConfig,
    SpotifyConfig,
    load_config,
    parse_config,
)
from track_reconciler.core.database import CacheStore, MemoryCacheStore, SqliteCacheStore
from track_reconciler.core.progress import MatchingProgressBar

__all__ = [
    # Config
    "Config",
    "SpotifyConfig",
    "OutputConfig",
    "CacheConfig",
    "load_config",
    "parse_config",
    # Database
    "CacheStore",
    "MemoryCacheStore",
    "SqliteCacheStore",
    # Exceptions
    "ReconcilerError",
    "ConfigError",
    "CacheError",
    "CatalogError",
    "SourceError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_unmatched_track",
    "log_ambiguous_match",
    "shutdown_logging",
    # Progress
    "MatchingProgressBar",
]
