"""
Exception classes for track-reconciler.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message and an optional details
dictionary so callers can log context without parsing strings.

Exception Hierarchy:
    ReconcilerError (base)
        ConfigError - Configuration file issues (fatal, raised before a run)
        CacheError - Cache store issues
        CatalogError - Destination catalog search issues
        SourceError - Source playlist (Spotify) issues

Recovery Policy:
    Matching never lets these escape mid-run. A CatalogError raised by a
    search is caught by the strategy that issued it and treated as "no
    candidates"; a corrupt cache record is treated as a cache miss. Only
    ConfigError, SourceError and store initialization failures stop the
    program, and they happen before the first track is matched.
"""


class ReconcilerError(Exception):
    """
    Base exception for all track-reconciler errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g. query, path).

    Example:
        try:
            config = load_config()
        except ReconcilerError as e:
            logger.error(f"Startup failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description shown to the user.
            details: Optional dictionary with additional context. Common keys:
                     - 'query': catalog search query that failed
                     - 'container_id': cache container involved
                     - 'original_error': the wrapped exception as a string
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(ReconcilerError):
    """
    Raised when configuration is missing or invalid.

    This is a CRITICAL error. It is raised by load_config() and by
    MatchingOptions.validate(), both of which run before any batch starts.

    Example:
        raise ConfigError(
            "'matching.fuzzy_threshold' must be between 0 and 1",
            details={'field': 'matching.fuzzy_threshold', 'value': 1.5}
        )
    """
    pass


class CacheError(ReconcilerError):
    """
    Raised when the cache store cannot be opened or a record cannot be decoded.

    Opening failures are CRITICAL (the store is unusable). Decoding failures
    of a single record are NON-CRITICAL: ExportCache catches them and treats
    the record as a cache miss.

    Example:
        raise CacheError(
            "Cached snapshot has no 'tracks' mapping",
            details={'container_id': '37i9dQZF1DXcBWIGoYBM5M'}
        )
    """
    pass


class CatalogError(ReconcilerError):
    """
    Raised when a destination catalog search fails.

    This is a NON-CRITICAL error: the strategy that issued the search logs
    it and continues as if the search had returned nothing.

    Attributes:
        is_transient: True if the failure looked temporary (rate limit,
                      timeout, 5xx) and retries were exhausted.

    Example:
        raise CatalogError(
            "Search failed after 8 attempts",
            details={'query': 'the beatles yesterday'},
            is_transient=True
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        is_transient: bool = False
    ) -> None:
        super().__init__(message, details)
        self.is_transient = is_transient


class SourceError(ReconcilerError):
    """
    Raised when the source playlist cannot be fetched.

    Can be CRITICAL (auth failure) or NON-CRITICAL (one playlist missing
    while others are processed).

    Attributes:
        is_auth_error: True if this is an authentication error (CRITICAL).
        is_rate_limit: True if this is a rate limit error (may retry).

    Example:
        raise SourceError(
            "Playlist not found: 37i9dQZF1DXcBWIGoYBM5M",
            details={'playlist_url': url, 'http_status': 404}
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        is_auth_error: bool = False,
        is_rate_limit: bool = False
    ) -> None:
        """
        Initialize source error with additional flags.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context.
            is_auth_error: Set to True if this is an authentication failure.
            is_rate_limit: Set to True if this is a rate limit error.
        """
        super().__init__(message, details)
        self.is_auth_error = is_auth_error
        self.is_rate_limit = is_rate_limit
