"""
Configuration management for track-reconciler.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml.

The configuration file contains:
    - Spotify API credentials (client_id, client_secret)
    - Output directory for logs and the match cache
    - Matching options (enabled strategies, fuzzy threshold, concurrency)
    - Cache retention

Configuration File Location:
    The config.yaml file is read from the current working directory
    unless an explicit path is given.

Example config.yaml:
    spotify:
      client_id: "your_client_id_here"
      client_secret: "your_client_secret_here"

    output:
      directory: "~/Music/Reconciler"

    matching:
      enable_isrc: true
      enable_strict: true
      enable_fuzzy: true
      fuzzy_threshold: 0.8
      max_search_results: 20
      concurrency: 4

    cache:
      max_age_days: 90
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from track_reconciler.core.exceptions import ConfigError
from track_reconciler.matching.models import MatchingOptions


# Default configuration file name (always in current working directory)
CONFIG_FILENAME = "config.yaml"

# Name of the SQLite cache file inside the output directory
CACHE_FILENAME = "cache.db"

DEFAULT_MAX_AGE_DAYS = 90

_BOOL_MATCHING_FIELDS = ("enable_isrc", "enable_strict", "enable_fuzzy")
_INT_MATCHING_FIELDS = ("max_search_results", "concurrency")


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify API credentials configuration.

    Attributes:
        client_id: The Spotify application client ID.
        client_secret: The Spotify application client secret.
    """
    client_id: str
    client_secret: str


@dataclass(frozen=True)
class OutputConfig:
    """
    Output directory configuration.

    Attributes:
        directory: Absolute path where logs/ and cache.db are written.
                   ~ is expanded. Created on demand, not at load time.
    """
    directory: Path

    @property
    def cache_path(self) -> Path:
        """Path of the SQLite cache database."""
        return self.directory / CACHE_FILENAME


@dataclass(frozen=True)
class CacheConfig:
    """
    Cache retention configuration.

    Attributes:
        max_age_days: Snapshots exported longer ago than this are removed
                      by ExportCache.clear_expired(). Default: 90.
    """
    max_age_days: int = DEFAULT_MAX_AGE_DAYS


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and immutable afterwards.

    Attributes:
        spotify: Spotify API credentials.
        output: Output directory settings.
        matching: Validated matching options.
        cache: Cache retention settings.
    """
    spotify: SpotifyConfig
    output: OutputConfig
    matching: MatchingOptions
    cache: CacheConfig


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working directory.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If the config file is not found, has invalid YAML syntax,
                     is missing required sections, or contains invalid values.

    Behavior:
        1. Locate config file (explicit path or CWD/config.yaml)
        2. Read and parse YAML content
        3. Validate structure (required sections exist)
        4. Parse each section, applying defaults for optional ones
        5. Validate matching options (fail fast, before any batch runs)
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except IOError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    return parse_config(raw_config)


def parse_config(raw_config: dict[str, Any]) -> Config:
    """
    Build a Config from an already-parsed dictionary.

    Split out of load_config() so callers (and tests) holding a dict
    do not need to round-trip through a file.

    Raises:
        ConfigError: If validation fails.
    """
    _validate_config(raw_config)

    matching = _parse_matching_config(raw_config.get("matching"))
    matching.validate()

    return Config(
        spotify=_parse_spotify_config(raw_config["spotify"]),
        output=_parse_output_config(raw_config["output"]),
        matching=matching,
        cache=_parse_cache_config(raw_config.get("cache")),
    )


def _validate_config(raw_config: dict[str, Any]) -> None:
    """Check that required sections exist and optional ones are mappings."""
    for section in ("spotify", "output"):
        if section not in raw_config:
            raise ConfigError(
                f"Missing required section: '{section}'",
                details={"missing_section": section}
            )

    for section in ("spotify", "output", "matching", "cache"):
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )


def _parse_spotify_config(spotify_section: dict[str, Any]) -> SpotifyConfig:
    client_id = spotify_section.get("client_id", "")
    client_secret = spotify_section.get("client_secret", "")

    if not isinstance(client_id, str) or not client_id.strip():
        raise ConfigError(
            "'spotify.client_id' must be a non-empty string",
            details={"field": "spotify.client_id"}
        )

    if not isinstance(client_secret, str) or not client_secret.strip():
        raise ConfigError(
            "'spotify.client_secret' must be a non-empty string",
            details={"field": "spotify.client_secret"}
        )

    return SpotifyConfig(
        client_id=client_id.strip(),
        client_secret=client_secret.strip()
    )


def _parse_output_config(output_section: dict[str, Any]) -> OutputConfig:
    directory = output_section.get("directory", "")

    if not isinstance(directory, str) or not directory.strip():
        raise ConfigError(
            "'output.directory' must be a non-empty string",
            details={"field": "output.directory"}
        )

    return OutputConfig(directory=Path(directory.strip()).expanduser().resolve())


def _parse_matching_config(matching_section: dict[str, Any] | None) -> MatchingOptions:
    """
    Parse the optional 'matching' section.

    Only type checks happen here; range checks belong to
    MatchingOptions.validate() so programmatic callers get them too.
    """
    if not matching_section:
        return MatchingOptions()

    values: dict[str, Any] = {}

    for name in _BOOL_MATCHING_FIELDS:
        raw = matching_section.get(name)
        if raw is None:
            continue
        if not isinstance(raw, bool):
            raise ConfigError(
                f"'matching.{name}' must be true or false",
                details={"field": f"matching.{name}", "value": raw}
            )
        values[name] = raw

    for name in _INT_MATCHING_FIELDS:
        raw = matching_section.get(name)
        if raw is None:
            continue
        # bool is a subclass of int; reject it explicitly
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ConfigError(
                f"'matching.{name}' must be an integer",
                details={"field": f"matching.{name}", "value": raw}
            )
        values[name] = raw

    raw_threshold = matching_section.get("fuzzy_threshold")
    if raw_threshold is not None:
        if isinstance(raw_threshold, bool) or not isinstance(raw_threshold, (int, float)):
            raise ConfigError(
                "'matching.fuzzy_threshold' must be a number",
                details={"field": "matching.fuzzy_threshold", "value": raw_threshold}
            )
        values["fuzzy_threshold"] = float(raw_threshold)

    return MatchingOptions(**values)


def _parse_cache_config(cache_section: dict[str, Any] | None) -> CacheConfig:
    if not cache_section:
        return CacheConfig()

    raw_age = cache_section.get("max_age_days")
    if raw_age is None:
        return CacheConfig()

    if isinstance(raw_age, bool) or not isinstance(raw_age, int) or raw_age < 1:
        raise ConfigError(
            "'cache.max_age_days' must be a positive integer",
            details={"field": "cache.max_age_days", "value": raw_age}
        )

    return CacheConfig(max_age_days=raw_age)
