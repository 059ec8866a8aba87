"""
Spotify source adapter for track-reconciler.

Wraps spotipy to read a playlist and turn its items into SourceTrack
objects for the matcher.

Authentication:
    Client Credentials only (client_id and client_secret). This reads
    public playlists and track metadata; the version marker of a playlist
    is its Spotify snapshot_id.

Instances:
    SpotifyClient is a plain class. Build one with from_credentials() at
    startup, or pass an existing spotipy.Spotify to the constructor (tests
    pass a mock).

Usage:
    client = SpotifyClient.from_credentials(client_id, client_secret)
    playlist = client.fetch_playlist("https://open.spotify.com/playlist/...")
    for track in playlist.tracks:
        print(track.artist_display, "-", track.title)
"""

from dataclasses import dataclass
from typing import Any

import spotipy
from spotipy.oauth2 import SpotifyClientCredentials, SpotifyOauthError

from track_reconciler.core.exceptions import SourceError
from track_reconciler.core.logger import get_logger
from track_reconciler.matching.models import SourceTrack


logger = get_logger(__name__)


# Maximum page size accepted by the playlist items endpoint
PLAYLIST_PAGE_SIZE = 100

PLAYLIST_FIELDS = "id,name,snapshot_id,tracks.total"


# =============================================================================
# ID EXTRACTION
# =============================================================================

def extract_spotify_id(url_or_id: str) -> str:
    """
    Extract the bare Spotify ID from a URL, URI, or ID.

    Examples:
        "spotify:playlist:37i9dQZF1DXcBWIGoYBM5M" -> "37i9dQZF1DXcBWIGoYBM5M"
        "https://open.spotify.com/track/4iV5W9uYEdYUVa79Axb7Rh?si=abc" -> "4iV5W9uYEdYUVa79Axb7Rh"
        "4iV5W9uYEdYUVa79Axb7Rh" -> "4iV5W9uYEdYUVa79Axb7Rh"
    """
    url_or_id = url_or_id.strip()

    if url_or_id.startswith("spotify:"):
        return url_or_id.split(":")[-1]

    if "spotify.com" in url_or_id:
        url_or_id = url_or_id.split("?")[0]
        return url_or_id.rstrip("/").split("/")[-1]

    return url_or_id


def extract_playlist_id(url_or_id: str) -> str:
    """
    Extract a playlist ID, rejecting URLs and URIs of other kinds.

    A bare ID is accepted as is.

    Raises:
        ValueError: If a URL or URI does not point to a playlist, or the
                    value is empty.
    """
    value = url_or_id.strip()
    if not value:
        raise ValueError("Empty playlist URL")

    if ("spotify.com" in value or value.startswith("spotify:")) and "playlist" not in value:
        raise ValueError(f"Not a Spotify playlist URL: {url_or_id}")

    return extract_spotify_id(value)


# =============================================================================
# TRACK CONVERSION
# =============================================================================

def is_valid_track_item(track_item: dict[str, Any] | None) -> bool:
    """
    Check if a playlist item is a track the matcher can work with.

    Invalid items:
        - None (removed from Spotify)
        - Missing track object
        - Local files (is_local = True)
        - Podcast episodes (type != 'track')
        - No id, no duration or empty name
    """
    if track_item is None or not isinstance(track_item, dict):
        return False

    track = track_item.get("track")
    if not isinstance(track, dict):
        return False

    if track.get("is_local", False):
        return False

    if track.get("type") != "track":
        return False

    if not track.get("id"):
        return False

    if not track.get("duration_ms"):
        return False

    if not (track.get("name") or "").strip():
        return False

    return True


def source_track_from_spotify(track: dict[str, Any]) -> SourceTrack:
    """
    Convert a Spotify track object to a SourceTrack.

    Args:
        track: The "track" object of a playlist item.

    Field Mapping:
        id                -> id
        name              -> title
        artists[].name    -> artists (in credited order)
        album.name        -> album
        duration_ms       -> duration_ms
        external_ids.isrc -> isrc (None if absent)
    """
    artists = tuple(
        artist["name"] for artist in track.get("artists") or []
        if isinstance(artist, dict) and artist.get("name")
    )
    album = track.get("album") or {}
    isrc = (track.get("external_ids") or {}).get("isrc") or None

    return SourceTrack(
        id=track["id"],
        title=track.get("name") or "",
        artists=artists,
        album=album.get("name") or "",
        duration_ms=int(track.get("duration_ms") or 0),
        isrc=isrc,
    )


@dataclass(frozen=True)
class SourcePlaylist:
    """
    A fetched playlist, ready for matching.

    Attributes:
        id: Spotify playlist ID, used as the cache container id.
        name: Playlist name.
        snapshot_id: Spotify's version marker for the playlist contents.
        tracks: Valid tracks in playlist order.
    """

    id: str
    name: str
    snapshot_id: str
    tracks: tuple[SourceTrack, ...]


# =============================================================================
# CLIENT
# =============================================================================

class SpotifyClient:
    """
    Spotify API client for reading source playlists.

    Attributes:
        _spotify: The underlying spotipy.Spotify instance.

    Rate Limiting:
        spotipy retries on 429 internally. If a rate limit still surfaces,
        SourceError is raised with is_rate_limit=True.
    """

    def __init__(self, spotify_instance: spotipy.Spotify) -> None:
        self._spotify = spotify_instance

    @classmethod
    def from_credentials(cls, client_id: str, client_secret: str) -> "SpotifyClient":
        """
        Create a client using the Client Credentials flow.

        Raises:
            SourceError: If the credentials are rejected (is_auth_error=True).
        """
        try:
            auth_manager = SpotifyClientCredentials(
                client_id=client_id,
                client_secret=client_secret
            )
            return cls(spotipy.Spotify(auth_manager=auth_manager))
        except (spotipy.SpotifyException, SpotifyOauthError) as e:
            raise SourceError(
                f"Spotify authentication failed: {e}",
                details={"original_error": str(e)},
                is_auth_error=True
            ) from e

    def _source_error(self, action: str, playlist_id: str, error: spotipy.SpotifyException) -> SourceError:
        details = {"playlist_id": playlist_id, "http_status": error.http_status}
        if error.http_status == 429:
            return SourceError(
                f"Rate limited while fetching {action}: {playlist_id}",
                details=details,
                is_rate_limit=True
            )
        if error.http_status in (401, 403):
            return SourceError(
                f"Not authorized to fetch {action}: {playlist_id}",
                details=details,
                is_auth_error=True
            )
        if error.http_status == 404:
            return SourceError(f"Playlist not found: {playlist_id}", details=details)
        details["original_error"] = str(error)
        return SourceError(f"Failed to fetch {action}: {error}", details=details)

    def playlist(self, playlist_id: str) -> dict[str, Any]:
        """
        Get playlist metadata (id, name, snapshot_id, track total).

        Raises:
            SourceError: If the playlist is missing, private, or the request fails.
        """
        try:
            result = self._spotify.playlist(playlist_id, fields=PLAYLIST_FIELDS)
        except spotipy.SpotifyException as e:
            raise self._source_error("playlist", playlist_id, e) from e
        except SpotifyOauthError as e:
            # Credentials are exchanged for a token on the first request
            raise SourceError(
                f"Spotify authentication failed: {e}",
                details={"original_error": str(e)},
                is_auth_error=True
            ) from e

        if result is None:
            raise SourceError(
                f"Playlist not found: {playlist_id}",
                details={"playlist_id": playlist_id}
            )
        return result

    def playlist_items(self, playlist_id: str, offset: int = 0) -> dict[str, Any]:
        """Get one page of playlist items."""
        try:
            result = self._spotify.playlist_items(
                playlist_id,
                limit=PLAYLIST_PAGE_SIZE,
                offset=offset,
                additional_types=["track"]
            )
        except spotipy.SpotifyException as e:
            raise self._source_error("playlist items", playlist_id, e) from e

        if result is None:
            raise SourceError(
                f"Failed to fetch playlist items: {playlist_id}",
                details={"playlist_id": playlist_id}
            )
        return result

    def playlist_all_items(self, playlist_id: str) -> list[dict[str, Any]]:
        """
        Get every item of a playlist, following pagination.

        Makes one request per 100 items until the response has no "next".
        """
        all_items: list[dict[str, Any]] = []
        offset = 0

        while True:
            response = self.playlist_items(playlist_id, offset=offset)
            all_items.extend(response.get("items", []))

            if response.get("next") is None:
                break
            offset += PLAYLIST_PAGE_SIZE

        return all_items

    def fetch_playlist(self, url_or_id: str) -> SourcePlaylist:
        """
        Fetch a playlist and its tracks.

        Args:
            url_or_id: Playlist URL, spotify: URI, or bare ID.

        Returns:
            SourcePlaylist with valid tracks in playlist order. Local files,
            episodes and unavailable items are skipped.

        Raises:
            SourceError: If the value is not a playlist or fetching fails.
        """
        try:
            playlist_id = extract_playlist_id(url_or_id)
        except ValueError as e:
            raise SourceError(str(e), details={"playlist_url": url_or_id}) from e

        metadata = self.playlist(playlist_id)
        items = self.playlist_all_items(playlist_id)

        tracks = []
        for item in items:
            if not is_valid_track_item(item):
                continue
            tracks.append(source_track_from_spotify(item["track"]))

        skipped = len(items) - len(tracks)
        if skipped:
            logger.info(f"Skipped {skipped} unplayable or non-track items")

        logger.debug(f"Fetched playlist '{metadata.get('name', '')}' with {len(tracks)} tracks")

        return SourcePlaylist(
            id=metadata.get("id") or playlist_id,
            name=metadata.get("name") or "",
            snapshot_id=metadata.get("snapshot_id") or "",
            tracks=tuple(tracks),
        )
