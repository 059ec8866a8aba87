"""Spotify source playlists."""

from track_reconciler.spotify.client import SourcePlaylist, SpotifyClient, extract_playlist_id

__all__ = ["SourcePlaylist", "SpotifyClient", "extract_playlist_id"]
