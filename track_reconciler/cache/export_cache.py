"""
Export cache and diff engine.

Remembers, per source playlist (the "container"), the match outcome of
every track from the last reconciliation pass, so the next pass only
matches tracks that were added since.

Record Layout:
    One PlaylistSnapshot per container id, stored as a JSON-able dict in
    a CacheStore. A snapshot carries the playlist's version marker (the
    Spotify snapshot_id); when the marker is unchanged the playlist has
    not changed and the cached statistics can be reported as-is.

Diff:
    calculate_diff() splits the current track list into tracks absent
    from the snapshot (need matching), tracks present in it (reused), and
    the ids of cached tracks no longer in the playlist.

Corruption:
    A record that cannot be decoded is reported as absent by load() and
    removed by clear_expired(); it never raises out of this module.

Usage:
    cache = ExportCache(SqliteCacheStore(output_dir / "cache.db"))
    snapshot = cache.load(playlist.id)
    if is_up_to_date(snapshot, playlist.snapshot_id):
        ...
    diff = calculate_diff(playlist.tracks, snapshot)
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from track_reconciler.core.database import CacheStore
from track_reconciler.core.exceptions import CacheError
from track_reconciler.core.logger import get_logger
from track_reconciler.matching.models import (
    CandidateTrack,
    MatchResult,
    MatchStatistics,
    MatchStatus,
    MatchStrategy,
    ScoredCandidate,
    SourceTrack,
)


logger = get_logger(__name__)


DEFAULT_MAX_AGE_DAYS = 90


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# Records
# =============================================================================

@dataclass(frozen=True)
class CandidateInfo:
    """
    Denormalized copy of one ranked candidate, kept for redisplay.

    Attributes:
        id: Destination track id.
        title: Candidate title.
        artist: Candidate artist.
        album: Candidate album.
        duration_seconds: Candidate duration.
        score: Composite score the candidate had when ranked.
    """
    id: str
    title: str
    artist: str
    album: str = ""
    duration_seconds: int = 0
    score: float = 0.0

    @classmethod
    def from_scored(cls, scored: ScoredCandidate) -> "CandidateInfo":
        candidate = scored.candidate
        return cls(
            id=candidate.id,
            title=candidate.title,
            artist=candidate.artist,
            album=candidate.album,
            duration_seconds=candidate.duration_seconds,
            score=scored.score,
        )

    def to_scored(self) -> ScoredCandidate:
        return ScoredCandidate(
            candidate=CandidateTrack(
                id=self.id,
                title=self.title,
                artist=self.artist,
                album=self.album,
                duration_seconds=self.duration_seconds,
            ),
            score=self.score,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "duration_seconds": self.duration_seconds,
            "score": self.score,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CandidateInfo":
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            artist=data.get("artist") or "",
            album=data.get("album") or "",
            duration_seconds=int(data.get("duration_seconds") or 0),
            score=float(data.get("score") or 0.0),
        )


@dataclass(frozen=True)
class CachedEntry:
    """
    Persisted outcome of matching one source track.

    Holds enough of the selected candidate to rebuild a MatchResult
    without querying the catalog again, plus the source track's own
    title/artist/album so unmatched tracks can be listed later.

    Attributes:
        track_id: Source track id.
        status: Match status.
        strategy: Strategy that produced the match.
        score: Match score.
        matched_at: ISO-8601 UTC timestamp of the match.
        candidate_id: Selected destination track id, if any.
        matched_title: Selected candidate's title.
        matched_artist: Selected candidate's artist.
        matched_album: Selected candidate's album.
        matched_duration_seconds: Selected candidate's duration.
        candidates: Ranked alternatives, when the result had any.
        title: Source track title.
        artist: Source track artists, joined.
        album: Source track album.
    """
    track_id: str
    status: MatchStatus
    strategy: MatchStrategy
    score: float
    matched_at: str
    candidate_id: str | None = None
    matched_title: str = ""
    matched_artist: str = ""
    matched_album: str = ""
    matched_duration_seconds: int = 0
    candidates: tuple[CandidateInfo, ...] = ()
    title: str = ""
    artist: str = ""
    album: str = ""

    @classmethod
    def from_match_result(cls, result: MatchResult, matched_at: str | None = None) -> "CachedEntry":
        track = result.source_track
        candidate = result.matched_candidate

        return cls(
            track_id=track.id,
            status=result.status,
            strategy=result.strategy,
            score=result.score,
            matched_at=matched_at or _now_iso(),
            candidate_id=candidate.id if candidate else None,
            matched_title=candidate.title if candidate else "",
            matched_artist=candidate.artist if candidate else "",
            matched_album=candidate.album if candidate else "",
            matched_duration_seconds=candidate.duration_seconds if candidate else 0,
            candidates=tuple(CandidateInfo.from_scored(scored) for scored in result.candidates),
            title=track.title,
            artist=track.artist_display,
            album=track.album,
        )

    def to_match_result(self, track: SourceTrack) -> MatchResult:
        """
        Rebuild the cached outcome for the given source track.

        No catalog call is made. An entry that no longer satisfies the
        MatchResult invariants (for example a matched status without a
        candidate id) comes back as unmatched.
        """
        if self.status == MatchStatus.UNMATCHED or not self.candidate_id:
            return MatchResult.unmatched(track)

        candidate = CandidateTrack(
            id=self.candidate_id,
            title=self.matched_title or track.title,
            artist=self.matched_artist or track.primary_artist,
            album=self.matched_album,
            duration_seconds=self.matched_duration_seconds,
        )

        try:
            return MatchResult(
                source_track=track,
                matched_candidate=candidate,
                score=self.score,
                strategy=self.strategy,
                status=self.status,
                candidates=tuple(info.to_scored() for info in self.candidates),
            )
        except ValueError as e:
            logger.warning(f"Discarding inconsistent cache entry for {track.id}: {e}")
            return MatchResult.unmatched(track)

    def to_dict(self) -> dict[str, Any]:
        return {
            "track_id": self.track_id,
            "status": self.status.value,
            "strategy": self.strategy.value,
            "score": self.score,
            "matched_at": self.matched_at,
            "candidate_id": self.candidate_id,
            "matched_title": self.matched_title,
            "matched_artist": self.matched_artist,
            "matched_album": self.matched_album,
            "matched_duration_seconds": self.matched_duration_seconds,
            "candidates": [info.to_dict() for info in self.candidates],
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CachedEntry":
        """
        Raises:
            CacheError: If a required field is missing or has a bad value.
        """
        try:
            return cls(
                track_id=str(data["track_id"]),
                status=MatchStatus(data["status"]),
                strategy=MatchStrategy(data["strategy"]),
                score=float(data["score"]),
                matched_at=str(data["matched_at"]),
                candidate_id=data.get("candidate_id"),
                matched_title=data.get("matched_title") or "",
                matched_artist=data.get("matched_artist") or "",
                matched_album=data.get("matched_album") or "",
                matched_duration_seconds=int(data.get("matched_duration_seconds") or 0),
                candidates=tuple(
                    CandidateInfo.from_dict(item) for item in data.get("candidates") or []
                ),
                title=data.get("title") or "",
                artist=data.get("artist") or "",
                album=data.get("album") or "",
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise CacheError(
                f"Invalid cached track entry: {e}",
                details={"track_id": data.get("track_id") if isinstance(data, dict) else None}
            ) from e


def statistics_from_entries(entries: Iterable[CachedEntry]) -> MatchStatistics:
    """Aggregate counts over cached entries, like MatchStatistics.from_matches()."""
    total = matched = ambiguous = unmatched = 0
    by_strategy = {strategy.value: 0 for strategy in MatchStrategy}

    for entry in entries:
        total += 1
        by_strategy[entry.strategy.value] += 1
        if entry.status == MatchStatus.MATCHED:
            matched += 1
        elif entry.status == MatchStatus.AMBIGUOUS:
            ambiguous += 1
        else:
            unmatched += 1

    return MatchStatistics(
        total=total,
        matched=matched,
        ambiguous=ambiguous,
        unmatched=unmatched,
        by_strategy=by_strategy,
    )


@dataclass(frozen=True)
class PlaylistSnapshot:
    """
    Everything cached about one source playlist.

    Attributes:
        container_id: Source playlist id.
        version_marker: Source playlist version (Spotify snapshot_id).
        playlist_name: Playlist name at export time.
        exported_at: ISO-8601 UTC timestamp of the pass that wrote it.
        tracks: CachedEntry per source track id.
        statistics: Aggregate counts at export time.
        destination_playlist_id: Id of the playlist created at the
                                 destination, when an exporter set one.
    """
    container_id: str
    version_marker: str
    playlist_name: str
    exported_at: str
    tracks: dict[str, CachedEntry] = field(default_factory=dict)
    statistics: MatchStatistics = field(default_factory=MatchStatistics)
    destination_playlist_id: str | None = None

    @property
    def track_count(self) -> int:
        return len(self.tracks)

    def to_dict(self) -> dict[str, Any]:
        return {
            "container_id": self.container_id,
            "version_marker": self.version_marker,
            "playlist_name": self.playlist_name,
            "exported_at": self.exported_at,
            "destination_playlist_id": self.destination_playlist_id,
            "track_count": self.track_count,
            "tracks": {track_id: entry.to_dict() for track_id, entry in self.tracks.items()},
            "statistics": self.statistics.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlaylistSnapshot":
        """
        Raises:
            CacheError: If the payload is not a valid snapshot.
        """
        if not isinstance(data, dict):
            raise CacheError("Cached snapshot is not a mapping")

        raw_tracks = data.get("tracks")
        if not isinstance(raw_tracks, dict):
            raise CacheError(
                "Cached snapshot has no 'tracks' mapping",
                details={"container_id": data.get("container_id")}
            )

        try:
            container_id = str(data["container_id"])
            version_marker = str(data["version_marker"])
            exported_at = str(data["exported_at"])
            _parse_iso(exported_at)
            statistics = MatchStatistics.from_dict(data.get("statistics") or {})
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise CacheError(
                f"Invalid cached snapshot: {e}",
                details={"container_id": data.get("container_id")}
            ) from e

        tracks = {str(track_id): CachedEntry.from_dict(entry) for track_id, entry in raw_tracks.items()}

        return cls(
            container_id=container_id,
            version_marker=version_marker,
            playlist_name=data.get("playlist_name") or "",
            exported_at=exported_at,
            tracks=tracks,
            statistics=statistics,
            destination_playlist_id=data.get("destination_playlist_id"),
        )


@dataclass(frozen=True)
class DiffResult:
    """
    Split of the current track list against a snapshot.

    Attributes:
        new_tracks: Tracks with no cached entry, in input order.
        unchanged_tracks: (track, cached entry) pairs, in input order.
        removed_track_ids: Cached track ids no longer in the playlist.
    """
    new_tracks: tuple[SourceTrack, ...]
    unchanged_tracks: tuple[tuple[SourceTrack, CachedEntry], ...]
    removed_track_ids: tuple[str, ...]

    @property
    def has_changes(self) -> bool:
        return bool(self.new_tracks or self.removed_track_ids)


# =============================================================================
# Diff Engine
# =============================================================================

def calculate_diff(current_tracks: list[SourceTrack], snapshot: PlaylistSnapshot | None) -> DiffResult:
    """
    Compare the current tracks against a cached snapshot.

    With no snapshot every track is new.
    """
    cached = snapshot.tracks if snapshot is not None else {}

    new_tracks = []
    unchanged = []
    for track in current_tracks:
        entry = cached.get(track.id)
        if entry is None:
            new_tracks.append(track)
        else:
            unchanged.append((track, entry))

    current_ids = {track.id for track in current_tracks}
    removed = tuple(track_id for track_id in cached if track_id not in current_ids)

    return DiffResult(
        new_tracks=tuple(new_tracks),
        unchanged_tracks=tuple(unchanged),
        removed_track_ids=removed,
    )


def is_up_to_date(snapshot: PlaylistSnapshot | None, version_marker: str) -> bool:
    """True when a snapshot exists and was taken at the given version."""
    return snapshot is not None and snapshot.version_marker == version_marker


def build_snapshot(
    container_id: str,
    version_marker: str,
    matches: Iterable[MatchResult],
    playlist_name: str = "",
    destination_playlist_id: str | None = None,
    exported_at: str | None = None,
    previous: PlaylistSnapshot | None = None
) -> PlaylistSnapshot:
    """
    Build a snapshot from the results of a pass.

    Args:
        container_id: Source playlist id.
        version_marker: Source playlist version at the time of the pass.
        matches: Results of the pass, one per track.
        playlist_name: Playlist display name.
        destination_playlist_id: Destination playlist id, if known.
        exported_at: Timestamp to record. Defaults to now (UTC).
        previous: Earlier snapshot of the same playlist. Entries of tracks
                  whose outcome did not change keep their matched_at.

    Returns:
        PlaylistSnapshot whose statistics are computed from its entries.
    """
    timestamp = exported_at or _now_iso()
    previous_tracks = previous.tracks if previous is not None else {}

    tracks: dict[str, CachedEntry] = {}
    for result in matches:
        entry = CachedEntry.from_match_result(result, matched_at=timestamp)
        earlier = previous_tracks.get(entry.track_id)
        if (
            earlier is not None
            and earlier.candidate_id == entry.candidate_id
            and earlier.status == entry.status
        ):
            entry = replace(entry, matched_at=earlier.matched_at)
        tracks[entry.track_id] = entry

    if destination_playlist_id is None and previous is not None:
        destination_playlist_id = previous.destination_playlist_id

    return PlaylistSnapshot(
        container_id=container_id,
        version_marker=version_marker,
        playlist_name=playlist_name,
        exported_at=timestamp,
        tracks=tracks,
        statistics=statistics_from_entries(tracks.values()),
        destination_playlist_id=destination_playlist_id,
    )


# =============================================================================
# Cache
# =============================================================================

class ExportCache:
    """
    Snapshot persistence on top of a CacheStore.

    The cache is read at the start of a pass and written at the end of
    it by a single caller; writes replace the whole record.
    """

    def __init__(self, store: CacheStore) -> None:
        self._store = store

    def load(self, container_id: str) -> PlaylistSnapshot | None:
        """Return the cached snapshot, or None when absent or corrupt."""
        payload = self._store.get(container_id)
        if payload is None:
            return None

        try:
            return PlaylistSnapshot.from_dict(payload)
        except CacheError as e:
            logger.warning(f"Ignoring corrupt cache record for {container_id}: {e.message}")
            return None

    def save(self, snapshot: PlaylistSnapshot) -> None:
        self._store.put(snapshot.container_id, snapshot.to_dict())
        logger.debug(
            f"Cached {snapshot.track_count} tracks for {snapshot.container_id} "
            f"at version {snapshot.version_marker}"
        )

    def delete(self, container_id: str) -> None:
        self._store.delete(container_id)

    def all_snapshots(self) -> dict[str, PlaylistSnapshot]:
        """Every decodable snapshot, keyed by container id."""
        snapshots = {}
        for container_id, payload in self._store.list_all():
            try:
                snapshots[container_id] = PlaylistSnapshot.from_dict(payload)
            except CacheError as e:
                logger.warning(f"Ignoring corrupt cache record for {container_id}: {e.message}")
        return snapshots

    def clear_expired(self, max_age_days: int = DEFAULT_MAX_AGE_DAYS, now: datetime | None = None) -> int:
        """
        Delete snapshots exported more than max_age_days ago.

        Corrupt records are deleted too.

        Returns:
            Number of records removed.
        """
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=max_age_days)
        if cutoff.tzinfo is None:
            cutoff = cutoff.replace(tzinfo=timezone.utc)

        removed = 0
        for container_id in self._store.list_container_ids():
            snapshot = self.load(container_id)
            if snapshot is not None and _parse_iso(snapshot.exported_at) >= cutoff:
                continue

            self._store.delete(container_id)
            removed += 1

        if removed:
            logger.info(f"Removed {removed} expired cache record(s)")
        return removed

    def record_manual_match(self, container_id: str, result: MatchResult) -> PlaylistSnapshot | None:
        """
        Replace one track's cached entry with an operator's choice.

        The whole record is re-saved with recomputed statistics.

        Returns:
            The updated snapshot, or None (nothing saved) when the
            container has no cached snapshot.
        """
        snapshot = self.load(container_id)
        if snapshot is None:
            logger.warning(f"No cached snapshot for {container_id}; manual match not recorded")
            return None

        tracks = dict(snapshot.tracks)
        tracks[result.source_track.id] = CachedEntry.from_match_result(result)

        updated = replace(
            snapshot,
            tracks=tracks,
            statistics=statistics_from_entries(tracks.values()),
        )
        self.save(updated)
        return updated
