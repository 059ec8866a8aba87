"""
String normalization for track matching.

Reduces titles, artist credits and album names to a comparable core so
that "Yesterday - Remastered 2009" and "Yesterday" compare equal, and
"Daft Punk feat. Pharrell Williams" compares against "Daft Punk".

Every function here is pure, deterministic and idempotent:
normalize(kind, normalize(kind, x)) == normalize(kind, x).

An empty result means "no signal" for that field; callers decide what
that is worth, it is never an error.

Kinds:
    title:  file extension, suffix, edition tag and live stripping
    artist: truncation at the first collaboration indicator
    album:  edition tag and soundtrack/volume/disc boilerplate stripping
    text:   diacritics, case and punctuation only (used by the strict stage)
"""

import re
import unicodedata


# =============================================================================
# Vocabulary
# =============================================================================

# Remaster/edition tags, stripped longest first so "deluxe edition" goes
# before "deluxe" gets a chance to leave "edition" behind.
EDITION_TAGS = sorted(
    [
        "remastered", "remaster", "remastered version",
        "deluxe edition", "deluxe version", "deluxe",
        "special edition", "expanded edition", "anniversary edition",
        "bonus track version", "bonus tracks edition",
        "super deluxe",
        "mono", "stereo",
    ],
    key=len,
    reverse=True,
)

COLLABORATION_WORDS = (
    "feat", "featuring", "ft", "with", "and", "x", "vs", "versus",
    "presents", "presenting", "pres", "prod", "produced by",
)

SOUNDTRACK_WORDS = (
    "original", "soundtrack", "sound track", "ost", "score",
    "complete", "vol", "volume", "disc", "disk",
)

AUDIO_EXTENSIONS = ("mp3", "flac", "wav", "ogg", "m4a", "aac", "wma", "opus", "alac", "aif", "aiff")

KINDS = ("title", "artist", "album", "text")


# =============================================================================
# Patterns
# =============================================================================

_FILE_EXTENSION = re.compile(r"\.(?:%s)$" % "|".join(AUDIO_EXTENSIONS), re.IGNORECASE)

# "(...)..." / "[...]..." or anything after a dash, tilde or slash
_TITLE_SUFFIX = re.compile(r"[(\[].*[)\]].*$|[-–—~/].*$")

_YEAR_REMASTER = re.compile(r"\b\d{4}\s+remaster(?:ed)?(?:\s+version)?\b")

_EDITION_TAG_PATTERNS = [
    re.compile(r"\b%s\b" % r"\s+".join(map(re.escape, tag.split())))
    for tag in EDITION_TAGS
]

_LIVE = re.compile(r"\blive\b")

_SOUNDTRACK = re.compile(
    r"\b(?:%s)\b" % "|".join(
        r"\s+".join(map(re.escape, word.split()))
        for word in sorted(SOUNDTRACK_WORDS, key=len, reverse=True)
    )
)

_COLLABORATION = re.compile(
    r"\s+(?:%s)\b|\s*&" % "|".join(
        r"\s+".join(map(re.escape, word.split()))
        for word in sorted(COLLABORATION_WORDS, key=len, reverse=True)
    )
)

_LEADING_DJ = re.compile(r"^(?:dj\s+)+")

_ARTIST_PUNCTUATION = re.compile(r"[^\w\s&]+")

_APOSTROPHES = re.compile(r"['’ʼ]")

_NON_ALNUM = re.compile(r"[\W_]+")


# =============================================================================
# Shared steps
# =============================================================================

def _fold(text: str) -> str:
    """Lower-case, then strip diacritics (NFKD, drop combining marks)."""
    # Lower-casing first: "İ".lower() itself produces a combining mark
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def _collapse(text: str) -> str:
    """Drop apostrophes, turn every other non-alphanumeric run into one space."""
    text = _APOSTROPHES.sub("", text)
    return _NON_ALNUM.sub(" ", text).strip()


def _squeeze(text: str) -> str:
    return " ".join(text.split())


def _until_stable(text: str, step) -> str:
    while True:
        stripped = step(text)
        if stripped == text:
            return text
        text = stripped


def _strip_edition_tags(text: str) -> str:
    text = _YEAR_REMASTER.sub(" ", text)
    for pattern in _EDITION_TAG_PATTERNS:
        text = pattern.sub(" ", text)
    return _squeeze(text)


# =============================================================================
# Per-kind normalization
# =============================================================================

def normalize_text(text: str) -> str:
    """Diacritics, case and punctuation only."""
    return _collapse(_fold(text))


def normalize_title(text: str) -> str:
    """
    Normalize a track title.

    Steps:
        1. Fold diacritics and case
        2. Drop a trailing audio file extension, underscores become spaces
        3. Strip a "(...)", "[...]" or dash-introduced suffix, unless that
           would leave nothing
        4. Collapse punctuation
        5. Strip edition tags and "live" until stable, unless that would
           leave nothing

    Examples:
        "Yesterday - Remastered 2009" -> "yesterday"
        "Song (Live at Wembley)"      -> "song"
        "01_my_song.flac"             -> "01 my song"
        "Live"                        -> "live"
    """
    text = _fold(text)
    text = _FILE_EXTENSION.sub("", text).replace("_", " ")

    without_suffix = _TITLE_SUFFIX.sub("", text).strip()
    if without_suffix:
        text = without_suffix

    text = _collapse(text)

    stripped = _until_stable(text, lambda t: _squeeze(_LIVE.sub(" ", _strip_edition_tags(t))))
    return stripped or text


def normalize_artist(text: str) -> str:
    """
    Normalize an artist credit down to its primary artist.

    The credit is cut at the first collaboration indicator that has a
    name in front of it; a leading "DJ" is dropped.

    Examples:
        "Daft Punk feat. Pharrell Williams" -> "daft punk"
        "Simon & Garfunkel"                 -> "simon"
        "DJ Snake"                          -> "snake"
        "Beyoncé"                           -> "beyonce"
    """
    text = _fold(text).replace("_", " ")
    text = _squeeze(_ARTIST_PUNCTUATION.sub(" ", _APOSTROPHES.sub("", text)))

    for match in _COLLABORATION.finditer(text):
        prefix = text[:match.start()].strip()
        if prefix:
            text = prefix
            break

    text = _LEADING_DJ.sub("", text)
    return _collapse(text)


def normalize_album(text: str) -> str:
    """
    Normalize an album name.

    Examples:
        "Abbey Road (2019 Remastered Version)"  -> "abbey road"
        "Interstellar (Original Soundtrack)"    -> "interstellar"
        "Now That's What I Call Music! Vol. 12" -> "now thats what i call music 12"
    """
    text = _collapse(_fold(text))
    return _until_stable(text, lambda t: _squeeze(_SOUNDTRACK.sub(" ", _strip_edition_tags(t))))


_NORMALIZERS = {
    "title": normalize_title,
    "artist": normalize_artist,
    "album": normalize_album,
    "text": normalize_text,
}


def normalize(kind: str, text: str | None) -> str:
    """
    Normalize text for the given field kind.

    Args:
        kind: One of "title", "artist", "album", "text".
        text: Raw string. None is treated as "".

    Returns:
        Normalized string, possibly empty.

    Raises:
        ValueError: If kind is not a known kind.
    """
    try:
        normalizer = _NORMALIZERS[kind]
    except KeyError:
        raise ValueError(f"Unknown normalization kind: {kind!r} (expected one of {KINDS})") from None

    if not text:
        return ""
    return normalizer(text)
