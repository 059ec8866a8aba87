"""Test text normalization"""

import pytest

from track_reconciler.matching.normalizer import (
    KINDS,
    normalize,
    normalize_album,
    normalize_artist,
    normalize_text,
    normalize_title,
)


SAMPLES = [
    "Yesterday - Remastered 2009",
    "Song (Live at Wembley)",
    "Title [Remaster]",
    "01_my_song.flac",
    "Live",
    "(Live)",
    "Daft Punk feat. Pharrell Williams",
    "Simon & Garfunkel",
    "DJ Snake",
    "DJ_Snake",
    "Foo_With_Bar",
    "Beyoncé",
    "Abbey Road (2019 Remastered Version)",
    "Interstellar (Original Soundtrack)",
    "Now That's What I Call Music! Vol. 12",
    "Back in Black (Deluxe Edition)",
    "Don't Stop Me Now!",
    "Sigur Rós",
    "AC/DC",
    "",
]


class TestNormalizeTitle:
    """Test title normalization"""

    def test_strips_dash_suffix(self):
        assert normalize_title("Yesterday - Remastered 2009") == "yesterday"
        assert normalize_title("Bohemian Rhapsody - Remastered 2011") == "bohemian rhapsody"

    def test_strips_bracketed_suffix(self):
        assert normalize_title("Song (Live at Wembley)") == "song"
        assert normalize_title("Title [Remaster]") == "title"
        assert normalize_title("Song (Remix)") == "song"

    def test_strips_file_extension_and_underscores(self):
        assert normalize_title("01_my_song.flac") == "01 my song"
        assert normalize_title("track.MP3") == "track"

    def test_keeps_title_that_would_become_empty(self):
        assert normalize_title("Live") == "live"
        assert normalize_title("(Live)") == "live"

    def test_folds_diacritics_and_case(self):
        assert normalize_title("Café Del Mar") == "cafe del mar"


class TestNormalizeArtist:
    """Test artist normalization"""

    def test_truncates_at_collaboration(self):
        assert normalize_artist("Daft Punk feat. Pharrell Williams") == "daft punk"
        assert normalize_artist("Artist ft. Other") == "artist"
        assert normalize_artist("Simon & Garfunkel") == "simon"
        assert normalize_artist("Mumford and Sons") == "mumford"

    def test_drops_leading_dj(self):
        assert normalize_artist("DJ Snake") == "snake"

    def test_underscores_separate_words(self):
        assert normalize_artist("DJ_Snake") == "snake"
        assert normalize_artist("Foo_With_Bar") == "foo"

    def test_folds_diacritics(self):
        assert normalize_artist("Beyoncé") == "beyonce"
        assert normalize_artist("Sigur Rós") == "sigur ros"

    def test_punctuation_becomes_space(self):
        assert normalize_artist("AC/DC") == "ac dc"


class TestNormalizeAlbum:
    """Test album normalization"""

    def test_strips_edition_tags(self):
        assert normalize_album("Abbey Road (2019 Remastered Version)") == "abbey road"
        assert normalize_album("Back in Black (Deluxe Edition)") == "back in black"

    def test_strips_soundtrack_boilerplate(self):
        assert normalize_album("Interstellar (Original Soundtrack)") == "interstellar"
        assert normalize_album("Now That's What I Call Music! Vol. 12") == "now thats what i call music 12"


class TestNormalize:
    """Test the kind dispatcher"""

    def test_text_kind(self):
        assert normalize_text("Don't Stop Me Now!") == "dont stop me now"
        assert normalize("text", "Don't Stop Me Now!") == "dont stop me now"

    def test_empty_and_none(self):
        for kind in KINDS:
            assert normalize(kind, "") == ""
            assert normalize(kind, None) == ""

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            normalize("genre", "rock")

    @pytest.mark.parametrize("kind", KINDS)
    def test_idempotent(self, kind):
        for sample in SAMPLES:
            once = normalize(kind, sample)
            assert normalize(kind, once) == once, (kind, sample)
