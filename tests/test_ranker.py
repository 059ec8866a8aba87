"""Test candidate ranking"""

import pytest

from track_reconciler.matching.ranker import album_preference, rank_candidates

from conftest import make_candidate


class TestAlbumPreference:
    """Test album tie-break preference"""

    def test_exact_album_bonus(self, hello_track):
        candidate = make_candidate(album="25")
        assert album_preference(hello_track, candidate) == pytest.approx(1.3)

    def test_compilation_penalties(self, hello_track):
        flagged = make_candidate(album="Hits", is_compilation=True)
        named = make_candidate(album="Various Artists Hits")

        assert album_preference(hello_track, flagged) == pytest.approx(-0.5)
        assert album_preference(hello_track, named) == pytest.approx(-0.3)

    def test_artist_in_album_name(self, hello_track):
        candidate = make_candidate(album="Adele Live at the Royal Albert Hall")
        assert album_preference(hello_track, candidate) == pytest.approx(0.2)


class TestRankCandidates:
    """Test ranking and ambiguity detection"""

    def test_no_candidates(self, hello_track):
        ranking = rank_candidates(hello_track, [])

        assert ranking.best_match is None
        assert ranking.matches == ()
        assert not ranking.has_ambiguous

    def test_below_threshold_dropped(self, yesterday_track, yesterday_candidates):
        ranking = rank_candidates(yesterday_track, yesterday_candidates, threshold=0.8)

        assert [m.candidate.id for m in ranking.matches] == ["yt_beatles"]
        assert ranking.best_match.score == pytest.approx(0.9)
        assert not ranking.has_ambiguous

    def test_two_releases_are_ambiguous(self, hello_track, hello_candidates):
        ranking = rank_candidates(hello_track, hello_candidates)

        assert len(ranking.matches) == 2
        assert ranking.has_ambiguous
        assert ranking.matches[0].score == ranking.matches[1].score

    def test_score_gap_is_not_ambiguous(self, hello_track, hello_candidates):
        album_release = make_candidate("yt_album", "Hello", "Adele", album="25", duration_seconds=295)

        ranking = rank_candidates(hello_track, [hello_candidates[0], album_release])

        assert ranking.best_match.candidate.id == "yt_album"
        assert not ranking.has_ambiguous

    def test_preference_reorders_close_scores(self, hello_track):
        compilation = make_candidate("yt_comp", "Hello", "Adele", album="Various Artists Hits 2015",
                                     duration_seconds=295)
        single = make_candidate("yt_single", "Hello", "Adele", album="Hello Single",
                                duration_seconds=295)

        ranking = rank_candidates(hello_track, [compilation, single])

        assert [m.candidate.id for m in ranking.matches] == ["yt_single", "yt_comp"]
        assert not ranking.has_ambiguous

    def test_single_candidate_never_ambiguous(self, hello_track, hello_candidates):
        ranking = rank_candidates(hello_track, hello_candidates[:1])

        assert ranking.best_match.candidate.id == "yt_single"
        assert not ranking.has_ambiguous

    def test_threshold_is_inclusive(self, yesterday_track, yesterday_candidates):
        # the cover lands exactly on the weak-artist floor of 0.75
        cover = yesterday_candidates[1]

        ranking = rank_candidates(yesterday_track, [cover], threshold=0.75)

        assert ranking.best_match is not None
        assert ranking.best_match.score == 0.75
