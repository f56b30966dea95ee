"""Tests for team_matcher: tiered side resolution, over/under, line parsing."""
from __future__ import annotations

import pytest

from team_matcher import (
    Side, normalize, match_side, detect_over_under, extract_line, same_team,
)

HOME, AWAY = "Los Angeles Lakers", "Boston Celtics"


class TestNormalize:
    def test_strips_punctuation_and_case(self):
        assert normalize("  St. Louis   Cardinals! ") == "st louis cardinals"

    def test_none(self):
        assert normalize(None) == ""


class TestMatchSide:
    def test_nickname_substring(self):
        assert match_side("Lakers", HOME, AWAY) == Side.HOME
        assert match_side("Celtics", HOME, AWAY) == Side.AWAY

    def test_line_is_ignored(self):
        assert match_side("Celtics +3.5", HOME, AWAY) == Side.AWAY
        assert match_side("Lakers -4.5", HOME, AWAY) == Side.HOME

    def test_full_name_inside_longer_text(self):
        assert match_side("Boston Celtics moneyline", HOME, AWAY) == Side.AWAY

    def test_short_name_exact(self):
        assert match_side("LAL -4.5", HOME, AWAY, "LAL", "BOS") == Side.HOME

    def test_short_name_first_token(self):
        assert match_side("BOS ML", HOME, AWAY, "LAL", "BOS") == Side.AWAY

    def test_word_overlap(self):
        assert match_side("Warriors ML", "Golden State Warriors", "Sacramento Kings") == Side.HOME

    def test_digits_inside_team_name_kept(self):
        assert match_side("Philadelphia 76ers -2", "Philadelphia 76ers", "Miami Heat") == Side.HOME

    def test_shared_city_is_ambiguous(self):
        assert match_side("Los Angeles", "Los Angeles Lakers", "Los Angeles Clippers") == Side.UNKNOWN

    def test_earlier_tier_breaks_shared_words(self):
        # "angeles" overlaps both, but only the away name is contained
        side = match_side("Los Angeles Clippers", "Los Angeles Lakers", "Los Angeles Clippers")
        assert side == Side.AWAY

    def test_abbreviation_without_short_names(self):
        assert match_side("LAL", HOME, AWAY) == Side.HOME
        assert match_side("LAL -4.5", HOME, AWAY) == Side.HOME
        assert match_side("LAC ML", "Los Angeles Lakers", "Los Angeles Clippers") == Side.AWAY

    def test_stored_short_name_not_derivable_from_capitals(self):
        teams = ("New York Knicks", "Brooklyn Nets")
        assert match_side("BKN +3", *teams, "NYK", "BKN") == Side.AWAY
        assert match_side("BKN +3", *teams) == Side.UNKNOWN

    def test_short_words_do_not_match(self):
        assert match_side("NY +3", "New York Knicks", "Brooklyn Nets") == Side.UNKNOWN

    @pytest.mark.parametrize("text", ["", "   ", "Knicks", "+3.5"])
    def test_unresolvable(self, text):
        assert match_side(text, HOME, AWAY) == Side.UNKNOWN


class TestOverUnder:
    @pytest.mark.parametrize("text", [
        "Over 215.5", "over", "o215.5", "O 44", "Lakers/Celtics OVER 220", "Over220.5", "over44",
    ])
    def test_over(self, text):
        assert detect_over_under(text) == Side.OVER

    @pytest.mark.parametrize("text", ["Under 215.5", "u 44.5", "U44", "UNDER", "Under215.5", "under44"])
    def test_under(self, text):
        assert detect_over_under(text) == Side.UNDER

    @pytest.mark.parametrize("text", ["Lakers -3", "", "overtime thriller", "over or under"])
    def test_unknown(self, text):
        assert detect_over_under(text) == Side.UNKNOWN


class TestExtractLine:
    def test_trailing_signed(self):
        assert extract_line("Warriors +3.5") == 3.5
        assert extract_line("Lakers -4.5") == -4.5

    def test_total(self):
        assert extract_line("Over 215.5") == 215.5

    def test_embedded_fallback(self):
        assert extract_line("Over 215.5 points") == 215.5

    def test_digits_inside_team_name_are_not_a_line(self):
        assert extract_line("Philadelphia 76ers") is None
        assert extract_line("76ers +2.5") == 2.5
        assert extract_line("Philadelphia 76ers +3 tonight") == 3.0

    def test_glued_total(self):
        assert extract_line("Over220.5") == 220.5
        assert extract_line("o215.5 points") == 215.5

    def test_none(self):
        assert extract_line("Lakers") is None
        assert extract_line("") is None


class TestSameTeam:
    def test_provider_abbreviated_city(self):
        assert same_team("Los Angeles Clippers", "LA Clippers")

    def test_nickname_only(self):
        assert same_team("Lakers", "Los Angeles Lakers")

    def test_punctuation(self):
        assert same_team("St. Louis Cardinals", "St Louis Cardinals")

    def test_different_teams(self):
        assert not same_team("Boston Celtics", "Los Angeles Lakers")

    def test_empty(self):
        assert not same_team("", "Boston Celtics")
