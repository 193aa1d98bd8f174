"""Tests for the keyword pre-filter."""

import pytest

from lead_scout.keyword_filter import (
    MAX_KEYWORDS,
    MatchMode,
    clean_keywords,
    first_match,
    matches,
    matches_item,
)
from tests.factories import make_item


class TestMatches:
    def test_substring_match_is_case_insensitive(self):
        assert matches("Does anyone have a DEMO video?", ["demo"])

    def test_no_keywords_never_matches(self):
        assert not matches("anything at all", [])

    def test_empty_text_never_matches(self):
        assert not matches("", ["demo"])
        assert not matches(None, ["demo"])

    def test_blank_keywords_are_ignored(self):
        assert not matches("hello world", ["", "   "])

    def test_substring_mode_matches_inside_words(self):
        assert matches("We just hired a designer", ["hire"])

    def test_word_mode_respects_boundaries(self):
        assert not matches("We just hired a designer", ["hire"], MatchMode.WORD)
        assert matches("Looking to hire a designer", ["hire"], MatchMode.WORD)

    def test_word_mode_handles_regex_characters(self):
        assert matches("Anyone using c++ for this?", ["c++"], MatchMode.SUBSTRING)
        assert matches("Is node.js any good", ["node.js"], MatchMode.WORD)

    def test_any_keyword_suffices(self):
        assert matches("need a crm", ["invoice", "crm", "billing"])


class TestFirstMatch:
    def test_returns_first_matching_keyword_in_list_order(self):
        assert first_match("crm and invoicing help", ["invoicing", "crm"]) == "invoicing"

    def test_returns_none_without_match(self):
        assert first_match("nothing here", ["crm"]) is None


class TestMatchesItem:
    def test_matches_title_or_body(self):
        item = make_item(title="Quick question", body="is there a good demo tool?")
        assert matches_item(item, ["demo"])

    def test_scenario_one_match_one_miss(self):
        """'demo' matches the first post only."""
        demo_post = make_item(external_id="p1", title="Need a demo tool")
        hiring_post = make_item(external_id="p2", title="Hiring a PM")

        assert matches_item(demo_post, ["demo"])
        assert not matches_item(hiring_post, ["demo"])


class TestCleanKeywords:
    def test_accepts_comma_separated_string(self):
        assert clean_keywords("crm, invoicing ,billing") == ["crm", "invoicing", "billing"]

    def test_drops_short_and_blank_entries(self):
        assert clean_keywords(["a", "", "  ", "ok"]) == ["ok"]

    def test_dedupes_case_insensitively_keeping_first_spelling(self):
        assert clean_keywords(["CRM", "crm", "Crm"]) == ["CRM"]

    def test_caps_keyword_count(self):
        raw = [f"keyword{i}" for i in range(MAX_KEYWORDS + 5)]
        assert len(clean_keywords(raw)) == MAX_KEYWORDS

    @pytest.mark.parametrize("raw", [None, "", []])
    def test_empty_inputs(self, raw):
        assert clean_keywords(raw) == []
