"""Tests for document and file-match scoring."""

from datetime import datetime, timedelta, timezone

import pytest

from code_wiki.search.scoring import (
    days_since,
    match_preview,
    recency_bonus,
    score_document,
    score_file_match,
    split_terms,
)

from conftest import make_doc

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


class TestScoreDocument:
    def test_exact_title_beats_partial_title(self):
        terms = split_terms("retry policy")
        exact = make_doc("Retry Policy")
        partial = make_doc("Retry Policy for Queues")

        assert score_document(exact, terms, NOW) > score_document(partial, terms, NOW)

    def test_title_components(self):
        # "retry" is the leading word: 50 + 25
        assert score_document(make_doc("Retry helpers"), ["retry"], NOW) == 75
        # Contained but not a whole leading/trailing word: 50 only
        assert score_document(make_doc("Autoretrying client"), ["retry"], NOW) == 50

    def test_tag_and_description(self):
        doc = make_doc("Something", tags=["http", "retrying"], description="Retry with jitter")
        # tag contains (30), description contains (20)
        assert score_document(doc, ["retry"], NOW) == 50

        exact_tag = make_doc("Something", tags=["retry"])
        assert score_document(exact_tag, ["retry"], NOW) == 45

    def test_content_frequency_is_capped(self):
        assert score_document(make_doc("X", preview="retry " * 2), ["retry"], NOW) == 10
        assert score_document(make_doc("X", preview="retry " * 10), ["retry"], NOW) == 25

    def test_content_term_is_literal_not_regex(self):
        doc = make_doc("X", preview="a.b axb a.b")
        assert score_document(doc, ["a.b"], NOW) == 10

    def test_case_insensitive(self):
        assert score_document(make_doc("RETRY"), split_terms("Retry"), NOW) == 75

    def test_no_match_scores_zero(self):
        assert score_document(make_doc("Unrelated"), ["retry"], NOW) == 0

    def test_adding_matching_term_never_lowers_score(self):
        doc = make_doc("Retry Policy", tags=["backoff"], description="exponential backoff", preview="retry later")
        base = score_document(doc, ["retry"], NOW)
        more = score_document(doc, ["retry", "backoff"], NOW)
        assert more >= base

    def test_recency_bonus_added_once(self):
        fresh = make_doc("Retry", updated=NOW.date().isoformat())
        old = make_doc("Retry", updated=(NOW - timedelta(days=100)).date().isoformat())
        assert score_document(fresh, ["retry"], NOW) == 75 + 20
        assert score_document(old, ["retry"], NOW) == 75


class TestRecency:
    def test_decays_half_point_per_day(self):
        updated = (NOW - timedelta(days=10)).isoformat()
        assert recency_bonus(updated, NOW) == 15

    def test_future_date_clamped(self):
        updated = (NOW + timedelta(days=5)).isoformat()
        assert recency_bonus(updated, NOW) == 20

    def test_missing_or_invalid_date(self):
        assert recency_bonus(None, NOW) == 0
        assert recency_bonus("last tuesday", NOW) == 0

    def test_days_since_floors(self):
        assert days_since(NOW - timedelta(hours=47), NOW) == 1


class TestScoreFileMatch:
    def test_base_score(self):
        assert score_file_match("nothing interesting", "zzz") == 10

    def test_query_in_line(self):
        assert score_file_match("result = parseConfig(x)", "parseconfig") == 30

    def test_definition_and_export(self):
        line = "export function parseConfig(path) {"
        assert score_file_match(line, "parseConfig") == 10 + 20 + 15 + 10

    def test_type_definition(self):
        assert score_file_match("interface Config {", "Config") == 10 + 20 + 10

    def test_keyword_must_be_whole_word(self):
        assert score_file_match("classify(items)", "zzz") == 10


class TestMatchPreview:
    def test_short_line_is_stripped(self):
        assert match_preview("    return x  ", 4, 10) == "return x"

    def test_long_line_centered_with_ellipses(self):
        line = "a" * 200 + "NEEDLE" + "b" * 200
        preview = match_preview(line, 200, 206)
        assert preview.startswith("...") and preview.endswith("...")
        assert "NEEDLE" in preview
        assert len(preview) == 150 + 6

    def test_match_at_start_only_trailing_ellipsis(self):
        line = "NEEDLE" + "x" * 300
        preview = match_preview(line, 0, 6)
        assert preview.startswith("NEEDLE")
        assert preview.endswith("...")

    def test_offsets_account_for_leading_whitespace(self):
        line = " " * 40 + "x" * 200 + "NEEDLE" + "y" * 200
        preview = match_preview(line, 240, 246)
        assert "NEEDLE" in preview


@pytest.mark.parametrize("query,expected", [
    ("Retry  Policy", ["retry", "policy"]),
    ("   ", []),
])
def test_split_terms(query, expected):
    assert split_terms(query) == expected
