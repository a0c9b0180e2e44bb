"""
Unit tests for taste keyword matching.

Run with: PYTHONPATH=src python -m pytest tests/unit/test_taste_matcher.py -v
"""

import pytest

from recommend.models import TasteConstraints, TasteKeyword
from recommend.taste_matcher import (
    TasteMatcher,
    find_all_occurrences,
    match_taste,
    normalize_taste_text,
    only_mixing_method_mentioned,
)


@pytest.fixture
def matcher(taste_keywords):
    return TasteMatcher(taste_keywords)


class TestNormalization:
    """Tests for text normalization helpers."""

    def test_normalize_taste_text(self):
        """Lowercase, & and 앤 become "and", punctuation and spaces dropped."""
        assert normalize_taste_text("Cookies & Cream!") == "cookiesandcream"
        assert normalize_taste_text("쿠키 앤 크림") == "쿠키and크림"
        assert normalize_taste_text(None) == ""

    def test_find_all_occurrences(self):
        assert find_all_occurrences("초코초코 초코", "초코") == [0, 2, 5]
        assert find_all_occurrences("초코", "") == []

    def test_only_mixing_method(self):
        """A mixing word with no flavor word is not a taste request."""
        assert only_mixing_method_mentioned("물에 타 먹을 단백질")
        assert only_mixing_method_mentioned("milk로 먹을 거")
        assert not only_mixing_method_mentioned("우유에 타 먹을 초코")
        assert not only_mixing_method_mentioned("초코 추천")
        assert not only_mixing_method_mentioned("")


class TestInclusion:
    """Tests for plain taste requests."""

    def test_alias_match(self, matcher):
        result = matcher.match("초콜릿 맛 추천해줘")
        assert result == TasteConstraints(mentioned=True, include=["chocolate"], exclude=[])

    def test_english_alias(self, matcher):
        assert matcher.match("any vanilla?").include == ["vanilla"]

    def test_label_normalized_match(self, matcher):
        """Spacing differences still hit the label, positionless."""
        result = matcher.match("쿠키 앤 크림 있어?")
        assert result.include == ["cookies and cream"]
        assert result.exclude == []

    def test_multiple_tastes(self, matcher):
        """Ids come out in alias-table order, deduplicated across both passes."""
        result = matcher.match("바닐라나 딸기")
        assert result.include == ["strawberry", "vanilla"]

    def test_inactive_ids_are_ignored(self, taste_keywords):
        """Aliases for ids outside the active set never match."""
        matcher = TasteMatcher(taste_keywords, active_ids={"vanilla"})
        assert matcher.match("초코 추천").mentioned is False

    def test_alias_needs_catalog_id(self):
        """The alias table only applies to ids the catalog has."""
        catalog = [TasteKeyword(id="vanilla", label="바닐라")]
        assert match_taste("민트 초코", catalog).mentioned is False

    def test_no_taste(self, matcher):
        assert matcher.match("단백질 함량 높은 거") == TasteConstraints(mentioned=False)


class TestNegation:
    """Tests for negation windows."""

    def test_exclude_then_include(self, matcher):
        """The marker after the first taste does not negate the second."""
        result = matcher.match("딸기 말고 초코 추천해줘")
        assert result.include == ["chocolate"]
        assert result.exclude == ["strawberry"]

    def test_mirrored_order(self, matcher):
        result = matcher.match("초코 말고 딸기 추천해줘")
        assert result.include == ["strawberry"]
        assert result.exclude == ["chocolate"]

    def test_dislike(self, matcher):
        result = matcher.match("초코 싫어")
        assert result == TasteConstraints(mentioned=True, include=[], exclude=["chocolate"])
        assert not result.unresolved

    def test_marker_outside_window(self, matcher):
        """A marker more than the window away does not negate."""
        result = matcher.match("초코 맛이 진하고 향도 좋고 달달한데 빼고")
        assert result.include == ["chocolate"]
        assert result.exclude == []

    def test_exclusion_wins_over_inclusion(self, matcher):
        """An id both requested and negated ends up excluded only."""
        result = matcher.match("초코 좋아하는데 초코 쿠키는 빼고")
        assert "chocolate" in result.exclude
        assert "chocolate" not in result.include

    def test_preceding_marker_negates(self, matcher):
        """A marker right before an unclaimed match still counts."""
        result = matcher.match("싫은 맛은 딸기")
        assert result.exclude == ["strawberry"]

    def test_following_marker_is_not_claimed(self, matcher):
        """A marker after two nearby tastes negates both; only the preceding window is claim-checked."""
        result = matcher.match("바닐라 좋고 초코 싫고 딸기")
        assert result.include == ["strawberry"]
        assert set(result.exclude) == {"chocolate", "vanilla"}


class TestMixingGuard:
    """Tests for mixing-method text."""

    def test_water_mixing_is_not_taste(self, matcher):
        assert matcher.match("물에 타 먹을 단백질") == TasteConstraints(mentioned=False)

    def test_milk_tea_still_matches_with_flavor_word(self, matcher):
        """밀크티 is a taste; a flavor hint keeps the guard off."""
        result = matcher.match("우유에 타 먹을 밀크티나 초코")
        assert "chocolate" in result.include
        assert "milk tea" in result.include


class TestProperties:
    """Invariants of the matcher."""

    @pytest.mark.parametrize("text", [
        "딸기 말고 초코 추천해줘",
        "초코 싫어",
        "바닐라나 딸기",
        "물에 타 먹을 단백질",
    ])
    def test_idempotent(self, matcher, text):
        assert matcher.match(text) == matcher.match(text)

    @pytest.mark.parametrize("text", [
        "딸기 말고 초코 추천해줘",
        "초코 좋아하는데 초코 쿠키는 빼고",
        "바닐라 아닌 딸기",
    ])
    def test_include_and_exclude_disjoint(self, matcher, text):
        result = matcher.match(text)
        assert not set(result.include) & set(result.exclude)

    def test_unresolved_flag(self):
        assert TasteConstraints(mentioned=True).unresolved
        assert not TasteConstraints(mentioned=False).unresolved
