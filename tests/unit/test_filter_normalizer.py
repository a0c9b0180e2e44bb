"""
Unit tests for LLM filter normalization.

Run with: PYTHONPATH=src python -m pytest tests/unit/test_filter_normalizer.py -v
"""

import pytest

from config.constants import PRESENCE_LEVELS, SWEETNESS_LEVELS
from recommend.filter_normalizer import (
    as_list,
    clamp_enum_list,
    clamp_protein_type,
    normalize_filters,
    prepare_raw_filters,
    unwrap_value,
)
from recommend.models import ForcedLiquid, NormalizedFilters, Reco, TasteConstraints


class TestUnwrapValue:
    """Tests for the field decoder."""

    @pytest.mark.parametrize("raw,expected", [
        (None, None),
        (["보통"], ["보통"]),
        ("보통", "보통"),
        (3, 3),
        (2.5, 2.5),
        ({"values": ["없음"]}, ["없음"]),
        ({"value": 4}, 4),
        ({"items": ["WPI"]}, ["WPI"]),
        ({"data": "강함"}, "강함"),
        ({"value": None, "items": ["보통"]}, ["보통"]),
        ({"unrelated": "x"}, None),
        (True, None),
        ({"value": {"value": 3}}, None),
    ])
    def test_shapes(self, raw, expected):
        assert unwrap_value(raw) == expected

    def test_wrapper_key_order(self):
        """"values" is preferred over later wrapper keys."""
        assert unwrap_value({"data": ["보통"], "values": ["강함"]}) == ["강함"]


class TestClamping:
    """Tests for vocabulary clamping."""

    def test_as_list(self):
        assert as_list("보통") == ["보통"]
        assert as_list(["보통"]) == ["보통"]
        assert as_list(3) is None

    def test_clamp_drops_unknown_and_dedupes(self):
        assert clamp_enum_list(["보통", "아주 강함", "보통", 3], SWEETNESS_LEVELS) == ["보통"]

    def test_clamp_repairs_missing_space(self):
        assert clamp_enum_list(["거의없음", "약간있음"], PRESENCE_LEVELS) == ["거의 없음", "약간 있음"]

    def test_clamp_empty_is_none(self):
        assert clamp_enum_list(["달콤"], SWEETNESS_LEVELS) is None
        assert clamp_enum_list([], SWEETNESS_LEVELS) is None
        assert clamp_enum_list(None, SWEETNESS_LEVELS) is None

    def test_clamp_is_idempotent(self):
        once = clamp_enum_list(["약간약함", "보통", "xx"], SWEETNESS_LEVELS)
        assert clamp_enum_list(once, SWEETNESS_LEVELS) == once

    def test_clamp_protein_type(self):
        assert clamp_protein_type(["wpi", " WPC ", "casein"]) == ["WPI", "WPC"]
        assert clamp_protein_type("casein") is None


class TestPrepareRawFilters:
    """Tests for wrapper unwrapping and combined-field fan-out."""

    def test_combined_field_fans_out(self):
        fields = prepare_raw_filters({"fishy/artificial/bloating": {"values": ["없음"]}})
        assert fields["fishy"] == ["없음"]
        assert fields["artificial"] == ["없음"]
        assert fields["bloating"] == ["없음"]
        assert "fishy/artificial/bloating" not in fields

    def test_combined_field_ignored_when_any_dimension_present(self):
        fields = prepare_raw_filters({
            "fishy/artificial/bloating": ["없음"],
            "bloating": ["보통"],
        })
        assert fields.get("fishy") is None
        assert fields["bloating"] == ["보통"]

    def test_non_mapping(self):
        assert prepare_raw_filters(["없음"]) == {}
        assert prepare_raw_filters(None) == {}


class TestNormalizeFilters:
    """Tests for the full merge."""

    def test_empty_input(self):
        assert normalize_filters("초코 추천", None).is_empty()

    def test_rule_overrides_llm(self):
        """The text rule beats an LLM enum for the same dimension."""
        filters = normalize_filters("비린맛 약한 거", {"fishy": ["있음"]})
        assert filters.fishy == ["없음", "거의 없음"]

    def test_only_fishy_for_weak_fishiness(self):
        filters = normalize_filters("비린맛 약한 거", {})
        assert filters == NormalizedFilters(fishy=["없음", "거의 없음"])

    def test_sweetness_precedence(self):
        """rule > number > enum"""
        assert normalize_filters("덜 달게", {"sweetness": 5}).sweetness == ["약함", "약간 약함"]
        assert normalize_filters("추천", {"sweetness": {"value": 4}}).sweetness == ["약간 강함"]
        assert normalize_filters("추천", {"sweetness": "보통"}).sweetness == ["보통"]

    def test_protein_type_needs_mention(self):
        """LLM protein types are ignored unless the text mentions the vocabulary."""
        assert normalize_filters("초코 추천", {"protein_type": ["WPI"]}).protein_type is None
        assert normalize_filters("wpi 초코", {"protein_type": ["WPC"]}).protein_type == ["WPI"]

    def test_llm_water_milk_ignored(self):
        filters = normalize_filters("초코 추천", {"water": "추천", "milk": "비추천"})
        assert filters.water is None
        assert filters.milk is None

    def test_forced_liquid(self):
        filters = normalize_filters("추천", {}, forced=ForcedLiquid(milk=Reco.RECOMMENDED))
        assert filters.milk == "추천"
        assert filters.water is None

    def test_water_from_text(self):
        assert normalize_filters("물에 타 먹을 단백질", {}).water == "추천"

    def test_taste_from_matcher_only(self):
        """LLM taste output never becomes a filter."""
        taste = TasteConstraints(mentioned=True, include=["chocolate"], exclude=["strawberry"])
        filters = normalize_filters("딸기 말고 초코", {"taste": ["vanilla"]}, taste=taste)
        assert filters.taste == ["chocolate"]

    def test_malformed_fields_never_raise(self):
        filters = normalize_filters("추천", {
            "sweetness": {"value": {"deep": 1}},
            "fishy": 42,
            "artificial": [None, {}, "없음"],
            "bloating": True,
            7: "x",
        })
        assert filters.sweetness is None
        assert filters.fishy is None
        assert filters.artificial == ["없음"]
        assert filters.bloating is None
