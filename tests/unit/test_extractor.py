"""
Unit tests for filter extraction.

Run with: PYTHONPATH=src python -m pytest tests/unit/test_extractor.py -v
"""

import pytest

from recommend.extractor import FilterExtractor, parse_extraction
from recommend.llm_client import LLMResponseError, LLMUnavailableError
from recommend.models import ExtractionResult


class TestParseExtraction:
    """Tests for reading extraction payloads."""

    def test_full_payload(self):
        result = parse_extraction({
            "query": " 초코 ",
            "mustAsk": None,
            "filters": {"sweetness": 2},
        })
        assert result == ExtractionResult(query="초코", must_ask=None, filters={"sweetness": 2})

    def test_must_ask(self):
        assert parse_extraction({"mustAsk": "어떤 맛을 좋아해?"}).must_ask == "어떤 맛을 좋아해?"
        assert parse_extraction({"must_ask": "물? 우유?"}).must_ask == "물? 우유?"

    @pytest.mark.parametrize("must_ask", ["", "   ", 3, True, ["질문"]])
    def test_blank_or_non_string_must_ask_is_ignored(self, must_ask):
        assert parse_extraction({"mustAsk": must_ask}).must_ask is None

    def test_non_mapping_filters(self):
        assert parse_extraction({"filters": ["없음"]}).filters == {}

    def test_wrapped_payload(self):
        result = parse_extraction({"data": {"filters": {"fishy": ["없음"]}}})
        assert result.filters == {"fishy": ["없음"]}

    def test_non_mapping_payload(self):
        assert parse_extraction(["x"]) == ExtractionResult()


class TestFilterExtractor:
    """Tests for the extraction call."""

    def test_extract(self, scripted_llm):
        llm = scripted_llm({"mustAsk": None, "filters": {"fishy": ["없음"]}})
        result = FilterExtractor(llm=llm).extract("비린맛 없는 거")

        assert result.filters == {"fishy": ["없음"]}
        system, user = llm.calls[0]
        assert system["role"] == "system"
        assert user["content"] == "사용자 질문:\n비린맛 없는 거"

    @pytest.mark.parametrize("error", [LLMUnavailableError("down"), LLMResponseError("garbage")])
    def test_failure_degrades_to_empty(self, scripted_llm, error):
        result = FilterExtractor(llm=scripted_llm(error)).extract("초코")
        assert result == ExtractionResult()

    def test_disabled(self, scripted_llm):
        llm = scripted_llm()
        result = FilterExtractor(llm=llm, enabled=False).extract("초코")
        assert result == ExtractionResult()
        assert llm.calls == []
