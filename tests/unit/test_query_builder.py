"""
Unit tests for candidate query construction and exclusion.

Run with: PYTHONPATH=src python -m pytest tests/unit/test_query_builder.py -v
"""

from unittest.mock import MagicMock

import pytest

from recommend.models import NormalizedFilters
from recommend.query_builder import (
    CandidateQuery,
    ContainsPredicate,
    EqPredicate,
    IlikePredicate,
    InPredicate,
    build_candidate_query,
    filter_out_excluded,
    sanitize_search,
    taste_contains_document,
    taste_ids_of,
)


@pytest.fixture
def chained_request():
    """Request builder mock whose filter methods return itself."""
    request = MagicMock()
    for method in ("in_", "eq", "or_"):
        getattr(request, method).return_value = request
    return request


class TestPredicates:
    """Tests for predicate serialization."""

    def test_in(self):
        assert InPredicate("fishy", ("없음", "거의 없음")).to_postgrest() == "fishy.in.(없음,거의 없음)"

    def test_eq(self):
        assert EqPredicate("water", "추천").to_postgrest() == "water.eq.추천"

    def test_ilike(self):
        assert IlikePredicate("brand", "myprotein").to_postgrest() == "brand.ilike.%myprotein%"

    def test_contains(self):
        predicate = ContainsPredicate("taste_keywords", '[{"id":"chocolate"}]')
        assert predicate.to_postgrest() == 'taste_keywords.cs.[{"id":"chocolate"}]'


class TestEscaping:
    """Tests for search and id escaping."""

    def test_sanitize_search(self):
        assert sanitize_search(" 50%, off & more ") == "50  off   more"

    def test_containment_document(self):
        assert taste_contains_document("cookies and cream") == '[{"id":"cookies and cream"}]'

    def test_containment_document_escapes_quotes_and_backslashes(self):
        assert taste_contains_document('a"b\\c') == '[{"id":"a\\"b\\\\c"}]'


class TestBuildCandidateQuery:
    """Tests for filters -> predicate tree."""

    def test_empty_filters(self):
        query = build_candidate_query(NormalizedFilters())
        assert query.and_predicates == ()
        assert query.or_expression() is None
        assert query.limit == 120

    def test_and_predicates_in_column_order(self):
        filters = NormalizedFilters(
            sweetness=["약함", "약간 약함"],
            protein_type=["WPI"],
            water="추천",
        )
        query = build_candidate_query(filters, limit=200)
        assert query.and_predicates == (
            InPredicate("protein_type", ("WPI",)),
            InPredicate("sweetness", ("약함", "약간 약함")),
            EqPredicate("water", "추천"),
        )
        assert query.limit == 200

    def test_brand_and_taste_share_one_or_group(self):
        """Brand search and taste inclusion are OR-ed together."""
        query = build_candidate_query(NormalizedFilters(taste=["chocolate"]), search="myprotein")
        assert query.or_expression() == (
            "brand.ilike.%myprotein%,"
            "product_name.ilike.%myprotein%,"
            "flavor_name.ilike.%myprotein%,"
            'taste_keywords.cs.[{"id":"chocolate"}]'
        )

    def test_taste_ids_deduplicated(self):
        query = build_candidate_query(NormalizedFilters(taste=["vanilla", "vanilla"]))
        assert len(query.or_group) == 1

    def test_blank_search_is_skipped(self):
        query = build_candidate_query(NormalizedFilters(), search=" %% ")
        assert query.or_group == ()

    def test_apply(self, chained_request):
        filters = NormalizedFilters(fishy=["없음"], milk="추천", taste=["strawberry"])
        result = build_candidate_query(filters).apply(chained_request)

        assert result is chained_request
        chained_request.in_.assert_called_once_with("fishy", ["없음"])
        chained_request.eq.assert_called_once_with("milk", "추천")
        chained_request.or_.assert_called_once_with('taste_keywords.cs.[{"id":"strawberry"}]')

    def test_apply_without_or_group(self, chained_request):
        build_candidate_query(NormalizedFilters(fishy=["없음"])).apply(chained_request)
        chained_request.or_.assert_not_called()

    def test_apply_rejects_or_only_predicate_in_and(self, chained_request):
        query = CandidateQuery(and_predicates=(IlikePredicate("brand", "x"),))
        with pytest.raises(TypeError):
            query.apply(chained_request)

    def test_describe(self):
        description = build_candidate_query(NormalizedFilters(water="추천"), limit=5).describe()
        assert description == {"and": ["water.eq.추천"], "or": None, "limit": 5}


class TestExclusion:
    """Tests for the exclusion post-filter."""

    def test_taste_ids_of(self):
        row = {"taste_keywords": [{"id": "a"}, {"id": " a "}, {"label": "x"}, "junk", {"id": 7}]}
        assert taste_ids_of(row) == ["a", "7"]
        assert taste_ids_of({"taste_keywords": None}) == []

    def test_drops_rows_with_excluded_taste(self, flavor_rows):
        kept = filter_out_excluded(flavor_rows, ["strawberry"])
        assert [r["id"] for r in kept] == ["flv-001", "flv-003", "flv-005"]

    def test_empty_exclusion_is_noop(self, flavor_rows):
        assert filter_out_excluded(flavor_rows, []) == flavor_rows
        assert filter_out_excluded(flavor_rows, None) == flavor_rows

    def test_no_survivor_references_excluded_id(self, flavor_rows):
        excluded = {"chocolate", "vanilla"}
        for row in filter_out_excluded(flavor_rows, excluded):
            assert not excluded & set(taste_ids_of(row))
