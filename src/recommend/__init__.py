"""
Recommendation Module: free text -> filters -> candidates -> 1-3 picks.

Provides:
- RecommendationService: The full pipeline (extraction, rules, query, selection)
- FlavorRepository: Supabase reads for flavors and taste keywords
- TasteMatcher: Taste inclusion/exclusion from text
- FilterExtractor / RecommendationSelector: The two LLM calls
- LLMClient: JSON-only chat completions with one repair round trip
"""

from recommend.catalog import CatalogQueryError, FlavorRepository
from recommend.extractor import FilterExtractor
from recommend.llm_client import LLMClient, LLMError, get_llm_client
from recommend.selector import RecommendationSelector
from recommend.service import RecommendationService, get_recommendation_service
from recommend.taste_matcher import TasteMatcher, match_taste

__all__ = [
    "CatalogQueryError",
    "FlavorRepository",
    "FilterExtractor",
    "LLMClient",
    "LLMError",
    "get_llm_client",
    "RecommendationSelector",
    "RecommendationService",
    "get_recommendation_service",
    "TasteMatcher",
    "match_taste",
]
