"""
Recommendation pipeline.

One linear pipeline per request:

    text -> (keyword catalog || filter extraction)
         -> ask? -> brand query + taste match -> unresolved taste? -> empty
         -> normalized filters -> candidate query -> exclusion
         -> no rows? -> empty
         -> selector (first / strict / fallback) -> assembly
         -> no surviving picks? -> empty
         -> ok

The keyword catalog is re-fetched on every request. Store failures
propagate as CatalogQueryError; LLM failures never do.
"""

import contextvars
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from config.constants import DEFAULT_RECOMMEND_CONFIG, RecommendConfig
from config.settings import Settings, get_settings
from core.logging import bind_context, get_logger
from recommend import text_rules
from recommend.assembler import assemble_picks
from recommend.catalog import FlavorRepository
from recommend.extractor import FilterExtractor
from recommend.filter_normalizer import normalize_filters
from recommend.models import (
    AskResponse,
    EmptyResponse,
    OkResponse,
    RecommendResponse,
    TasteKeyword,
)
from recommend.query_builder import filter_out_excluded
from recommend.selector import RecommendationSelector
from recommend.taste_matcher import TasteMatcher

logger = get_logger(__name__)


class RecommendationService:
    """
    Text in, 1-3 catalog flavors out.

    Usage:
        service = get_recommendation_service()
        response = service.recommend("딸기 말고 초코 추천해줘")
    """

    def __init__(
        self,
        repository: Optional[FlavorRepository] = None,
        extractor: Optional[FilterExtractor] = None,
        selector: Optional[RecommendationSelector] = None,
        settings: Optional[Settings] = None,
        config: RecommendConfig = DEFAULT_RECOMMEND_CONFIG,
    ):
        settings = settings or get_settings()
        self.repository = repository or FlavorRepository()
        self.extractor = extractor or FilterExtractor(enabled=settings.filter_extraction_enabled)
        self.selector = selector or RecommendationSelector(config=config)
        self.candidate_limit = settings.recommend_candidate_limit
        self.config = config

    def list_taste_keywords(self) -> List[TasteKeyword]:
        return self.repository.fetch_taste_keywords()

    def recommend(self, text: str) -> RecommendResponse:
        """
        Run the full pipeline for one user request.

        Args:
            text: Non-empty, stripped user text

        Returns:
            AskResponse, EmptyResponse or OkResponse

        Raises:
            CatalogQueryError: If a store read fails
        """
        t_start = time.time()
        bind_context(user_text=text)

        # Step 1: keyword catalog and filter extraction in parallel, each in a
        # copy of the request context so worker logs keep the request_id
        with ThreadPoolExecutor(max_workers=2) as executor:
            future_keywords = executor.submit(
                contextvars.copy_context().run, self.repository.fetch_taste_keywords
            )
            future_extraction = executor.submit(
                contextvars.copy_context().run, self.extractor.extract, text
            )

            extraction = future_extraction.result()
            keywords = future_keywords.result()

        bind_context(extracted=extraction.model_dump())

        if extraction.must_ask:
            logger.info("Asking user for clarification", message=extraction.must_ask)
            return AskResponse(message=extraction.must_ask)

        # Step 2: text rules and taste matching
        search = text_rules.extract_brand_query(text)
        taste = TasteMatcher(keywords, window=self.config.NEGATION_WINDOW).match(text)

        if taste.unresolved:
            logger.info("Taste mentioned but unresolved", text=text)
            return EmptyResponse(message=self.config.EMPTY_MESSAGE)

        forced = text_rules.infer_water_milk(text)
        filters = normalize_filters(text, extraction.filters, taste=taste, forced=forced)
        bind_context(
            search=search,
            filters=filters.model_dump(exclude_none=True),
            taste_exclude=taste.exclude,
        )

        # Step 3: candidates
        rows = self.repository.fetch_candidates(filters, search=search, limit=self.candidate_limit)
        rows = filter_out_excluded(rows, taste.exclude)
        bind_context(candidate_count=len(rows))

        if not rows:
            logger.info("No candidates matched", filters=filters.model_dump(exclude_none=True))
            return EmptyResponse(message=self.config.EMPTY_MESSAGE)

        # Step 4: selection and assembly
        outcome = self.selector.select(text, rows)
        bind_context(rec_stage=outcome.stage.value, rec_raw=outcome.raw_payloads)

        rows_by_id = {row["id"]: row for row in rows}
        catalog = {k.id: k for k in keywords}
        picks = assemble_picks(outcome.result, rows_by_id, catalog, forced)

        if not picks:
            logger.warning("No picks survived assembly", stage=outcome.stage.value)
            return EmptyResponse(message=self.config.NO_PICKS_MESSAGE)

        logger.info(
            "Recommendation completed",
            stage=outcome.stage.value,
            pick_ids=[p.id for p in picks],
            candidates=len(rows),
            latency_ms=int((time.time() - t_start) * 1000),
        )
        return OkResponse(
            picks=picks,
            followup=outcome.result.followup,
            candidates_count=len(rows),
        )


# =============================================================================
# Singleton
# =============================================================================

_recommendation_service: Optional[RecommendationService] = None
_service_lock = threading.Lock()


def get_recommendation_service() -> RecommendationService:
    """Get or create the RecommendationService singleton (thread-safe)."""
    global _recommendation_service
    if _recommendation_service is None:
        with _service_lock:
            if _recommendation_service is None:
                _recommendation_service = RecommendationService()
    return _recommendation_service
