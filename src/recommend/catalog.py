"""
Flavor and taste keyword reads against Supabase.

The store is only ever read by this service. Query failures raise
CatalogQueryError; there is no cached or partial fallback.
"""

import json
import time
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from config.constants import DEFAULT_RECOMMEND_CONFIG, DEFAULT_STORE_CONFIG, StoreConfig
from config.database import get_db
from core.logging import get_logger
from core.utils import clean_str
from recommend.models import NormalizedFilters, TasteKeyword
from recommend.query_builder import build_candidate_query

logger = get_logger(__name__)

# Older view revisions exposed the keyword list under other names
_TASTE_KEYWORD_KEYS = ("taste_keywords", "taste_keyword", "keywords", "taste")


class CatalogQueryError(Exception):
    """Raised when a Supabase read fails."""
    pass


def normalize_taste_keywords(value: Any) -> List[Any]:
    """
    Coerce a row's keyword references to a list.

    PostgREST returns jsonb as parsed JSON, but text columns hand back a
    JSON string; anything unparseable becomes [].
    """
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def normalize_flavor_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Stringify the id and settle taste_keywords into a list."""
    out = dict(row)
    raw_refs = next((row[k] for k in _TASTE_KEYWORD_KEYS if row.get(k) is not None), None)
    out["taste_keywords"] = normalize_taste_keywords(raw_refs)
    out["id"] = clean_str(row.get("id"))
    return out


class FlavorRepository:
    """
    Read access to the flavor search view and the taste keyword table.

    Usage:
        repo = FlavorRepository()
        keywords = repo.fetch_taste_keywords()
        rows = repo.fetch_candidates(filters, search="myprotein", limit=200)
    """

    def __init__(self, client=None, store: StoreConfig = DEFAULT_STORE_CONFIG):
        self._client = client
        self.store = store

    @property
    def client(self):
        """Lazy-load the shared Supabase client."""
        if self._client is None:
            self._client = get_db()
        return self._client

    def fetch_taste_keywords(self) -> List[TasteKeyword]:
        """
        The taste keyword catalog, ordered by sort_order then label.

        Rows without an id are skipped.
        """
        try:
            result = (
                self.client.table(self.store.TASTE_KEYWORD_TABLE)
                .select(self.store.taste_keyword_projection)
                .order("sort_order")
                .order("label")
                .execute()
            )
        except Exception as e:
            raise CatalogQueryError(f"Failed to fetch taste keywords: {e}") from e

        keywords: List[TasteKeyword] = []
        for row in result.data or []:
            keyword_id = clean_str(row.get("id"))
            if not keyword_id:
                continue
            try:
                keywords.append(TasteKeyword(
                    id=keyword_id,
                    label=clean_str(row.get("label")),
                    icon_url=row.get("icon_url"),
                    sort_order=row.get("sort_order"),
                ))
            except ValidationError as e:
                logger.warning("Skipping malformed taste keyword", keyword_id=keyword_id, error=str(e))
        return keywords

    def fetch_candidates(
        self,
        filters: NormalizedFilters,
        search: Optional[str] = None,
        limit: int = DEFAULT_RECOMMEND_CONFIG.DEFAULT_CANDIDATE_LIMIT,
    ) -> List[Dict[str, Any]]:
        """
        Flavor rows matching the filters, in the view's default order.

        Args:
            filters: Canonical filters
            search: Optional brand/product search term
            limit: Maximum rows returned

        Raises:
            CatalogQueryError: If the store query fails
        """
        query = build_candidate_query(filters, search=search, limit=limit)

        t_start = time.time()
        try:
            request = (
                self.client.table(self.store.FLAVOR_VIEW)
                .select(self.store.flavor_projection)
                .limit(query.limit)
            )
            result = query.apply(request).execute()
        except Exception as e:
            logger.error("Candidate query failed", query=query.describe(), error=str(e))
            raise CatalogQueryError(f"Failed to fetch candidates: {e}") from e

        rows = [normalize_flavor_row(r) for r in result.data or [] if isinstance(r, dict)]
        logger.info(
            "Candidate query completed",
            query=query.describe(),
            count=len(rows),
            latency_ms=int((time.time() - t_start) * 1000),
        )
        return rows
