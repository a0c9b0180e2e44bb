"""
Candidate query construction and in-process exclusion.

NormalizedFilters become a small predicate tree: a list of AND predicates
plus at most one OR group. The tree is only serialized to PostgREST syntax
when it is applied to a Supabase request builder.

Known quirk (kept on purpose): a brand search term and taste inclusion ids
share the single OR group, so a query with both returns the union of the
two, not the intersection.

Negated containment ("does not contain keyword X") cannot be expressed
alongside the OR group, so excluded tastes are stripped from the fetched
rows by filter_out_excluded().
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from config.constants import DEFAULT_RECOMMEND_CONFIG, RecommendConfig
from core.utils import clean_str, uniq
from recommend.models import NormalizedFilters


# =============================================================================
# Predicates
# =============================================================================

@dataclass(frozen=True)
class InPredicate:
    """column IN (values)"""
    column: str
    values: Tuple[str, ...]

    def to_postgrest(self) -> str:
        return f"{self.column}.in.({','.join(self.values)})"


@dataclass(frozen=True)
class EqPredicate:
    """column = value"""
    column: str
    value: str

    def to_postgrest(self) -> str:
        return f"{self.column}.eq.{self.value}"


@dataclass(frozen=True)
class IlikePredicate:
    """column ILIKE %term% (term already sanitized)"""
    column: str
    term: str

    def to_postgrest(self) -> str:
        return f"{self.column}.ilike.%{self.term}%"


@dataclass(frozen=True)
class ContainsPredicate:
    """JSON array column contains the given single-element pattern document."""
    column: str
    document: str

    def to_postgrest(self) -> str:
        return f"{self.column}.cs.{self.document}"


Predicate = Union[InPredicate, EqPredicate, IlikePredicate, ContainsPredicate]


def sanitize_search(term: str) -> str:
    """Drop characters that would break an OR expression: %, "," and "&"."""
    return term.replace("%", "").replace(",", " ").replace("&", " ").strip()


def taste_contains_document(keyword_id: str) -> str:
    """
    Minimal containment document for one keyword id.

    Backslashes and double quotes in the id are escaped so a user-influenced
    id cannot break out of the JSON string.

    Example:
        >>> taste_contains_document('cookies and cream')
        '[{"id":"cookies and cream"}]'
    """
    safe_id = str(keyword_id).replace("\\", "\\\\").replace('"', '\\"')
    return f'[{{"id":"{safe_id}"}}]'


# =============================================================================
# Query
# =============================================================================

@dataclass(frozen=True)
class CandidateQuery:
    """AND predicates plus at most one OR group, and a row limit."""

    and_predicates: Tuple[Predicate, ...] = ()
    or_group: Tuple[Predicate, ...] = ()
    limit: int = DEFAULT_RECOMMEND_CONFIG.DEFAULT_CANDIDATE_LIMIT

    def or_expression(self) -> Optional[str]:
        """The OR group in PostgREST `or=(...)` body syntax, or None."""
        if not self.or_group:
            return None
        return ",".join(p.to_postgrest() for p in self.or_group)

    def apply(self, request):
        """
        Apply the predicates to a postgrest request builder.

        Args:
            request: A Supabase select builder (supports in_/eq/or_)

        Returns:
            The builder with every predicate attached
        """
        for predicate in self.and_predicates:
            if isinstance(predicate, InPredicate):
                request = request.in_(predicate.column, list(predicate.values))
            elif isinstance(predicate, EqPredicate):
                request = request.eq(predicate.column, predicate.value)
            else:
                raise TypeError(f"Unsupported AND predicate: {type(predicate).__name__}")

        expression = self.or_expression()
        if expression:
            request = request.or_(expression)
        return request

    def describe(self) -> Dict[str, Any]:
        """Loggable form of the query."""
        return {
            "and": [p.to_postgrest() for p in self.and_predicates],
            "or": self.or_expression(),
            "limit": self.limit,
        }


def build_candidate_query(
    filters: NormalizedFilters,
    search: Optional[str] = None,
    limit: int = DEFAULT_RECOMMEND_CONFIG.DEFAULT_CANDIDATE_LIMIT,
    config: RecommendConfig = DEFAULT_RECOMMEND_CONFIG,
) -> CandidateQuery:
    """
    Translate normalized filters and an optional search term into a query.

    Args:
        filters: Canonical filters for the request
        search: Brand/product search term (sanitized here)
        limit: Row limit
        config: Column layout

    Returns:
        CandidateQuery with a single (possibly empty) OR group
    """
    and_predicates: List[Predicate] = []

    for column in config.MULTI_VALUE_COLUMNS:
        values = getattr(filters, column)
        if values:
            and_predicates.append(InPredicate(column, tuple(values)))

    for column in config.SINGLE_VALUE_COLUMNS:
        value = getattr(filters, column)
        if value:
            and_predicates.append(EqPredicate(column, value))

    or_group: List[Predicate] = []

    if search:
        term = sanitize_search(search)
        if term:
            or_group.extend(IlikePredicate(column, term) for column in config.SEARCH_COLUMNS)

    if filters.taste:
        for keyword_id in uniq(filters.taste):
            if keyword_id:
                or_group.append(ContainsPredicate("taste_keywords", taste_contains_document(keyword_id)))

    return CandidateQuery(
        and_predicates=tuple(and_predicates),
        or_group=tuple(or_group),
        limit=limit,
    )


# =============================================================================
# Exclusion
# =============================================================================

def taste_ids_of(row: Dict[str, Any]) -> List[str]:
    """Keyword ids referenced by a flavor row, deduplicated."""
    refs = row.get("taste_keywords") if isinstance(row, dict) else None
    if not isinstance(refs, list):
        return []
    ids = (clean_str(ref.get("id")) for ref in refs if isinstance(ref, dict))
    return uniq(i for i in ids if i)


def filter_out_excluded(
    rows: Sequence[Dict[str, Any]],
    exclude_ids: Optional[Iterable[str]],
) -> List[Dict[str, Any]]:
    """
    Drop rows that reference any excluded taste keyword.

    Order is preserved; an empty exclusion set returns the rows unchanged.
    """
    excluded = {i for i in (exclude_ids or ()) if i}
    if not excluded:
        return list(rows)
    return [row for row in rows if not excluded.intersection(taste_ids_of(row))]
