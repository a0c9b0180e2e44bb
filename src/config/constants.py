"""
Application constants and algorithm configuration.

These are values that don't change based on environment but may need
to be tuned or referenced across the codebase.
"""

from dataclasses import dataclass
from typing import Tuple


# =============================================================================
# Attribute Vocabularies
# =============================================================================

# Ordered weakest -> strongest. Stored verbatim in the flavor view.
SWEETNESS_LEVELS: Tuple[str, ...] = ("약함", "약간 약함", "보통", "약간 강함", "강함")
PRESENCE_LEVELS: Tuple[str, ...] = ("없음", "거의 없음", "보통", "약간 있음", "있음")
PROTEIN_TYPES: Tuple[str, ...] = ("WPC", "WPI")

RECOMMENDED = "추천"

LOW_SWEETNESS: Tuple[str, ...] = SWEETNESS_LEVELS[:2]
LOW_PRESENCE: Tuple[str, ...] = PRESENCE_LEVELS[:2]


# =============================================================================
# Store Layout
# =============================================================================

@dataclass(frozen=True)
class StoreConfig:
    """Names and projections used against the Supabase schema."""

    FLAVOR_VIEW: str = "flavor_search_view"
    TASTE_KEYWORD_TABLE: str = "taste_keywords"

    FLAVOR_COLUMNS: Tuple[str, ...] = (
        "id", "brand", "product_name", "flavor_name", "summary_text",
        "sweetness", "fishy", "artificial", "bloating", "water", "milk",
        "image_url", "protein_type", "taste_keywords",
    )
    TASTE_KEYWORD_COLUMNS: Tuple[str, ...] = ("id", "label", "icon_url", "sort_order")

    @property
    def flavor_projection(self) -> str:
        return ", ".join(self.FLAVOR_COLUMNS)

    @property
    def taste_keyword_projection(self) -> str:
        return ", ".join(self.TASTE_KEYWORD_COLUMNS)


DEFAULT_STORE_CONFIG = StoreConfig()


# =============================================================================
# Recommendation Pipeline
# =============================================================================

@dataclass(frozen=True)
class RecommendConfig:
    """Configuration for the text -> filters -> candidates -> picks pipeline."""

    # Candidate query limits
    DEFAULT_CANDIDATE_LIMIT: int = 120
    LLM_CANDIDATE_LIMIT: int = 200

    # Picks returned to the caller
    MAX_PICKS: int = 3

    # Characters inspected on each side of a taste match for negation markers
    NEGATION_WINDOW: int = 10

    # Multi-value filter columns, applied as IN predicates in this order
    MULTI_VALUE_COLUMNS: Tuple[str, ...] = (
        "protein_type", "sweetness", "fishy", "artificial", "bloating",
    )
    SINGLE_VALUE_COLUMNS: Tuple[str, ...] = ("water", "milk")
    SEARCH_COLUMNS: Tuple[str, ...] = ("brand", "product_name", "flavor_name")

    # User-facing messages
    EMPTY_MESSAGE: str = "조건에 맞는 데이터가 아직 없어요."
    NO_PICKS_MESSAGE: str = "추천을 만들 수 없었어."

    # Attributes shown as tags on compacted and hydrated items
    TAG_FIELDS: Tuple[str, ...] = (
        "sweetness", "fishy", "artificial", "bloating", "water", "milk",
    )


DEFAULT_RECOMMEND_CONFIG = RecommendConfig()
