"""
Pydantic models for the recommendation pipeline and API.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Enums
# ============================================================================

class ProteinType(str, Enum):
    """Whey protein concentrate / isolate."""
    WPC = "WPC"
    WPI = "WPI"


class Reco(str, Enum):
    """Binary recommendation for mixing with water or milk."""
    RECOMMENDED = "추천"
    NOT_RECOMMENDED = "비추천"


class Liquid(str, Enum):
    """Liquid the assembler suggests mixing with."""
    WATER = "물"
    MILK = "우유"


class SelectionStage(str, Enum):
    """Which selector state produced the picks."""
    FIRST_ATTEMPT = "first_attempt"
    STRICT_RETRY = "strict_retry"
    FALLBACK = "fallback"


# ============================================================================
# Catalog
# ============================================================================

class TasteKeyword(BaseModel):
    """A row of the taste keyword catalog."""
    id: str
    label: str = ""
    icon_url: Optional[str] = None
    sort_order: Optional[int] = None


# ============================================================================
# Pipeline Values
# ============================================================================

class ForcedLiquid(BaseModel):
    """Water/milk override derived from the user's text."""
    model_config = ConfigDict(frozen=True)

    water: Optional[Reco] = None
    milk: Optional[Reco] = None

    @property
    def single_liquid(self) -> Optional[Liquid]:
        """The one liquid forced to 추천, if exactly one is."""
        water = self.water == Reco.RECOMMENDED
        milk = self.milk == Reco.RECOMMENDED
        if water and not milk:
            return Liquid.WATER
        if milk and not water:
            return Liquid.MILK
        return None


class TasteConstraints(BaseModel):
    """Result of matching free text against the taste keyword catalog."""
    mentioned: bool = False
    include: List[str] = Field(default_factory=list)
    exclude: List[str] = Field(default_factory=list)

    @property
    def unresolved(self) -> bool:
        """Taste was referenced but nothing mapped to a known keyword id."""
        return self.mentioned and not self.include and not self.exclude


class NormalizedFilters(BaseModel):
    """
    Canonical filters for one request.

    Every populated list is non-empty, deduplicated, and drawn from the
    permitted vocabulary of its column.
    """
    protein_type: Optional[List[str]] = None
    sweetness: Optional[List[str]] = None
    fishy: Optional[List[str]] = None
    artificial: Optional[List[str]] = None
    bloating: Optional[List[str]] = None
    water: Optional[str] = None
    milk: Optional[str] = None
    taste: Optional[List[str]] = None

    def is_empty(self) -> bool:
        return not any(v for v in self.model_dump().values())


class ExtractionResult(BaseModel):
    """Best-effort output of the filter-extraction LLM call."""
    must_ask: Optional[str] = None
    query: Optional[str] = None
    filters: Dict[str, Any] = Field(default_factory=dict)


class Pick(BaseModel):
    id: str


class RecommendationResult(BaseModel):
    """1-3 candidate ids picked by the selector (or the fallback)."""
    picks: List[Pick]
    followup: Optional[str] = None


# ============================================================================
# Request Models
# ============================================================================

class RecommendRequest(BaseModel):
    """
    Request body: either a single message or a chat history.

    Both fields are untyped so a malformed `messages` never hides a usable
    `message`; shapes are checked in user_text().
    """
    model_config = ConfigDict(extra="ignore")

    message: Optional[Any] = None
    messages: Optional[Any] = None

    def user_text(self) -> str:
        """The user turn: `message` when it is a string, else the last message's content."""
        if isinstance(self.message, str):
            return self.message.strip()
        if isinstance(self.messages, list) and self.messages:
            last = self.messages[-1]
            content = last.get("content") if isinstance(last, dict) else None
            return ("" if content is None else str(content)).strip()
        return ""


# ============================================================================
# Response Models
# ============================================================================

class TasteKeywordRef(BaseModel):
    """Taste keyword reference on a flavor row, hydrated from the catalog."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    label: Optional[str] = None
    icon_url: Optional[str] = None


class FlavorTags(BaseModel):
    sweetness: Optional[str] = None
    fishy: Optional[str] = None
    artificial: Optional[str] = None
    bloating: Optional[str] = None
    water: Optional[str] = None
    milk: Optional[str] = None


class HydratedFlavor(BaseModel):
    """A picked flavor with display data attached."""
    model_config = ConfigDict(extra="allow")

    id: str
    brand: Optional[str] = None
    product_name: Optional[str] = None
    flavor_name: Optional[str] = None
    summary_text: Optional[str] = None
    image_url: Optional[str] = None
    protein_type: Optional[str] = None
    sweetness: Optional[str] = None
    fishy: Optional[str] = None
    artificial: Optional[str] = None
    bloating: Optional[str] = None
    water: Optional[str] = None
    milk: Optional[str] = None
    taste_keywords: List[TasteKeywordRef] = Field(default_factory=list)

    title: str
    tags: FlavorTags
    best_with: Liquid


class AskResponse(BaseModel):
    type: Literal["ask"] = "ask"
    message: str


class EmptyResponse(BaseModel):
    type: Literal["empty"] = "empty"
    message: str


class OkResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["ok"] = "ok"
    picks: List[HydratedFlavor]
    followup: Optional[str] = None
    candidates_count: int = Field(..., alias="candidatesCount")


RecommendResponse = Union[AskResponse, EmptyResponse, OkResponse]


class ErrorResponse(BaseModel):
    error: str
