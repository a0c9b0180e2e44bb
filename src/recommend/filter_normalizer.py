"""
Merge LLM-extracted filters with text-rule overrides.

The extraction LLM is untrusted: fields may be missing, wrapped
({"values": [...]}, {"value": ...}), scalar where a list is expected, or
carry values outside the column vocabulary. Every such defect degrades to
"filter absent", which is always a weaker, safe constraint. Nothing here
raises on bad input.
"""

from typing import Any, Dict, List, Optional, Sequence

from config.constants import PRESENCE_LEVELS, PROTEIN_TYPES, SWEETNESS_LEVELS
from core.logging import get_logger
from core.utils import uniq
from recommend.models import ForcedLiquid, NormalizedFilters, TasteConstraints
from recommend import text_rules

logger = get_logger(__name__)


COMBINED_PRESENCE_KEY = "fishy/artificial/bloating"
PRESENCE_KEYS = ("fishy", "artificial", "bloating")

# Tried in this order when a field arrives as a mapping
WRAPPER_KEYS = ("values", "value", "items", "data")

# LLMs drop the space inside two-word levels
_ENUM_REPAIRS = (
    ("거의없음", "거의 없음"),
    ("약간약함", "약간 약함"),
    ("약간강함", "약간 강함"),
    ("약간있음", "약간 있음"),
)


# =============================================================================
# Decoding
# =============================================================================

def unwrap_value(raw: Any) -> Any:
    """
    Decode one LLM filter field to its bare value.

    Shapes, tried in a fixed order:
        None                          -> None (absent)
        list                          -> the list
        str / int / float (not bool)  -> the scalar
        dict                          -> first non-null of values/value/items/data
        anything else                 -> None (absent)
    """
    if _is_bare(raw):
        return raw
    if isinstance(raw, dict):
        for key in WRAPPER_KEYS:
            inner = raw.get(key)
            if inner is not None:
                # One level only; a wrapper inside a wrapper is absent.
                return inner if _is_bare(inner) else None
    return None


def _is_bare(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, (list, str, int, float))


def as_list(value: Any) -> Optional[List[Any]]:
    """Coerce a bare string into a singleton list where a list is expected."""
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        return [value]
    return None


def _repair_enum(value: str) -> str:
    value = value.strip()
    for broken, fixed in _ENUM_REPAIRS:
        value = value.replace(broken, fixed)
    return value


def clamp_enum_list(value: Any, allowed: Sequence[str]) -> Optional[List[str]]:
    """
    Keep only permitted values, deduplicated in first-seen order.

    Returns None when nothing survives.

    Examples:
        >>> clamp_enum_list(["보통", "아주 강함", "보통"], SWEETNESS_LEVELS)
        ['보통']
        >>> clamp_enum_list("거의없음", PRESENCE_LEVELS)
        ['거의 없음']
    """
    items = as_list(value)
    if items is None:
        return None
    permitted = set(allowed)
    cleaned = [v for v in uniq(_repair_enum(x) for x in items if isinstance(x, str)) if v in permitted]
    return cleaned or None


def clamp_protein_type(value: Any) -> Optional[List[str]]:
    items = as_list(value)
    if items is None:
        return None
    permitted = set(PROTEIN_TYPES)
    cleaned = [v for v in uniq(x.strip().upper() for x in items if isinstance(x, str)) if v in permitted]
    return cleaned or None


# =============================================================================
# Raw Filter Repair
# =============================================================================

def prepare_raw_filters(raw: Any) -> Dict[str, Any]:
    """
    Unwrap every field and fan out the combined presence field.

    The combined "fishy/artificial/bloating" value is copied to all three
    dimensions only when none of them was supplied separately.
    """
    if not isinstance(raw, dict):
        return {}

    fields = {key: unwrap_value(value) for key, value in raw.items() if isinstance(key, str)}

    combined = fields.pop(COMBINED_PRESENCE_KEY, None)
    if combined is not None and all(fields.get(k) is None for k in PRESENCE_KEYS):
        for key in PRESENCE_KEYS:
            fields[key] = combined

    return fields


# =============================================================================
# Normalization
# =============================================================================

def normalize_filters(
    text: str,
    raw_filters: Any,
    taste: Optional[TasteConstraints] = None,
    forced: Optional[ForcedLiquid] = None,
) -> NormalizedFilters:
    """
    Build the canonical filters for one request.

    Args:
        text: Raw user text (drives the rule overrides)
        raw_filters: The extraction LLM's `filters` object, in any shape
        taste: Taste constraints; only the inclusion ids become a filter
        forced: Precomputed water/milk override (computed from text if None)

    Returns:
        NormalizedFilters with every list non-empty and in-vocabulary
    """
    f = prepare_raw_filters(raw_filters)

    protein_type = None
    if text_rules.user_mentioned_protein_type(text):
        protein_type = (
            text_rules.infer_protein_type_from_text(text)
            or clamp_protein_type(f.get("protein_type"))
        )

    sweetness = (
        text_rules.infer_low_sweetness(text)
        or text_rules.map_sweetness_number(f.get("sweetness"))
        or clamp_enum_list(f.get("sweetness"), SWEETNESS_LEVELS)
    )

    fishy = text_rules.infer_low_fishy(text) or clamp_enum_list(f.get("fishy"), PRESENCE_LEVELS)
    artificial = text_rules.infer_low_artificial(text) or clamp_enum_list(f.get("artificial"), PRESENCE_LEVELS)
    bloating = text_rules.infer_low_bloating(text) or clamp_enum_list(f.get("bloating"), PRESENCE_LEVELS)

    if forced is None:
        forced = text_rules.infer_water_milk(text)

    include = uniq(taste.include) if taste else []

    filters = NormalizedFilters(
        protein_type=protein_type,
        sweetness=sweetness,
        fishy=fishy,
        artificial=artificial,
        bloating=bloating,
        water=forced.water.value if forced.water else None,
        milk=forced.milk.value if forced.milk else None,
        taste=include or None,
    )
    logger.debug("Filters normalized", raw_keys=sorted(f), filters=filters.model_dump(exclude_none=True))
    return filters
