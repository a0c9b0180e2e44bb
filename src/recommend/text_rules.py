"""
Deterministic text rules that override LLM-extracted filters.

LLM extraction is unreliable for a handful of dimensions that are easy to
read straight off the user's text ("비린맛 약한 거", "물에 타 먹을"). Each rule
returns None when it does not fire, so callers can fall back to sanitized
LLM output:

    server rule > LLM numeric mapping > LLM enum list
"""

import math
import re
from typing import List, Optional, Pattern

from config.constants import LOW_PRESENCE, LOW_SWEETNESS, SWEETNESS_LEVELS
from recommend.models import ForcedLiquid, ProteinType, Reco


# =============================================================================
# Low Intensity
# =============================================================================

_LOW_INTENSITY_PATTERNS = (
    # absence: 없음 / 없어 / 안 나요 / 거의 없
    re.compile(r"(없(음|어|어요|다)|안\s*나(요|다)?|거의\s*없)"),
    # weak
    re.compile(r"(약하(다|고|면|네|지|긴)?|약한|약하게|약함|미약|약\s*한)"),
    # not strong / not intense
    re.compile(r"(강하(지)?\s*않|강하지\s*않|세(지)?\s*않|세지\s*않|진하(지)?\s*않|진하지\s*않)"),
    # no burden / no irritation
    re.compile(r"(부담\s*없|부담\s*없는|자극(적)?\s*없|자극(적)?\s*않|자극적이지\s*않)"),
    # less / lower
    re.compile(r"(덜|적(게|은)?|낮(게|은)?)"),
)

FISHY_MENTION = re.compile(r"(비린|비린맛|비린내|역한|누린)")
ARTIFICIAL_MENTION = re.compile(r"(인공|인공감|화학|합성|향이\s*인공)")
BLOATING_MENTION = re.compile(r"(더부룩|속\s*불편|소화|가스|배\s*아프|복부)")


def wants_low_intensity(text: str) -> bool:
    """True when the text asks for a weak/absent level of *something*."""
    return any(p.search(text) for p in _LOW_INTENSITY_PATTERNS)


def infer_low_presence(text: str, mention: Pattern) -> Optional[List[str]]:
    """
    ["없음", "거의 없음"] when the dimension is mentioned and low intensity is wanted.

    Args:
        text: Raw user text
        mention: Pattern that detects the dimension being talked about
    """
    if not mention.search(text):
        return None
    if not wants_low_intensity(text):
        return None
    return list(LOW_PRESENCE)


def infer_low_fishy(text: str) -> Optional[List[str]]:
    return infer_low_presence(text, FISHY_MENTION)


def infer_low_artificial(text: str) -> Optional[List[str]]:
    return infer_low_presence(text, ARTIFICIAL_MENTION)


def infer_low_bloating(text: str) -> Optional[List[str]]:
    return infer_low_presence(text, BLOATING_MENTION)


# =============================================================================
# Sweetness
# =============================================================================

_SWEET_MENTION = re.compile(r"(단맛|당도|달[고지게아았]|달아서|달면|달지)")
_SWEET_LOW_PATTERNS = (
    re.compile(r"(안\s*달|덜\s*달|달지\s*않|달고\s*싶지\s*않)"),
    re.compile(r"(단맛|당도).*(약하|낮|적)"),
    re.compile(r"(약하|낮|적).*(단맛|당도)"),
    re.compile(r"(심하(지)?\s*않|강하(지)?\s*않|세(지)?\s*않).*(단맛|당도|달)"),
)


def infer_low_sweetness(text: str) -> Optional[List[str]]:
    """["약함", "약간 약함"] for "덜 달게", "단맛 적은", "달지 않은" and friends."""
    if not _SWEET_MENTION.search(text):
        return None
    if not any(p.search(text) for p in _SWEET_LOW_PATTERNS):
        return None
    return list(LOW_SWEETNESS)


def map_sweetness_number(value) -> Optional[List[str]]:
    """
    Map an LLM-supplied 1-5 sweetness score onto the level vocabulary.

    Rounds half up and clamps to [1, 5]. Anything that is not a finite
    real number (including booleans) returns None.

    Examples:
        >>> map_sweetness_number(5)
        ['강함']
        >>> map_sweetness_number(2.4)
        ['약간 약함']
        >>> map_sweetness_number("5") is None
        True
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    rounded = math.floor(value + 0.5)
    index = min(max(rounded, 1), len(SWEETNESS_LEVELS)) - 1
    return [SWEETNESS_LEVELS[index]]


# =============================================================================
# Water / Milk
# =============================================================================

_WATER_MIX = re.compile(r"물(에|로|로만|로\s*타|에\s*타|에만|만\s*타|만\s*먹)")
_MILK_MIX = re.compile(r"우유(에|로|로만|로\s*타|에\s*타|에만|만\s*타|만\s*먹)")


def infer_water_milk(text: str) -> ForcedLiquid:
    """
    Force water or milk to 추천 when the user mixes with exactly one of them.

    The other liquid is left unset rather than set to 비추천.
    """
    lower = text.lower()
    wants_water = bool(_WATER_MIX.search(text)) or "water" in lower
    wants_milk = bool(_MILK_MIX.search(text)) or "milk" in lower

    if wants_water and not wants_milk:
        return ForcedLiquid(water=Reco.RECOMMENDED)
    if wants_milk and not wants_water:
        return ForcedLiquid(milk=Reco.RECOMMENDED)
    return ForcedLiquid()


# =============================================================================
# Protein Type
# =============================================================================

_WPI_WORDS = re.compile(r"(wpi|아이솔|아이솔레이트|isolate)", re.IGNORECASE)
_WPC_WORDS = re.compile(r"(wpc|콘센|콘센트레이트|농축)", re.IGNORECASE)


def user_mentioned_protein_type(text: str) -> bool:
    return bool(_WPI_WORDS.search(text) or _WPC_WORDS.search(text))


def infer_protein_type_from_text(text: str) -> Optional[List[str]]:
    """WPI vocabulary wins when both are present."""
    if _WPI_WORDS.search(text):
        return [ProteinType.WPI.value]
    if _WPC_WORDS.search(text):
        return [ProteinType.WPC.value]
    return None


# =============================================================================
# Brand Search Term
# =============================================================================

# ASCII boundaries only; Hangul right after "on" still counts as a boundary.
_ON_WORD = r"(?<![a-z0-9])on(?![a-z0-9])"

_BRAND_HINT = re.compile(
    r"(마이프로틴|myprotein|옵티멈|optimumnutrition|" + _ON_WORD + r"|신타|bsn|syntha|"
    r"컴뱃|combat|머슬팜|musclepharm|제품|브랜드)",
    re.IGNORECASE,
)

_BRAND_QUERIES = (
    (re.compile(r"(마이프로틴|myprotein)", re.IGNORECASE), "myprotein"),
    (re.compile(r"(신타|syntha-?6|syntha|bsn)", re.IGNORECASE), "syntha"),
    (re.compile(r"(옵티멈|optimumnutrition|" + _ON_WORD + r")", re.IGNORECASE), "optimum"),
    (re.compile(r"(컴뱃|combat|머슬팜|musclepharm)", re.IGNORECASE), "combat"),
)


def extract_brand_query(text: str) -> Optional[str]:
    """
    Brand search term for the candidate query, only for known brands.

    The extraction LLM's free-form `query` is never used as a search term.
    """
    if not _BRAND_HINT.search(text):
        return None
    for pattern, term in _BRAND_QUERIES:
        if pattern.search(text):
            return term
    return None
